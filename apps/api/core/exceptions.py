"""
Custom exception classes and error handling.

API exceptions carry an HTTP status and are rendered by main.py as
{"error": detail, "code": error_code}. DeliveryError belongs to the
notification layer and never leaves the sweep as an HTTP error.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class ValidationError(APIException):
    """Validation error. Raised before any state is mutated."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class ConflictError(APIException):
    """Resource conflict (e.g., identifier owned by another subject)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class ConfigurationError(APIException):
    """Missing delivery credential or store binding. Fatal for the request, not retried."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="CONFIGURATION_ERROR"
        )


class PersistenceError(APIException):
    """Store operation failed. The transaction has been rolled back."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code="PERSISTENCE_ERROR"
        )


class DeliveryError(Exception):
    """Notification send failed for one recipient."""

    def __init__(self, recipient: str, detail: str):
        super().__init__(f"Delivery to {recipient} failed: {detail}")
        self.recipient = recipient
        self.detail = detail
