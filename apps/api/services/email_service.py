"""
Email Service

Delivery collaborator for guardian alerts: send(to, subject, body) -> ok | fail.
Uses the Resend HTTP API.
"""

from dataclasses import dataclass
from typing import Optional
import requests
from core.config import settings
from core.exceptions import ConfigurationError, DeliveryError
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    status_code: Optional[int] = None
    detail: Optional[str] = None


class EmailService:
    """Service for sending plain-text alert emails"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.api_url = api_url or settings.RESEND_API_URL
        self.sender = sender or settings.ALERT_SENDER
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when the delivery credential is missing."""
        if not self.api_key:
            raise ConfigurationError(
                "RESEND_API_KEY is not configured; guardian alerts cannot be delivered"
            )

    def _post(self, to_email: str, subject: str, text_content: str) -> requests.Response:
        try:
            r = requests.post(
                self.api_url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json={
                    "from": self.sender,
                    "to": [to_email],
                    "subject": subject,
                    "text": text_content,
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise DeliveryError(to_email, f"{type(e).__name__}: {e}") from e
        if not r.ok:
            raise DeliveryError(to_email, f"HTTP {r.status_code}: {r.text[:200]}")
        return r

    def send_email(self, to_email: str, subject: str, text_content: str) -> DeliveryResult:
        """
        Send one email.

        Returns a DeliveryResult; transport and provider failures are reported,
        not raised. A missing credential raises ConfigurationError.
        """
        self.ensure_configured()
        try:
            r = self._post(to_email, subject, text_content)
        except DeliveryError as e:
            logger.warning(f"Error sending email to {to_email}: {e.detail}")
            return DeliveryResult(success=False, detail=e.detail)

        logger.info(f"Alert email accepted for {to_email}: {subject}")
        return DeliveryResult(success=True, status_code=r.status_code, detail="accepted")
