"""
Alert Check API Router

GET /alert-check runs one alert sweep on demand (the scheduler calls the
same service from a Celery task).

Query options:
- user_id: targeted diagnostic sweep for one subject (overdue filter bypassed)
- test_to: skip the store and send a connectivity-check email to this address
- neither: full batch sweep

The response is always JSON, including on internal faults.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from core.database import get_db_sync
from core.exceptions import APIException, ValidationError
from services.alert_sweep import run_alert_sweep, send_connectivity_check
from services.email_service import EmailService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Alerts"])


def get_email_service() -> EmailService:
    return EmailService()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "error": message})


@router.get("/alert-check")
def alert_check(
    user_id: Optional[str] = Query(default=None),
    test_to: Optional[str] = Query(default=None),
    sender: EmailService = Depends(get_email_service),
):
    try:
        if test_to is not None:
            if "@" not in test_to:
                raise ValidationError("test_to must be an email address", field="test_to")
            # Connectivity check never opens a session.
            return send_connectivity_check(sender, test_to)

        db = get_db_sync()
        try:
            report = run_alert_sweep(db, sender, user_id=user_id)
        finally:
            db.close()
        return report.as_dict()
    except APIException as e:
        logger.error(f"Alert check aborted: {e.detail}")
        return _error(e.status_code, e.detail)
    except Exception as e:
        logger.error("Alert check failed", exc_info=True)
        return _error(500, f"{type(e).__name__}: {e}")
