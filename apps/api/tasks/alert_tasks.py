"""
Scheduled Alert Tasks

Runs the overdue-subject sweep via Celery Beat. Each run is stateless;
everything it needs to know lives in the store.
"""

from typing import Dict, Optional
from celery import Task
from sqlalchemy.orm import Session
from core.database import get_db_sync
from core.exceptions import APIException
from tasks import celery_app
from services.alert_sweep import run_alert_sweep
import logging

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.run_alert_sweep", bind=True)
def run_alert_sweep_task(self: Task, user_id: Optional[str] = None) -> Dict:
    """
    Run one alert sweep.

    Per-subject failures are part of the returned report. Only sweep-wide
    faults (missing credential, store unreachable) produce an error status.
    """
    db: Session = get_db_sync()

    try:
        report = run_alert_sweep(db, user_id=user_id)
        return report.as_dict()
    except APIException as e:
        logger.error(f"Alert sweep aborted: {e.detail}")
        return {"status": "error", "error": e.detail}
    except Exception as e:
        db.rollback()
        logger.error(f"Error in run_alert_sweep_task: {str(e)}", exc_info=True)
        return {"status": "error", "error": str(e)}
    finally:
        db.close()
