"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab
from core.config import settings

# Schedule configuration
beat_schedule = {
    # Overdue sweep: finds subjects past the alert threshold and emails
    # their primary guardian once per missed period.
    'alert-sweep': {
        'task': 'tasks.run_alert_sweep',
        'schedule': crontab(minute=f'*/{settings.ALERT_SWEEP_INTERVAL_MINUTES}'),
    },
}
