"""
Scheduled alert sweep task tests. The task runs inline (no broker);
the Resend HTTP call is mocked.
"""

from unittest.mock import MagicMock, patch

from celerybeat_schedule import beat_schedule
from core.config import settings
from tasks import celery_app
from tasks.alert_tasks import run_alert_sweep_task


def _ok():
    r = MagicMock()
    r.ok = True
    r.status_code = 200
    return r


class TestAlertSweepTask:

    def test_task_is_registered_and_scheduled(self):
        assert "tasks.run_alert_sweep" in celery_app.tasks
        assert beat_schedule["alert-sweep"]["task"] == "tasks.run_alert_sweep"
        assert celery_app.conf.beat_schedule["alert-sweep"]["task"] == "tasks.run_alert_sweep"

    def test_task_runs_sweep_and_returns_report(self, db_session, make_user):
        make_user(user_id="ada", last_check_in=0)

        with patch("services.email_service.requests.post", return_value=_ok()) as post:
            result = run_alert_sweep_task()

        assert result["status"] == "success"
        assert result["dispatched"] == 1
        assert post.call_count == 1
        assert post.call_args.kwargs["json"]["to"] == ["guardian@example.com"]

    def test_task_reports_configuration_error(self, db_session):
        with patch.object(settings, "RESEND_API_KEY", None):
            result = run_alert_sweep_task()

        assert result["status"] == "error"
        assert "RESEND_API_KEY" in result["error"]

    def test_task_targeted_mode(self, db_session, make_user):
        make_user(user_id="ada", last_check_in=None)

        with patch("services.email_service.requests.post", return_value=_ok()):
            result = run_alert_sweep_task(user_id="ada")

        assert result["mode"] == "targeted"
        assert result["report"][0]["success"] is True
