"""
Pytest configuration and fixtures

The suite runs against a throwaway SQLite database migrated to Alembic head
once per session. Every test that touches the store uses db_session, which
deletes all rows afterwards, so nothing leaks between tests.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_TEST_DB = Path(tempfile.gettempdir()) / f"live_well_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ENVIRONMENT", "test")


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """Apply Alembic migrations to the fresh test database."""
    from alembic import command
    from alembic.config import Config

    if _TEST_DB.exists():
        _TEST_DB.unlink()

    api_root = Path(__file__).resolve().parents[1]
    cfg = Config(str(api_root / "alembic.ini"))
    cfg.set_main_option("script_location", str(api_root / "alembic"))
    cfg.attributes["configure_logger"] = False
    try:
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e

    yield

    from core.database import engine
    engine.dispose()
    if _TEST_DB.exists():
        _TEST_DB.unlink()


def _wipe():
    from core.database import engine
    from models import CheckIn, Contact, User

    with engine.begin() as conn:
        for table in (CheckIn.__table__, Contact.__table__, User.__table__):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def db_session():
    """Session on the test database; all rows are deleted after the test."""
    from core.database import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        _wipe()


@pytest.fixture
def make_user(db_session):
    """Insert a registered subject with guardians directly (bypassing /sync)."""
    from models import Contact, User

    def _make(
        user_id="user_a",
        name="Test Subject",
        last_check_in=0,
        last_alert_sent_at=None,
        language="en",
        is_registered=True,
        guardian_emails=("guardian@example.com",),
    ):
        user = User(
            id=user_id,
            name=name,
            email=f"{user_id}@example.com",
            last_check_in=last_check_in,
            streak=1,
            language=language,
            is_registered=is_registered,
            last_alert_sent_at=last_alert_sent_at,
        )
        db_session.add(user)
        for position, email in enumerate(guardian_emails):
            db_session.add(Contact(
                id=f"{user_id}_g{position}",
                user_id=user_id,
                name=f"Guardian {position}",
                email=email,
                position=position,
            ))
        db_session.commit()
        return user

    return _make


class FakeSender:
    """Delivery collaborator double: records sends, optionally fails per address."""

    def __init__(self, fail_for=(), configured=True):
        self.sent = []
        self.fail_for = set(fail_for)
        self.configured = configured

    def ensure_configured(self):
        from core.exceptions import ConfigurationError

        if not self.configured:
            raise ConfigurationError("RESEND_API_KEY is not configured")

    def send_email(self, to_email, subject, text_content):
        from services.email_service import DeliveryResult

        self.sent.append((to_email, subject, text_content))
        if to_email in self.fail_for:
            return DeliveryResult(success=False, status_code=500, detail="HTTP 500: provider error")
        return DeliveryResult(success=True, status_code=200, detail="accepted")


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def sweep_settings():
    """Test-scale alert policy: 120s threshold counted in minutes."""
    from core.config import Settings

    return Settings(
        ALERT_THRESHOLD_SECONDS=120,
        ALERT_MISSED_UNIT="minutes",
        ALERT_BATCH_SIZE=5,
        RESEND_API_KEY="re_test_key",
    )


@pytest.fixture
def make_sender():
    return FakeSender
