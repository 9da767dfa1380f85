"""
Alert Sweep Dispatcher

One sweep = select overdue subjects, render an alert per subject, deliver it
to the primary guardian, and advance the subject's watermark on success.

Eligibility (batch mode):
    now - last_check_in > threshold
    AND (last_alert_sent_at IS NULL OR last_alert_sent_at < last_check_in)

The watermark is tied to the check-in, not to wall-clock time: exactly one
alert per missed period, and the next check-in re-arms the subject.

Sweeps are stateless and may overlap. The watermark is written with a
compare-and-set on the same eligibility predicate, so when two sweeps both
deliver for the same subject only the first commit counts; the second is
reported as a duplicate delivery (at-least-once), not as an error.

Failures are isolated per subject. A failed delivery leaves the watermark
untouched and the subject is picked up again by the next sweep.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Callable, List, Optional
import logging
import time

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from core.config import Settings, settings as default_settings
from core.exceptions import ConfigurationError
from models import User
from services.email_service import DeliveryResult, EmailService
from services.notification_renderer import render_alert, render_connectivity_check

logger = logging.getLogger(__name__)

MODE_BATCH = "batch"
MODE_TARGETED = "targeted"
MODE_CONNECTIVITY = "connectivity"


@dataclass
class SweepEntry:
    """Outcome for one candidate subject."""
    user_id: str
    user: str
    email: Optional[str]
    success: bool
    missed_units: Optional[int] = None
    committed: bool = False
    debug: Optional[str] = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class SweepReport:
    mode: str
    now_ms: int
    entries: List[SweepEntry] = field(default_factory=list)

    @property
    def dispatched(self) -> int:
        return sum(1 for e in self.entries if e.success)

    @property
    def failed(self) -> int:
        return sum(1 for e in self.entries if not e.success)

    def as_dict(self) -> dict:
        return {
            "status": "success",
            "mode": self.mode,
            "now": self.now_ms,
            "dispatched": self.dispatched,
            "failed": self.failed,
            "report": [e.as_dict() for e in self.entries],
        }


def now_millis() -> int:
    return int(time.time() * 1000)


def missed_units(now_ms: int, last_check_in: Optional[int], unit_seconds: int) -> int:
    """Whole units elapsed since the last check-in (0 when never checked in)."""
    if last_check_in is None:
        return 0
    return max(0, (now_ms - last_check_in) // (unit_seconds * 1000))


def eligibility_clause():
    """Watermark half of the eligibility predicate."""
    return or_(
        User.last_alert_sent_at.is_(None),
        User.last_alert_sent_at < User.last_check_in,
    )


def select_overdue(db: Session, now_ms: int, threshold_s: int, limit: int) -> List[User]:
    """Registered, overdue, watermark-eligible subjects, most overdue first."""
    cutoff = now_ms - threshold_s * 1000
    stmt = (
        select(User)
        .options(selectinload(User.contacts))
        .where(
            User.is_registered.is_(True),
            User.last_check_in.is_not(None),
            User.last_check_in < cutoff,
            eligibility_clause(),
        )
        .order_by(User.last_check_in.asc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(db.execute(stmt).scalars().all())


def commit_watermark(db: Session, user_id: str, observed_check_in: int, now_ms: int) -> bool:
    """
    Compare-and-set the watermark.

    Writes only if the subject is still on the check-in we alerted about and
    still eligible. Returns False when another sweep committed first or the
    subject checked in meanwhile.
    """
    stmt = (
        update(User)
        .where(
            User.id == user_id,
            User.last_check_in == observed_check_in,
            eligibility_clause(),
        )
        .values(last_alert_sent_at=now_ms)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount == 1


def _dispatch_one(
    db: Session,
    user: User,
    sender: EmailService,
    now_ms: int,
    cfg: Settings,
    commit: bool,
) -> SweepEntry:
    # Captured before delivery: a check-in landing mid-send must not be watermarked.
    observed_check_in = user.last_check_in
    contact = user.primary_contact
    entry = SweepEntry(
        user_id=user.id,
        user=user.name,
        email=contact.email if contact else None,
        success=False,
    )
    if contact is None:
        entry.debug = "no guardian email on file"
        return entry

    entry.missed_units = missed_units(now_ms, observed_check_in, cfg.missed_unit_seconds)
    try:
        message = render_alert(user.name, user.language, entry.missed_units, cfg.ALERT_MISSED_UNIT)
        result: DeliveryResult = sender.send_email(contact.email, message.subject, message.body)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.warning(f"Alert delivery raised for {user.id}: {e}", exc_info=True)
        result = DeliveryResult(success=False, detail=f"{type(e).__name__}: {e}")
    entry.success = result.success
    entry.debug = result.detail
    if not result.success or not commit:
        return entry

    try:
        entry.committed = commit_watermark(db, user.id, observed_check_in, now_ms)
    except SQLAlchemyError as e:
        db.rollback()
        # Delivered but not recorded: the next sweep will alert again.
        entry.debug = f"delivered; watermark write failed: {type(e).__name__}"
        return entry
    if not entry.committed:
        entry.debug = "delivered; watermark already advanced by a concurrent sweep"
    return entry


def run_alert_sweep(
    db: Session,
    sender: Optional[EmailService] = None,
    *,
    now_ms: Optional[int] = None,
    user_id: Optional[str] = None,
    cfg: Optional[Settings] = None,
    clock: Callable[[], float] = time.monotonic,
) -> SweepReport:
    """
    Run one sweep.

    Args:
        db: Session; watermark commits happen per subject
        sender: Delivery collaborator (defaults to EmailService())
        now_ms: Sweep time in epoch millis (defaults to the wall clock)
        user_id: Targeted diagnostic sweep for one subject. Bypasses the
            overdue filter and never moves the watermark.
        cfg: Settings override
        clock: Monotonic clock used for the sweep deadline

    Raises:
        ConfigurationError: delivery credential missing
        SQLAlchemyError: candidate selection failed
    """
    cfg = cfg or default_settings
    sender = sender or EmailService()
    sender.ensure_configured()
    now_ms = now_millis() if now_ms is None else now_ms

    if user_id is not None:
        mode = MODE_TARGETED
        user = db.execute(
            select(User)
            .options(selectinload(User.contacts))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        candidates = [user] if user is not None else []
    else:
        mode = MODE_BATCH
        candidates = select_overdue(db, now_ms, cfg.ALERT_THRESHOLD_SECONDS, cfg.ALERT_BATCH_SIZE)

    report = SweepReport(mode=mode, now_ms=now_ms)
    if mode == MODE_TARGETED and not candidates:
        report.entries.append(SweepEntry(
            user_id=user_id, user="", email=None, success=False, debug="subject not found",
        ))
        return report

    deadline = clock() + cfg.ALERT_SWEEP_TIMEOUT_S
    for user in candidates:
        if clock() >= deadline:
            report.entries.append(SweepEntry(
                user_id=user.id,
                user=user.name,
                email=None,
                success=False,
                debug="timed_out: sweep deadline reached before dispatch",
            ))
            continue

        try:
            entry = _dispatch_one(db, user, sender, now_ms, cfg, commit=(mode == MODE_BATCH))
        except SQLAlchemyError as e:
            db.rollback()
            entry = SweepEntry(
                user_id=user.id, user=user.name, email=None, success=False,
                debug=f"store error: {type(e).__name__}",
            )
        report.entries.append(entry)
        logger.info(
            f"Alert sweep candidate {user.id}: {'sent' if entry.success else 'failed'}",
            extra={
                "extra_fields": {
                    "mode": mode,
                    "user_id": user.id,
                    "success": entry.success,
                    "committed": entry.committed,
                    "debug": entry.debug,
                }
            },
        )

    logger.info(
        f"Alert sweep finished: {report.dispatched} sent, {report.failed} failed",
        extra={"extra_fields": {"mode": mode, "candidates": len(candidates)}},
    )
    return report


def send_connectivity_check(sender: Optional[EmailService], to_email: str) -> dict:
    """Deliver the fixed test message to one address, bypassing the store."""
    sender = sender or EmailService()
    sender.ensure_configured()
    message = render_connectivity_check()
    result = sender.send_email(to_email, message.subject, message.body)
    return {
        "status": "success" if result.success else "error",
        "mode": MODE_CONNECTIVITY,
        "details": [
            {"contact": to_email, "success": result.success, "debug": result.detail},
        ],
    }
