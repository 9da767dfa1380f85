"""
State Synchronizer, store half.

Applies a client snapshot to the durable store:

1. Upsert the subject row keyed by its client id.
2. Append the newest check-in unless one exists for that subject and date.
3. Replace the guardian set (delete, then reinsert in order).

All three steps run in one transaction, so readers never see a subject
with zero guardians mid-sync and a failure leaves no partial rows behind.
Pushing the same snapshot twice yields the same observable state.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import case, delete, func, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import ConflictError, PersistenceError
from models import CheckIn, Contact, User
from schemas import SyncPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    user_id: str
    check_in_appended: bool
    contacts_written: int


def _insert_for(db: Session, table):
    """Dialect-specific INSERT so ON CONFLICT clauses are available."""
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(table)
    return sqlite_insert(table)


def _upsert_user(db: Session, payload: SyncPayload) -> None:
    stmt = _insert_for(db, User.__table__).values(
        id=payload.user_id,
        name=payload.user_contact.name,
        email=payload.user_contact.email,
        last_check_in=payload.last_check_in,
        streak=payload.streak,
        language=payload.language or "zh",
        is_registered=payload.is_registered,
    )
    excluded = stmt.excluded
    current = User.__table__.c

    # Stale pushes must not move last_check_in (or the streak derived from it) backward.
    newer = or_(
        current.last_check_in.is_(None),
        excluded.last_check_in >= current.last_check_in,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[current.id],
        set_={
            "name": excluded.name,
            "email": excluded.email,
            "language": excluded.language,
            "is_registered": excluded.is_registered,
            "last_check_in": case((newer, excluded.last_check_in), else_=current.last_check_in),
            "streak": case((newer, excluded.streak), else_=current.streak),
            "updated_at": func.now(),
        },
    )
    db.execute(stmt)


def _append_latest_check_in(db: Session, payload: SyncPayload) -> bool:
    latest = payload.latest_check_in
    if latest is None:
        return False
    stmt = (
        _insert_for(db, CheckIn.__table__)
        .values(
            user_id=payload.user_id,
            timestamp=latest.timestamp,
            date_string=latest.date_string,
            time_string=latest.time_string,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "date_string"])
    )
    result = db.execute(stmt)
    return result.rowcount == 1


def _replace_contacts(db: Session, payload: SyncPayload) -> int:
    ids = [c.id for c in payload.emergency_contacts]
    if ids:
        foreign = db.execute(
            select(Contact.id, Contact.user_id).where(
                Contact.id.in_(ids),
                Contact.user_id != payload.user_id,
            )
        ).first()
        if foreign is not None:
            raise ConflictError(
                f"Guardian id {foreign.id} already belongs to another subject; "
                "generate a fresh id for each guardian"
            )

    db.execute(delete(Contact.__table__).where(Contact.__table__.c.user_id == payload.user_id))
    rows = [
        {
            "id": c.id,
            "user_id": payload.user_id,
            "name": c.name,
            "email": c.email,
            "phone": c.phone,
            "position": position,
        }
        for position, c in enumerate(payload.emergency_contacts)
    ]
    if rows:
        db.execute(insert(Contact.__table__), rows)
    return len(rows)


def push_snapshot(db: Session, payload: SyncPayload) -> SyncResult:
    """
    Apply one client snapshot. Commits on success, rolls back on any failure.

    Raises:
        ConflictError: a guardian id is owned by a different subject
        PersistenceError: the store rejected the write
    """
    try:
        _upsert_user(db, payload)
        appended = _append_latest_check_in(db, payload)
        written = _replace_contacts(db, payload)
        db.commit()
        # Rows were written with Core statements; drop any stale ORM copies.
        db.expire_all()
    except ConflictError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            f"Sync failed for {payload.user_id}: {e}",
            extra={"extra_fields": {"user_id": payload.user_id}},
        )
        raise PersistenceError(f"Failed to store snapshot: {type(e).__name__}") from e

    logger.info(
        f"Synced subject {payload.user_id}",
        extra={
            "extra_fields": {
                "user_id": payload.user_id,
                "check_in_appended": appended,
                "contacts": written,
            }
        },
    )
    return SyncResult(user_id=payload.user_id, check_in_appended=appended, contacts_written=written)
