"""
Liveness Tracker (client side)

Holds the subject's state as one immutable snapshot. Every mutation builds a
new SubjectState; subscribers (the synchronizer) receive snapshots by value
and can never observe a half-applied check-in.

Derived values (is-live, seconds-to-alert) are pure functions of the
snapshot and wall-clock time, recomputed on a 1-second asyncio tick.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, tzinfo
from typing import Awaitable, Callable, List, Optional, Tuple, Union
import asyncio
import logging
import time
import uuid

from core.config import settings

logger = logging.getLogger(__name__)

STREAK_GAP_MS = int(1.5 * 86400 * 1000)
MAX_GUARDIANS = 3
POLICY_WINDOW = "window"
POLICY_CALENDAR_DAY = "calendar_day"


def new_subject_id() -> str:
    return f"user_{uuid.uuid4().hex}"


def new_guardian_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class UserContact:
    name: str = ""
    email: str = ""
    phone: str = ""


@dataclass(frozen=True)
class GuardianContact:
    name: str
    email: str
    phone: str = ""
    id: str = field(default_factory=new_guardian_id)


@dataclass(frozen=True)
class CheckInRecord:
    timestamp: int
    date_string: str  # YYYY-MM-DD, subject-local
    time_string: str  # HH:MM


@dataclass(frozen=True)
class SubjectState:
    user_id: str = field(default_factory=new_subject_id)
    language: str = "zh"
    last_check_in: Optional[int] = None
    check_in_history: Tuple[CheckInRecord, ...] = ()
    emergency_contacts: Tuple[GuardianContact, ...] = ()
    user_contact: UserContact = UserContact()
    streak: int = 0
    is_registered: bool = False


@dataclass(frozen=True)
class LivenessView:
    is_live: bool
    seconds_to_alert: int
    streak: int
    checked_in_today: bool


def _local(ts_ms: int, tz: Optional[tzinfo]) -> datetime:
    # tz=None means the machine's local zone
    return datetime.fromtimestamp(ts_ms / 1000, tz=tz)


def local_date_string(ts_ms: int, tz: Optional[tzinfo] = None) -> str:
    return _local(ts_ms, tz).strftime("%Y-%m-%d")


def local_time_string(ts_ms: int, tz: Optional[tzinfo] = None) -> str:
    return _local(ts_ms, tz).strftime("%H:%M")


def next_streak(prior_check_in: Optional[int], prior_streak: int, now_ms: int) -> int:
    """Gap-aware streak: +1 within 1.5 days of the previous check-in, else restart at 1."""
    if prior_check_in is not None and now_ms - prior_check_in <= STREAK_GAP_MS:
        return prior_streak + 1
    return 1


def record_check_in(
    state: SubjectState,
    now_ms: int,
    tz: Optional[tzinfo] = None,
    history_limit: int = 365,
) -> SubjectState:
    """Apply a check-in at now_ms and return the new snapshot."""
    if state.last_check_in is not None and now_ms < state.last_check_in:
        raise ValueError("check-in time is earlier than the previous check-in")

    date_string = local_date_string(now_ms, tz)
    history = state.check_in_history
    if not any(r.date_string == date_string for r in history):
        record = CheckInRecord(
            timestamp=now_ms,
            date_string=date_string,
            time_string=local_time_string(now_ms, tz),
        )
        history = (history + (record,))[-history_limit:]

    return replace(
        state,
        last_check_in=now_ms,
        streak=next_streak(state.last_check_in, state.streak, now_ms),
        check_in_history=history,
    )


def is_live(
    state: SubjectState,
    now_ms: int,
    policy: str = POLICY_WINDOW,
    grace_seconds: int = 60,
    tz: Optional[tzinfo] = None,
) -> bool:
    if state.last_check_in is None:
        return False
    if policy == POLICY_CALENDAR_DAY:
        return local_date_string(state.last_check_in, tz) == local_date_string(now_ms, tz)
    if policy == POLICY_WINDOW:
        return now_ms - state.last_check_in < grace_seconds * 1000
    raise ValueError(f"Unknown liveness policy: {policy}")


def seconds_to_alert(state: SubjectState, now_ms: int, threshold_seconds: int) -> int:
    """Whole seconds left before the subject becomes overdue; never negative."""
    if state.last_check_in is None:
        return threshold_seconds
    remaining_ms = threshold_seconds * 1000 - (now_ms - state.last_check_in)
    # Ceil so the countdown only reaches 0 once the threshold has actually passed.
    return max(0, -(-remaining_ms // 1000))


def validate_profile(user_contact: UserContact, guardians: Tuple[GuardianContact, ...]) -> None:
    if not user_contact.name.strip():
        raise ValueError("name must not be empty")
    if not 1 <= len(guardians) <= MAX_GUARDIANS:
        raise ValueError(f"between 1 and {MAX_GUARDIANS} guardians are required")
    for g in guardians:
        if not g.name.strip():
            raise ValueError("guardian name must not be empty")
        if "@" not in g.email:
            raise ValueError(f"guardian email must contain '@': {g.email!r}")
    if len({g.id for g in guardians}) != len(guardians):
        raise ValueError("guardian ids must be unique")


Listener = Callable[[SubjectState], None]
TickCallback = Callable[[LivenessView], Union[None, Awaitable[None]]]


class LivenessTracker:
    """
    Owns the current SubjectState snapshot.

    Not thread-safe by design: check-ins and ticks run on one event loop.
    """

    def __init__(
        self,
        state: Optional[SubjectState] = None,
        *,
        threshold_seconds: Optional[int] = None,
        policy: Optional[str] = None,
        grace_seconds: Optional[int] = None,
        history_limit: Optional[int] = None,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._state = state or SubjectState()
        self.threshold_seconds = (
            settings.ALERT_THRESHOLD_SECONDS if threshold_seconds is None else threshold_seconds
        )
        self.policy = settings.LIVE_POLICY if policy is None else policy
        self.grace_seconds = settings.LIVE_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self.history_limit = settings.HISTORY_LIMIT if history_limit is None else history_limit
        self.tz = tz
        self._clock = clock
        self._listeners: List[Listener] = []

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def snapshot(self) -> SubjectState:
        return self._state

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _commit(self, new_state: SubjectState) -> SubjectState:
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                # A broken subscriber must not undo an applied check-in.
                logger.exception("State listener failed")
        return new_state

    def check_in(self, now_ms: Optional[int] = None) -> SubjectState:
        now_ms = self.now_ms() if now_ms is None else now_ms
        return self._commit(record_check_in(self._state, now_ms, self.tz, self.history_limit))

    def update_profile(
        self,
        user_contact: UserContact,
        guardians: Tuple[GuardianContact, ...],
        language: Optional[str] = None,
    ) -> SubjectState:
        guardians = tuple(guardians)
        validate_profile(user_contact, guardians)
        return self._commit(replace(
            self._state,
            user_contact=user_contact,
            emergency_contacts=guardians,
            language=language or self._state.language,
        ))

    def register(self) -> SubjectState:
        if not self._state.emergency_contacts:
            raise ValueError("add at least one guardian before registering")
        return self._commit(replace(self._state, is_registered=True))

    def view(self, now_ms: Optional[int] = None) -> LivenessView:
        now_ms = self.now_ms() if now_ms is None else now_ms
        state = self._state
        return LivenessView(
            is_live=is_live(state, now_ms, self.policy, self.grace_seconds, self.tz),
            seconds_to_alert=seconds_to_alert(state, now_ms, self.threshold_seconds),
            streak=state.streak,
            checked_in_today=is_live(state, now_ms, POLICY_CALENDAR_DAY, tz=self.tz),
        )

    async def run(self, on_tick: TickCallback, interval: float = 1.0) -> None:
        """Recompute the view every `interval` seconds until cancelled."""
        while True:
            try:
                result = on_tick(self.view())
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                # One bad tick must not stop the countdown.
                logger.exception("Tick callback failed")
            await asyncio.sleep(interval)
