"""
Liveness Tracker Tests

Organization:
    1. Countdown law (seconds_to_alert)
    2. Streak law and history dedup
    3. is_live policies
    4. LivenessTracker snapshots, profile validation, ticker
"""

import asyncio
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from services.liveness_tracker import (
    GuardianContact,
    LivenessTracker,
    SubjectState,
    UserContact,
    is_live,
    new_guardian_id,
    new_subject_id,
    record_check_in,
    seconds_to_alert,
)

UTC = timezone.utc
DAY_MS = 86400 * 1000


def _ms(*args) -> int:
    return int(datetime(*args, tzinfo=UTC).timestamp() * 1000)


# ===================================================================
# 1. COUNTDOWN LAW
# ===================================================================

class TestSecondsToAlert:

    def test_full_threshold_when_never_checked_in(self):
        assert seconds_to_alert(SubjectState(), now_ms=123456, threshold_seconds=120) == 120

    def test_counts_down_then_holds_at_zero(self):
        state = SubjectState(last_check_in=10_000)
        values = [seconds_to_alert(state, 10_000 + s * 1000, 120) for s in range(0, 200, 10)]

        for elapsed_s, value in zip(range(0, 200, 10), values):
            assert value == max(0, 120 - elapsed_s)

        positive = [v for v in values if v > 0]
        assert positive == sorted(positive, reverse=True)
        assert len(set(positive)) == len(positive)
        assert values[-1] == 0

    def test_never_negative(self):
        state = SubjectState(last_check_in=0)
        assert seconds_to_alert(state, 10 * DAY_MS, 48 * 3600) == 0


# ===================================================================
# 2. STREAK LAW
# ===================================================================

class TestStreak:

    def test_first_check_in_starts_streak_at_one(self):
        state = record_check_in(SubjectState(), _ms(2026, 3, 1, 9, 0), tz=UTC)
        assert state.streak == 1
        assert state.last_check_in == _ms(2026, 3, 1, 9, 0)

    def test_next_day_increments(self):
        state = record_check_in(SubjectState(), _ms(2026, 3, 1, 9, 0), tz=UTC)
        state = record_check_in(state, _ms(2026, 3, 2, 20, 0), tz=UTC)
        assert state.streak == 2

    def test_exactly_one_and_a_half_days_still_increments(self):
        t1 = _ms(2026, 3, 1, 0, 0)
        state = record_check_in(SubjectState(), t1, tz=UTC)
        state = record_check_in(state, t1 + int(1.5 * DAY_MS), tz=UTC)
        assert state.streak == 2

    def test_gap_over_one_and_a_half_days_resets(self):
        t1 = _ms(2026, 3, 1, 0, 0)
        state = record_check_in(SubjectState(streak=7, last_check_in=t1 - DAY_MS), t1, tz=UTC)
        assert state.streak == 8
        state = record_check_in(state, t1 + int(1.5 * DAY_MS) + 1, tz=UTC)
        assert state.streak == 1

    def test_check_in_cannot_move_backward(self):
        state = record_check_in(SubjectState(), _ms(2026, 3, 2), tz=UTC)
        with pytest.raises(ValueError):
            record_check_in(state, _ms(2026, 3, 1), tz=UTC)


class TestHistory:

    def test_second_check_in_same_date_does_not_duplicate_history(self):
        state = record_check_in(SubjectState(), _ms(2026, 3, 1, 8, 0), tz=UTC)
        state = record_check_in(state, _ms(2026, 3, 1, 21, 30), tz=UTC)

        assert len(state.check_in_history) == 1
        assert state.check_in_history[0].date_string == "2026-03-01"
        assert state.check_in_history[0].time_string == "08:00"
        # liveness still advances
        assert state.last_check_in == _ms(2026, 3, 1, 21, 30)

    def test_history_is_capped_to_newest_entries(self):
        state = SubjectState()
        t = _ms(2026, 1, 1, 12, 0)
        for day in range(120):
            state = record_check_in(state, t + day * DAY_MS, tz=UTC, history_limit=100)

        assert len(state.check_in_history) == 100
        assert state.check_in_history[-1].timestamp == t + 119 * DAY_MS
        assert state.check_in_history[0].timestamp == t + 20 * DAY_MS


# ===================================================================
# 3. IS_LIVE
# ===================================================================

class TestIsLive:

    def test_not_live_before_first_check_in(self):
        assert is_live(SubjectState(), _ms(2026, 3, 1)) is False

    def test_window_policy_uses_grace_period(self):
        state = SubjectState(last_check_in=1_000_000)
        assert is_live(state, 1_000_000 + 59_999, policy="window", grace_seconds=60)
        assert not is_live(state, 1_000_000 + 60_000, policy="window", grace_seconds=60)

    def test_calendar_day_policy_compares_local_dates(self):
        state = SubjectState(last_check_in=_ms(2026, 3, 1, 23, 0))
        assert is_live(state, _ms(2026, 3, 1, 23, 59), policy="calendar_day", tz=UTC)
        assert not is_live(state, _ms(2026, 3, 2, 0, 1), policy="calendar_day", tz=UTC)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            is_live(SubjectState(last_check_in=0), 1, policy="sometimes")


# ===================================================================
# 4. TRACKER
# ===================================================================

def _guardian(email="g@example.com"):
    return GuardianContact(name="Guardian", email=email)


class TestLivenessTracker:

    def test_snapshots_are_immutable_values(self):
        tracker = LivenessTracker(threshold_seconds=120, tz=UTC)
        before = tracker.snapshot()
        after = tracker.check_in(now_ms=_ms(2026, 3, 1))

        assert before.last_check_in is None
        assert after.last_check_in == _ms(2026, 3, 1)
        assert tracker.snapshot() is after
        with pytest.raises(FrozenInstanceError):
            after.streak = 99

    def test_subscribers_receive_each_new_snapshot(self):
        tracker = LivenessTracker(threshold_seconds=120, tz=UTC)
        seen = []
        tracker.subscribe(seen.append)

        s1 = tracker.check_in(now_ms=_ms(2026, 3, 1))
        s2 = tracker.check_in(now_ms=_ms(2026, 3, 2))

        assert seen == [s1, s2]

    def test_failing_subscriber_does_not_undo_check_in(self):
        tracker = LivenessTracker(threshold_seconds=120, tz=UTC)

        def broken(_state):
            raise RuntimeError("network down")

        tracker.subscribe(broken)
        tracker.check_in(now_ms=_ms(2026, 3, 1))
        assert tracker.snapshot().last_check_in == _ms(2026, 3, 1)

    def test_view_derives_from_clock_without_new_check_in(self):
        tracker = LivenessTracker(threshold_seconds=120, policy="window", grace_seconds=60, tz=UTC)
        tracker.check_in(now_ms=1_000_000)

        early = tracker.view(now_ms=1_000_000 + 30_000)
        late = tracker.view(now_ms=1_000_000 + 130_000)

        assert early.is_live and early.seconds_to_alert == 90
        assert not late.is_live and late.seconds_to_alert == 0
        assert late.streak == 1

    def test_update_profile_validates_before_mutating(self):
        tracker = LivenessTracker(threshold_seconds=120)
        original = tracker.snapshot()

        with pytest.raises(ValueError, match="@"):
            tracker.update_profile(UserContact(name="Ada"), (_guardian("not-an-email"),))
        with pytest.raises(ValueError, match="name"):
            tracker.update_profile(UserContact(name="  "), (_guardian(),))
        with pytest.raises(ValueError, match="guardians"):
            tracker.update_profile(UserContact(name="Ada"), tuple(_guardian() for _ in range(4)))
        with pytest.raises(ValueError, match="guardians"):
            tracker.update_profile(UserContact(name="Ada"), ())

        assert tracker.snapshot() is original

    def test_register_requires_guardian(self):
        tracker = LivenessTracker(threshold_seconds=120)
        with pytest.raises(ValueError):
            tracker.register()

        tracker.update_profile(UserContact(name="Ada"), (_guardian(),), language="en")
        state = tracker.register()
        assert state.is_registered
        assert state.language == "en"

    def test_ticker_recomputes_every_interval(self):
        clock = {"now": 1000.0}
        tracker = LivenessTracker(threshold_seconds=120, policy="window", clock=lambda: clock["now"])
        tracker.check_in()
        views = []

        def on_tick(view):
            views.append(view)
            clock["now"] += 1.0

        async def scenario():
            task = asyncio.create_task(tracker.run(on_tick, interval=0.001))
            while len(views) < 3:
                await asyncio.sleep(0.001)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        asyncio.run(scenario())
        assert [v.seconds_to_alert for v in views[:3]] == [120, 119, 118]

    def test_ticker_survives_a_failing_callback(self):
        tracker = LivenessTracker(threshold_seconds=120, policy="window", clock=lambda: 1000.0)
        calls = []

        def on_tick(view):
            calls.append(view)
            if len(calls) == 1:
                raise RuntimeError("render failed")

        async def scenario():
            task = asyncio.create_task(tracker.run(on_tick, interval=0.001))
            while len(calls) < 3:
                await asyncio.sleep(0.001)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        asyncio.run(scenario())
        assert len(calls) >= 3

    def test_explicit_zero_policy_values_are_kept(self):
        tracker = LivenessTracker(threshold_seconds=0, grace_seconds=0, policy="window")

        assert tracker.threshold_seconds == 0
        assert tracker.grace_seconds == 0
        tracker.check_in(now_ms=1_000_000)
        assert tracker.view(now_ms=1_000_000).seconds_to_alert == 0


class TestIdentifiers:

    def test_ids_are_unique_per_entity(self):
        assert len({new_guardian_id() for _ in range(500)}) == 500
        assert len({new_subject_id() for _ in range(500)}) == 500

    def test_default_guardians_never_share_an_id(self):
        a = GuardianContact(name="A", email="a@example.com")
        b = GuardianContact(name="B", email="b@example.com")
        assert a.id != b.id
        assert SubjectState().user_id != SubjectState().user_id
