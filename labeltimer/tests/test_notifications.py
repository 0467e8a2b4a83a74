"""Tests for repeating notification scheduling."""

from datetime import datetime, timedelta, timezone

import pytest

from labeltimer.core.notifications import (
    LocalNotificationCenter,
    NotificationRequest,
    NotificationScheduler,
)
from labeltimer.core.sounds import AlarmSound

BASE = datetime(2025, 8, 20, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(scheduler):
    return lambda: BASE + timedelta(seconds=scheduler.now)


@pytest.fixture
def delivered():
    return []


@pytest.fixture
def center(scheduler, clock, delivered):
    return LocalNotificationCenter(scheduler, on_deliver=delivered.append, clock=clock)


@pytest.fixture
def notifications(center, clock):
    return NotificationScheduler(center, max_pending=64, clock=clock)


def _schedule(notifications, base_id="timer", delay=10, interval=2, count=5, **kwargs):
    return notifications.schedule_repeating(
        base_id=base_id,
        title="Tea",
        body="Tea is ready",
        sound=AlarmSound.MELODY,
        end_date=BASE + timedelta(seconds=delay),
        repeating_interval=interval,
        count=count,
        **kwargs,
    )


class TestScheduleRepeating:
    def test_series_layout(self, notifications):
        """First fires at the end date, the rest every interval."""
        requests = _schedule(notifications)

        assert [r.identifier for r in requests] == [f"timer-{i}" for i in range(5)]
        assert [r.fire_at for r in requests] == [
            BASE + timedelta(seconds=10 + 2 * i) for i in range(5)
        ]
        assert notifications.pending_ids() == [f"timer-{i}" for i in range(5)]

    def test_delivers_in_order(self, notifications, scheduler, delivered):
        _schedule(notifications, count=3)

        scheduler.advance(11)
        assert [r.identifier for r in delivered] == ["timer-0"]

        scheduler.advance(10)
        assert [r.identifier for r in delivered] == ["timer-0", "timer-1", "timer-2"]
        assert notifications.pending_ids() == []
        assert notifications.delivered_ids() == ["timer-0", "timer-1", "timer-2"]

    def test_rescheduling_replaces_series(self, notifications):
        _schedule(notifications, count=5)
        _schedule(notifications, count=2, delay=30)

        assert notifications.pending_ids() == ["timer-0", "timer-1"]

    def test_capped_by_pending_budget(self, center, clock):
        """Other timers' pending requests eat into the budget."""
        notifications = NotificationScheduler(center, max_pending=6, clock=clock)
        _schedule(notifications, base_id="a", count=4)
        requests = _schedule(notifications, base_id="b", count=4)

        assert len(requests) == 2
        assert len(notifications.pending_ids()) == 6

    def test_no_budget_left(self, center, clock):
        notifications = NotificationScheduler(center, max_pending=2, clock=clock)
        _schedule(notifications, base_id="a", count=2)
        assert _schedule(notifications, base_id="b") == []

    def test_count_defaults_to_max_pending(self, center, clock):
        notifications = NotificationScheduler(center, max_pending=10, clock=clock)
        assert len(_schedule(notifications, count=None)) == 10

    def test_past_fire_times_skipped(self, notifications):
        """An end date in the past only schedules what is still ahead."""
        requests = _schedule(notifications, delay=-5, interval=2, count=3)

        assert [r.identifier for r in requests] == ["timer-3", "timer-4", "timer-5"]
        assert all(r.fire_at >= BASE for r in requests)

    def test_end_date_long_past(self, notifications):
        """An end date days ago jumps straight to the next fire time."""
        requests = notifications.schedule_repeating(
            base_id="x",
            title=None,
            body=None,
            sound=None,
            end_date=BASE - timedelta(days=30),
            repeating_interval=0.5,
            count=2,
        )

        first_index = 30 * 24 * 3600 * 2
        assert [r.identifier for r in requests] == [f"x-{first_index}", f"x-{first_index + 1}"]
        assert requests[0].fire_at == BASE

    def test_end_date_between_fire_times(self, notifications):
        requests = _schedule(notifications, delay=-3, interval=2, count=1)
        assert requests[0].identifier == "timer-2"
        assert requests[0].fire_at == BASE + timedelta(seconds=1)

    def test_rejects_bad_interval(self, notifications):
        with pytest.raises(ValueError):
            _schedule(notifications, interval=0)


class TestStopTimerNotifications:
    def test_removes_pending_and_delivered(self, notifications, scheduler):
        _schedule(notifications, count=4)
        scheduler.advance(12)

        removed = notifications.stop_timer_notifications("timer")

        assert removed == 4
        assert notifications.pending_ids() == []
        assert notifications.delivered_ids() == []

    def test_cancelled_requests_never_deliver(self, notifications, scheduler, delivered):
        _schedule(notifications, count=3)
        notifications.stop_timer_notifications("timer")
        scheduler.advance(100)
        assert delivered == []

    def test_leaves_other_series_alone(self, notifications):
        """Prefix matching uses the separator, so "timer" spares "timer2"."""
        _schedule(notifications, base_id="timer", count=2)
        _schedule(notifications, base_id="timer2", count=2)

        notifications.stop_timer_notifications("timer")
        assert notifications.pending_ids() == ["timer2-0", "timer2-1"]

    def test_leaves_hyphenated_series_alone(self, notifications):
        """Stopping "timer" spares the series of "timer-2" (ids "timer-2-<n>")."""
        _schedule(notifications, base_id="timer-2", count=2)
        _schedule(notifications, base_id="timer", count=2)

        assert sorted(notifications.pending_ids()) == ["timer-0", "timer-1", "timer-2-0", "timer-2-1"]

        notifications.stop_timer_notifications("timer")
        assert notifications.pending_ids() == ["timer-2-0", "timer-2-1"]

    def test_unknown_series(self, notifications):
        assert notifications.stop_timer_notifications("nothing") == 0


class TestCancelWithPrefix:
    def test_cancels_matching(self, notifications):
        _schedule(notifications, base_id="debug-a", count=2)
        _schedule(notifications, base_id="debug-b", count=2)
        _schedule(notifications, base_id="real", count=2)

        assert notifications.cancel_with_prefix("debug-") == 4
        assert notifications.pending_ids() == ["real-0", "real-1"]


class TestLocalNotificationCenter:
    def test_add_replaces_same_id(self, center, scheduler, delivered):
        first = NotificationRequest("x", "a", None, None, BASE + timedelta(seconds=5))
        second = NotificationRequest("x", "b", None, None, BASE + timedelta(seconds=8))
        center.add(first)
        center.add(second)

        scheduler.advance(10)
        assert [r.title for r in delivered] == ["b"]

    def test_on_deliver_error_is_contained(self, scheduler, clock):
        def boom(request):
            raise RuntimeError("boom")

        center = LocalNotificationCenter(scheduler, on_deliver=boom, clock=clock)
        center.add(NotificationRequest("x", None, None, None, BASE))
        scheduler.advance(1)
        assert [r.identifier for r in center.delivered()] == ["x"]
