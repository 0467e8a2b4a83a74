"""Notifications - Repeating local notifications for finished timers.

A finished timer is announced by a series of local notifications: the first
fires at the timer's end date, the rest follow at a fixed interval so the
alert keeps sounding until the user reacts. Every request in a series has
the id "<base_id>-<n>", which lets the whole series be cancelled at once.

The notification center is in-process: it delivers requests through the
Scheduler and hands them to an optional on_deliver callback.
"""

import logging
import math
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from labeltimer.core.scheduler import ScheduledTask, Scheduler
from labeltimer.core.sounds import AlarmSound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    """A single scheduled notification."""

    identifier: str
    title: str | None
    body: str | None
    sound: AlarmSound | None
    fire_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalNotificationCenter:
    """Holds pending requests and delivers them when due."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_deliver: Callable[[NotificationRequest], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the center.

        Args:
            scheduler: Used to fire each request at its fire_at time.
            on_deliver: Called with each request as it is delivered.
            clock: Returns the current aware datetime.
        """
        self._scheduler = scheduler
        self._on_deliver = on_deliver
        self._clock = clock
        self._pending: dict[str, tuple[NotificationRequest, ScheduledTask]] = {}
        self._delivered: dict[str, NotificationRequest] = {}
        self._lock = threading.Lock()

    def add(self, request: NotificationRequest) -> None:
        """Schedule a request, replacing any pending one with the same id."""
        delay = max(0.0, (request.fire_at - self._clock()).total_seconds())
        with self._lock:
            old = self._pending.pop(request.identifier, None)
            task = self._scheduler.call_later(
                delay,
                lambda: self._deliver(request.identifier),
                name=f"notify-{request.identifier}",
            )
            self._pending[request.identifier] = (request, task)
        if old:
            old[1].cancel()

    def _deliver(self, identifier: str) -> None:
        with self._lock:
            entry = self._pending.pop(identifier, None)
            if entry is None:
                return
            request = entry[0]
            self._delivered[identifier] = request

        logger.info("Notification delivered: %s", identifier)
        if self._on_deliver:
            try:
                self._on_deliver(request)
            except Exception as e:
                logger.error("on_deliver callback failed for '%s': %s", identifier, e)

    def remove_pending(self, identifiers: Iterable[str]) -> int:
        """Cancel pending requests. Returns how many were removed."""
        with self._lock:
            removed = [self._pending.pop(i) for i in identifiers if i in self._pending]
        for _, task in removed:
            task.cancel()
        return len(removed)

    def remove_delivered(self, identifiers: Iterable[str]) -> int:
        """Forget delivered requests. Returns how many were removed."""
        with self._lock:
            removed = [i for i in identifiers if self._delivered.pop(i, None)]
        return len(removed)

    def pending(self) -> list[NotificationRequest]:
        with self._lock:
            requests = [request for request, _ in self._pending.values()]
        return sorted(requests, key=lambda r: r.fire_at)

    def delivered(self) -> list[NotificationRequest]:
        with self._lock:
            return list(self._delivered.values())


class NotificationScheduler:
    """Schedules and cancels repeating notification series per timer."""

    def __init__(
        self,
        center: LocalNotificationCenter,
        max_pending: int = 64,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the scheduler.

        Args:
            center: Notification center to schedule on.
            max_pending: Cap on pending requests across all timers.
            clock: Returns the current aware datetime.
        """
        self._center = center
        self._max_pending = max_pending
        self._clock = clock

    @staticmethod
    def _in_series(identifier: str, base_id: str) -> bool:
        """True if identifier is "<base_id>-<n>" for this exact base_id."""
        head, sep, index = identifier.rpartition("-")
        return bool(sep) and head == base_id and index.isdigit()

    def schedule_repeating(
        self,
        base_id: str,
        title: str | None,
        body: str | None,
        sound: AlarmSound | None,
        end_date: datetime,
        repeating_interval: float,
        count: int | None = None,
    ) -> list[NotificationRequest]:
        """Schedule a notification series for a timer.

        Any existing series for base_id is replaced. The series is capped by
        `count` and by the pending budget left over by other timers; fire
        times already in the past are skipped.

        Args:
            base_id: Timer identifier; requests are "<base_id>-<n>".
            title: Notification title.
            body: Notification body.
            sound: Sound for each notification (None = system default).
            end_date: When the first notification fires.
            repeating_interval: Seconds between notifications.
            count: Maximum number of notifications (default: max_pending).

        Returns:
            The requests that were scheduled.

        Raises:
            ValueError: If repeating_interval is not positive.
        """
        if repeating_interval <= 0:
            raise ValueError(f"repeating_interval must be positive, got {repeating_interval}")

        self.stop_timer_notifications(base_id)

        budget = self._max_pending - len(self._center.pending())
        limit = min(count if count is not None else self._max_pending, budget)
        if limit <= 0:
            logger.warning("No pending budget left for '%s'", base_id)
            return []

        if end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=timezone.utc)
        now = self._clock()
        step = timedelta(seconds=repeating_interval)

        # Index of the first fire time not in the past
        first = max(0, math.ceil((now - end_date) / step))
        if end_date + step * first < now:
            first += 1

        requests = [
            NotificationRequest(
                identifier=f"{base_id}-{index}",
                title=title,
                body=body,
                sound=sound,
                fire_at=end_date + step * index,
            )
            for index in range(first, first + limit)
        ]

        for request in requests:
            self._center.add(request)

        logger.info(
            "Scheduled %d notifications for '%s' every %.1fs from %s",
            len(requests),
            base_id,
            repeating_interval,
            end_date.isoformat(),
        )
        return requests

    def stop_timer_notifications(self, base_id: str) -> int:
        """Remove pending and delivered notifications of a timer's series.

        Returns:
            Number of requests removed.
        """
        removed = self._center.remove_pending(
            [r.identifier for r in self._center.pending() if self._in_series(r.identifier, base_id)]
        )
        removed += self._center.remove_delivered(
            [
                r.identifier
                for r in self._center.delivered()
                if self._in_series(r.identifier, base_id)
            ]
        )
        if removed:
            logger.info("Removed %d notifications for '%s'", removed, base_id)
        return removed

    def cancel_with_prefix(self, prefix: str) -> int:
        """Cancel all pending requests whose id starts with prefix."""
        removed = self._center.remove_pending(
            [r.identifier for r in self._center.pending() if r.identifier.startswith(prefix)]
        )
        logger.info("Cancelled %d pending notifications with prefix '%s'", removed, prefix)
        return removed

    def pending_ids(self) -> list[str]:
        return [r.identifier for r in self._center.pending()]

    def delivered_ids(self) -> list[str]:
        return [r.identifier for r in self._center.delivered()]
