"""Scheduler - Deferred and repeating callbacks with cancellable handles.

One-shot tasks run on a daemon threading.Timer, repeating tasks on a
daemon thread that waits on an Event between ticks. Every task hands back
a ScheduledTask whose cancel() guarantees the callback will not run again.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle to a scheduled callback.

    The callback runs through run_once(), which checks and flips state under
    a lock. Whichever of cancel() and run_once() gets the lock first wins, so
    a task never fires after a successful cancel and never fires twice.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        repeating: bool = False,
        name: str = "task",
    ):
        """Initialize task.

        Args:
            callback: Function to run when the task fires.
            repeating: If True the task stays armed after firing.
            name: Label used in log messages.
        """
        self._callback = callback
        self._repeating = repeating
        self.name = name
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False
        self._stop_event = threading.Event()
        self._on_cancel: Callable[[], Any] | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once a one-shot task has fired or any task was cancelled."""
        return self._done or self._cancelled

    @property
    def repeating(self) -> bool:
        return self._repeating

    def cancel(self) -> bool:
        """Cancel the task.

        Returns:
            True if this call prevented a future run, False if the task had
            already fired (one-shot) or was already cancelled.
        """
        with self._lock:
            if self._cancelled or self._done:
                return False
            self._cancelled = True
            self._stop_event.set()
            on_cancel = self._on_cancel
        if on_cancel:
            on_cancel()
        return True

    def set_cancel_hook(self, hook: Callable[[], Any]) -> None:
        """Register a function run once, right after a successful cancel().

        Schedulers use it to release the underlying timer.
        """
        with self._lock:
            self._on_cancel = hook

    def wait_cancelled(self, timeout: float) -> bool:
        """Block up to `timeout` seconds.

        Returns:
            True if the task was cancelled before the timeout.
        """
        return self._stop_event.wait(timeout)

    def run_once(self) -> bool:
        """Fire the callback if the task is still armed.

        Returns:
            True if the callback was invoked.
        """
        with self._lock:
            if self._cancelled or self._done:
                return False
            if not self._repeating:
                self._done = True

        try:
            self._callback()
        except Exception as e:
            logger.error("Scheduled task '%s' error: %s", self.name, e)
        return True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "done" if self._done else "armed"
        return f"ScheduledTask({self.name}, {state})"


class Scheduler(ABC):
    """Creates ScheduledTask handles."""

    @abstractmethod
    def call_later(
        self, delay: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        """Run callback once after `delay` seconds."""
        ...

    @abstractmethod
    def call_every(
        self, interval: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        """Run callback every `interval` seconds until cancelled.

        The first run happens after one full interval.
        """
        ...


class ThreadScheduler(Scheduler):
    """Scheduler backed by daemon threads."""

    def call_later(
        self, delay: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(callback, name=name)
        timer = threading.Timer(max(0.0, delay), task.run_once)
        timer.daemon = True
        timer.name = f"later-{name}"
        task.set_cancel_hook(timer.cancel)
        timer.start()
        return task

    def call_every(
        self, interval: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        task = ScheduledTask(callback, repeating=True, name=name)
        thread = threading.Thread(
            target=self._run_repeating,
            args=(task, interval),
            daemon=True,
            name=f"every-{name}",
        )
        thread.start()
        return task

    @staticmethod
    def _run_repeating(task: ScheduledTask, interval: float) -> None:
        """Tick loop. Exits as soon as the task is cancelled."""
        while not task.wait_cancelled(interval):
            task.run_once()
