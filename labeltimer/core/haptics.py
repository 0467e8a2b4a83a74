"""Haptics - Vibration feedback primitive."""

import logging
import threading
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class Haptics(ABC):
    """Fire-and-forget haptic pulse.

    Implementations must not raise; a failed pulse is simply lost.
    """

    @abstractmethod
    def pulse(self) -> None:
        ...


class LogHaptics(Haptics):
    """Desktop stand-in: logs each pulse and counts them."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = threading.Lock()

    def pulse(self) -> None:
        with self._lock:
            self._count += 1
            count = self._count
        logger.debug("Haptic pulse #%d", count)

    @property
    def count(self) -> int:
        """Number of pulses so far."""
        return self._count
