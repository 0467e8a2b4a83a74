"""Repeat Mode - How many times an alarm sound plays.

Playback engines count *extra* loops (0 = play once, -1 = forever) while
callers think in total plays. RepeatMode keeps both numbers explicit.
"""

from dataclasses import dataclass
from enum import Enum


class RepeatKind(Enum):
    """Kind of repetition."""

    ONCE = "once"
    REPEAT = "repeat"
    INFINITE = "infinite"


@dataclass(frozen=True)
class RepeatMode:
    """Repetition policy for an alarm sound.

    Build with the class methods rather than the constructor:
        RepeatMode.once()
        RepeatMode.repeat(3)  # 3 plays total
        RepeatMode.infinite()  # until stopped (or auto-stopped)
    """

    kind: RepeatKind
    times: int = 1

    def __post_init__(self) -> None:
        if self.kind is RepeatKind.REPEAT and self.times < 1:
            raise ValueError(f"repeat times must be >= 1, got {self.times}")

    @classmethod
    def once(cls) -> "RepeatMode":
        return cls(RepeatKind.ONCE)

    @classmethod
    def repeat(cls, times: int) -> "RepeatMode":
        """Play the sound `times` times in total.

        Raises:
            ValueError: If times is less than 1.
        """
        return cls(RepeatKind.REPEAT, int(times))

    @classmethod
    def infinite(cls) -> "RepeatMode":
        return cls(RepeatKind.INFINITE, 0)

    @classmethod
    def parse(cls, value: str) -> "RepeatMode":
        """Parse a config/CLI string.

        Accepted forms: "once", "infinite", "repeat:N", or a bare "N".

        Raises:
            ValueError: If the string is not a recognised mode.
        """
        text = str(value).strip().lower()
        if text == "once":
            return cls.once()
        if text == "infinite":
            return cls.infinite()
        if text.startswith("repeat:"):
            text = text.split(":", 1)[1]
        try:
            times = int(text)
        except ValueError:
            raise ValueError(f"Unknown repeat mode: {value!r}") from None
        return cls.repeat(times)

    @property
    def is_infinite(self) -> bool:
        return self.kind is RepeatKind.INFINITE

    @property
    def play_count(self) -> int | None:
        """Total number of plays, or None when playing until stopped."""
        if self.kind is RepeatKind.INFINITE:
            return None
        if self.kind is RepeatKind.ONCE:
            return 1
        return self.times

    @property
    def loop_count(self) -> int:
        """Extra loops after the first play (-1 means loop forever)."""
        if self.kind is RepeatKind.INFINITE:
            return -1
        return self.play_count - 1

    def __str__(self) -> str:
        if self.kind is RepeatKind.REPEAT:
            return f"repeat:{self.times}"
        return self.kind.value
