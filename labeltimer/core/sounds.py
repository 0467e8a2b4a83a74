"""Alarm Sounds - Sound catalog, resolution and playback.

Sounds ship as files in a sounds directory (see AlarmSettings.sounds_dir).
Playback goes through pygame.mixer, which handles WAV, OGG and MP3.
"""

import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
import pygame.mixer  # noqa: E402

logger = logging.getLogger(__name__)


class AlarmSound(Enum):
    """Bundled alarm sounds."""

    MELODY = ("melody", "mp3")
    LOW_BUZZ = ("low_buzz", "wav")
    HIGH_BEEP = ("high_beep", "wav")
    SILENCE = ("silence", "wav")

    @property
    def file_name(self) -> str:
        return self.value[0]

    @property
    def file_extension(self) -> str:
        return self.value[1]

    @property
    def filename(self) -> str:
        return f"{self.file_name}.{self.file_extension}"

    @classmethod
    def default(cls) -> "AlarmSound":
        return cls.MELODY

    @classmethod
    def from_name(cls, name: str) -> "AlarmSound | None":
        """Look up a sound by file name ("low_buzz") or member name ("LOW_BUZZ")."""
        key = name.strip()
        for sound in cls:
            if key == sound.file_name or key.upper() == sound.name:
                return sound
        return None


SoundDescriptor = AlarmSound | str | Path


class SoundResolver(ABC):
    """Turns a sound descriptor into a playable file."""

    @abstractmethod
    def resolve(self, sound: SoundDescriptor) -> Path | None:
        """Return a playable path, or None if nothing can be found."""
        ...


class BundleSoundResolver(SoundResolver):
    """Resolve catalog sounds from a directory, with a fallback sound.

    Descriptors may be an AlarmSound, a catalog name, or a path to any
    audio file. Catalog sounds whose file is missing fall back to the
    fallback sound; explicit paths do not.
    """

    def __init__(
        self,
        sounds_dir: str | Path,
        fallback: AlarmSound | None = AlarmSound.MELODY,
    ):
        """Initialize resolver.

        Args:
            sounds_dir: Directory holding the catalog files.
            fallback: Sound to use when a catalog file is missing (None disables).
        """
        self._sounds_dir = Path(sounds_dir).expanduser()
        self._fallback = fallback

    @property
    def sounds_dir(self) -> Path:
        return self._sounds_dir

    def resolve(self, sound: SoundDescriptor) -> Path | None:
        if isinstance(sound, str):
            catalog = AlarmSound.from_name(sound)
            sound = catalog if catalog else Path(sound)

        if isinstance(sound, Path):
            path = sound.expanduser()
            if path.is_file():
                return path
            logger.warning("Sound file not found: %s", path)
            return None

        path = self._sounds_dir / sound.filename
        if path.is_file():
            return path

        if self._fallback and self._fallback is not sound:
            fallback = self._sounds_dir / self._fallback.filename
            if fallback.is_file():
                logger.warning(
                    "Sound '%s' missing, falling back to '%s'",
                    sound.file_name,
                    self._fallback.file_name,
                )
                return fallback

        logger.warning("No playable file for sound '%s' in %s", sound.file_name, self._sounds_dir)
        return None


class PlaybackHandle(ABC):
    """A loaded sound that can be started and stopped."""

    @abstractmethod
    def play(self, loops: int = 0) -> bool:
        """Start playback.

        Args:
            loops: Extra loops after the first play (-1 = forever).

        Returns:
            True if playback started.
        """
        ...

    @abstractmethod
    def stop(self) -> None:
        ...

    @property
    @abstractmethod
    def duration(self) -> float:
        """Length of a single play in seconds."""
        ...


class PlaybackBackend(ABC):
    """Loads files into PlaybackHandles."""

    @abstractmethod
    def load(self, path: Path) -> PlaybackHandle:
        """Load an audio file.

        Raises:
            Exception: Any backend error; callers wrap it.
        """
        ...


class PygameHandle(PlaybackHandle):
    """PlaybackHandle over a pygame.mixer.Sound."""

    def __init__(self, sound: "pygame.mixer.Sound", path: Path):
        self._sound = sound
        self._path = path
        self._channel: "pygame.mixer.Channel | None" = None

    def play(self, loops: int = 0) -> bool:
        self._channel = self._sound.play(loops=loops)
        if self._channel is None:
            logger.warning("No free mixer channel for '%s'", self._path.name)
            return False
        return True

    def stop(self) -> None:
        self._sound.stop()
        self._channel = None

    @property
    def duration(self) -> float:
        return float(self._sound.get_length())

    def __repr__(self) -> str:
        return f"PygameHandle({self._path.name})"


class PygameBackend(PlaybackBackend):
    """Playback through pygame.mixer.

    The mixer is initialised on first load, so building a backend never
    touches the audio device.
    """

    def __init__(self, channels: int = 16):
        """Initialize backend.

        Args:
            channels: Number of mixer channels (concurrent sounds).
        """
        self._channels = channels

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init():
            return
        pygame.mixer.init()
        pygame.mixer.set_num_channels(self._channels)
        logger.debug("pygame.mixer initialised (%d channels)", self._channels)

    def load(self, path: Path) -> PlaybackHandle:
        self._ensure_mixer()
        return PygameHandle(pygame.mixer.Sound(str(path)), path)
