"""Alarm Player - Per-id alarm sound, vibration and auto-stop.

Each alarm is addressed by an opaque id and owns up to three resources:
a looping sound, a repeating vibration timer and, for infinite alarms, a
deferred auto-stop. Alarms are independent: stopping or expiring one never
touches another. Alarms are transient (not persisted to disk).
"""

import logging
import threading
import uuid
from collections.abc import Hashable
from pathlib import Path

from labeltimer.core.haptics import Haptics, LogHaptics
from labeltimer.core.repeat_mode import RepeatMode
from labeltimer.core.scheduler import ScheduledTask, Scheduler, ThreadScheduler
from labeltimer.core.settings import DEFAULT_AUTO_STOP_SECONDS, AlarmSettings
from labeltimer.core.sounds import (
    AlarmSound,
    BundleSoundResolver,
    PlaybackBackend,
    PlaybackHandle,
    PygameBackend,
    SoundDescriptor,
    SoundResolver,
)

logger = logging.getLogger(__name__)

AlarmId = Hashable


class PlaybackError(Exception):
    """Base class for alarm playback failures."""

    def __init__(self, alarm_id: AlarmId, message: str):
        super().__init__(message)
        self.alarm_id = alarm_id


class ResourceNotFound(PlaybackError):
    """The sound descriptor resolved to nothing playable."""

    pass


class PlaybackStartFailed(PlaybackError):
    """A file was found but the playback engine would not start it."""

    pass


class AlarmPlayer:
    """Manages concurrent, independently stoppable alarms.

    Registries are guarded by a single lock. Platform calls (stopping a
    sound, cancelling a timer) happen after the entries are popped, outside
    the lock. Repeated starts for the same id are last-start-wins.
    """

    def __init__(
        self,
        resolver: SoundResolver,
        backend: PlaybackBackend,
        haptics: Haptics | None = None,
        scheduler: Scheduler | None = None,
        auto_stop_interval: float = DEFAULT_AUTO_STOP_SECONDS,
        vibration_interval: float = 1.7,
        feedback_sound: SoundDescriptor = AlarmSound.LOW_BUZZ,
    ):
        """Initialize the alarm player.

        Args:
            resolver: Sound resolution service.
            backend: Playback engine.
            haptics: Haptic pulse primitive (default: LogHaptics).
            scheduler: Deferred/repeating callbacks (default: ThreadScheduler).
            auto_stop_interval: Seconds before an infinite alarm stops itself.
            vibration_interval: Seconds between vibration pulses.
            feedback_sound: Sound used by play_transient_feedback().
        """
        self._resolver = resolver
        self._backend = backend
        self._haptics = haptics or LogHaptics()
        self._scheduler = scheduler or ThreadScheduler()
        self._auto_stop_interval = auto_stop_interval
        self._vibration_interval = vibration_interval
        self._feedback_sound = feedback_sound

        self._sounds: dict[AlarmId, PlaybackHandle] = {}
        self._vibrations: dict[AlarmId, ScheduledTask] = {}
        self._auto_stops: dict[AlarmId, ScheduledTask] = {}
        self._feedback: dict[uuid.UUID, tuple[PlaybackHandle, ScheduledTask]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: AlarmSettings,
        backend: PlaybackBackend | None = None,
        haptics: Haptics | None = None,
        scheduler: Scheduler | None = None,
    ) -> "AlarmPlayer":
        """Build a player from AlarmSettings."""
        return cls(
            resolver=BundleSoundResolver(
                settings.sounds_dir, fallback=AlarmSound.from_name(settings.default_sound)
            ),
            backend=backend or PygameBackend(),
            haptics=haptics,
            scheduler=scheduler,
            auto_stop_interval=settings.auto_stop_seconds,
            vibration_interval=settings.vibration_interval,
            feedback_sound=AlarmSound.from_name(settings.feedback_sound),
        )

    # -- sound --

    def start_sound(
        self,
        alarm_id: AlarmId,
        sound: SoundDescriptor,
        repeat_mode: RepeatMode = RepeatMode.infinite(),
    ) -> None:
        """Start the alarm sound for an id.

        A sound already playing for the id is stopped and replaced. Infinite
        alarms get an auto-stop after auto_stop_interval seconds.

        Args:
            alarm_id: Alarm identifier.
            sound: AlarmSound, catalog name or file path.
            repeat_mode: How many times the sound plays.

        Raises:
            ResourceNotFound: If the sound resolves to no file.
            PlaybackStartFailed: If the backend cannot load or start it.
        """
        logger.info("Alarm '%s' play: sound=%s mode=%s", alarm_id, sound, repeat_mode)

        path = self._resolver.resolve(sound)
        if path is None:
            raise ResourceNotFound(alarm_id, f"No playable file for sound {sound!r}")

        handle = self._start_handle(alarm_id, path, repeat_mode.loop_count)

        with self._lock:
            old_handle = self._sounds.get(alarm_id)
            old_auto_stop = self._auto_stops.pop(alarm_id, None)
            self._sounds[alarm_id] = handle
            if repeat_mode.is_infinite:
                self._auto_stops[alarm_id] = self._schedule_auto_stop(alarm_id)

        if old_auto_stop:
            old_auto_stop.cancel()
        if old_handle:
            logger.debug("Alarm '%s' replaced previous sound", alarm_id)
            self._stop_handle(alarm_id, old_handle)

    def _start_handle(self, alarm_id: AlarmId, path: Path, loops: int) -> PlaybackHandle:
        """Load and start a sound, wrapping any backend failure."""
        try:
            handle = self._backend.load(path)
            started = handle.play(loops=loops)
        except Exception as e:
            logger.error("Alarm '%s' player init failed: %s", alarm_id, e)
            raise PlaybackStartFailed(alarm_id, f"Could not play {path.name}: {e}") from e

        if not started:
            logger.error("Alarm '%s' playback did not start", alarm_id)
            raise PlaybackStartFailed(alarm_id, f"Playback of {path.name} did not start")

        logger.debug("Alarm '%s' started %s (loops=%d)", alarm_id, path.name, loops)
        return handle

    def _schedule_auto_stop(self, alarm_id: AlarmId) -> ScheduledTask:
        """Schedule stop(alarm_id). Called with the lock held."""
        task: ScheduledTask | None = None

        def auto_stop() -> None:
            with self._lock:
                current = self._auto_stops.get(alarm_id)
            # A replaced alarm's stale task must not stop its successor
            if current is not task:
                return
            logger.info(
                "Alarm '%s' auto-stopped after %.0fs", alarm_id, self._auto_stop_interval
            )
            self.stop(alarm_id)

        task = self._scheduler.call_later(
            self._auto_stop_interval, auto_stop, name=f"auto-stop-{alarm_id}"
        )
        return task

    def play_transient_feedback(self) -> None:
        """Play the short feedback sound once, outside the alarm registries.

        The handle is released after the sound's natural duration. Failures
        are logged, not raised.
        """
        path = self._resolver.resolve(self._feedback_sound)
        if path is None:
            logger.warning("Feedback sound file not found: %s", self._feedback_sound)
            return

        try:
            handle = self._backend.load(path)
            handle.play(loops=0)
            duration = handle.duration
        except Exception as e:
            logger.error("Feedback player failed: %s", e)
            return

        temp_id = uuid.uuid4()
        with self._lock:
            release = self._scheduler.call_later(
                duration, lambda: self._release_feedback(temp_id), name=f"feedback-{temp_id}"
            )
            self._feedback[temp_id] = (handle, release)

    def _release_feedback(self, temp_id: uuid.UUID) -> None:
        with self._lock:
            self._feedback.pop(temp_id, None)

    # -- vibration --

    def start_vibration(self, alarm_id: AlarmId) -> None:
        """Pulse every vibration_interval seconds until stopped.

        No-op if the id is already vibrating.
        """
        with self._lock:
            if alarm_id in self._vibrations:
                logger.debug("Alarm '%s' already vibrating", alarm_id)
                return
            task = self._scheduler.call_every(
                self._vibration_interval, self._haptics.pulse, name=f"vibrate-{alarm_id}"
            )
            self._vibrations[alarm_id] = task
        logger.info("Alarm '%s' vibration started", alarm_id)

    def play_one_shot_vibration(self) -> None:
        """Single haptic pulse, no state kept."""
        self._haptics.pulse()

    # -- stop --

    def stop(self, alarm_id: AlarmId) -> None:
        """Stop sound, vibration and auto-stop for an id.

        Safe to call for ids with no active alarm.
        """
        with self._lock:
            auto_stop = self._auto_stops.pop(alarm_id, None)
            handle = self._sounds.pop(alarm_id, None)
            vibration = self._vibrations.pop(alarm_id, None)

        if auto_stop is None and handle is None and vibration is None:
            logger.debug("Alarm '%s' not active, nothing to stop", alarm_id)
            return

        if auto_stop and auto_stop.cancel():
            logger.info("Alarm '%s' auto-stop cancelled", alarm_id)
        if handle:
            self._stop_handle(alarm_id, handle)
        if vibration:
            vibration.cancel()
        logger.info("Alarm '%s' stopped", alarm_id)

    def stop_all(self) -> None:
        """Stop every alarm (call on app shutdown)."""
        with self._lock:
            auto_stops = list(self._auto_stops.values())
            sounds = list(self._sounds.items())
            vibrations = list(self._vibrations.values())
            feedback = list(self._feedback.values())
            self._auto_stops.clear()
            self._sounds.clear()
            self._vibrations.clear()
            self._feedback.clear()

        for task in auto_stops:
            task.cancel()
        for alarm_id, handle in sounds:
            self._stop_handle(alarm_id, handle)
        for task in vibrations:
            task.cancel()
        for handle, release in feedback:
            release.cancel()
            self._stop_handle("feedback", handle)
        logger.info("All alarms stopped")

    @staticmethod
    def _stop_handle(alarm_id: AlarmId, handle: PlaybackHandle) -> None:
        try:
            handle.stop()
        except Exception as e:
            logger.error("Alarm '%s' stop error: %s", alarm_id, e)

    # -- introspection --

    def is_active(self, alarm_id: AlarmId) -> bool:
        """True if the id holds any sound, vibration or auto-stop."""
        with self._lock:
            return (
                alarm_id in self._sounds
                or alarm_id in self._vibrations
                or alarm_id in self._auto_stops
            )

    def active_ids(self) -> set[AlarmId]:
        with self._lock:
            return set(self._sounds) | set(self._vibrations) | set(self._auto_stops)

    def has_sound(self, alarm_id: AlarmId) -> bool:
        with self._lock:
            return alarm_id in self._sounds

    def is_vibrating(self, alarm_id: AlarmId) -> bool:
        with self._lock:
            return alarm_id in self._vibrations

    def has_auto_stop(self, alarm_id: AlarmId) -> bool:
        with self._lock:
            return alarm_id in self._auto_stops

    def sound_handle(self, alarm_id: AlarmId) -> PlaybackHandle | None:
        """Currently registered sound handle for an id."""
        with self._lock:
            return self._sounds.get(alarm_id)

    @property
    def feedback_count(self) -> int:
        """Transient feedback sounds still held."""
        with self._lock:
            return len(self._feedback)


_default_player: AlarmPlayer | None = None
_default_lock = threading.Lock()


def get_alarm_player(settings: AlarmSettings | None = None) -> AlarmPlayer:
    """Get the shared default player, building it on first use.

    Args:
        settings: Settings for the first build (ignored afterwards).

    Returns:
        The default AlarmPlayer instance.
    """
    global _default_player
    with _default_lock:
        if _default_player is None:
            _default_player = AlarmPlayer.from_settings(settings or AlarmSettings())
        return _default_player


def reset_alarm_player() -> None:
    """Stop and discard the shared default player."""
    global _default_player
    with _default_lock:
        player, _default_player = _default_player, None
    if player:
        player.stop_all()
