"""Shared fakes for alarm tests."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from labeltimer.core.alarm_player import AlarmPlayer
from labeltimer.core.haptics import LogHaptics
from labeltimer.core.scheduler import ScheduledTask, Scheduler
from labeltimer.core.sounds import (
    AlarmSound,
    BundleSoundResolver,
    PlaybackBackend,
    PlaybackHandle,
)


class ManualScheduler(Scheduler):
    """Scheduler driven by advance() instead of real time."""

    def __init__(self):
        self.now = 0.0
        self._entries: list[list] = []  # [due, interval, task]

    def call_later(
        self, delay: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(callback, name=name)
        self._entries.append([self.now + delay, None, task])
        return task

    def call_every(
        self, interval: float, callback: Callable[[], Any], name: str = "task"
    ) -> ScheduledTask:
        task = ScheduledTask(callback, repeating=True, name=name)
        self._entries.append([self.now + interval, interval, task])
        return task

    def advance(self, seconds: float) -> None:
        """Move time forward, firing everything that comes due in order."""
        target = self.now + seconds
        while True:
            live = [e for e in self._entries if not e[2].done]
            self._entries = live
            due = [e for e in live if e[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: e[0])
            self.now = entry[0]
            due_at, interval, task = entry
            if interval is None:
                self._entries.remove(entry)
            else:
                entry[0] = due_at + interval
            task.run_once()
        self.now = target

    @property
    def armed(self) -> list[ScheduledTask]:
        return [e[2] for e in self._entries if not e[2].done]


class FakeHandle(PlaybackHandle):
    def __init__(self, path: Path, started: bool = True, duration: float = 0.5):
        self.path = path
        self.started = started
        self._duration = duration
        self.loops: int | None = None
        self.playing = False
        self.stop_calls = 0

    def play(self, loops: int = 0) -> bool:
        self.loops = loops
        self.playing = self.started
        return self.started

    def stop(self) -> None:
        self.playing = False
        self.stop_calls += 1

    @property
    def duration(self) -> float:
        return self._duration


class FakeBackend(PlaybackBackend):
    """Records every handle it creates."""

    def __init__(self):
        self.handles: list[FakeHandle] = []
        self.fail_load: Exception | None = None
        self.refuse_play = False
        self.duration = 0.5

    def load(self, path: Path) -> PlaybackHandle:
        if self.fail_load:
            raise self.fail_load
        handle = FakeHandle(path, started=not self.refuse_play, duration=self.duration)
        self.handles.append(handle)
        return handle


@pytest.fixture
def sounds_dir(tmp_path):
    """Sounds directory holding melody and low_buzz only."""
    directory = tmp_path / "sounds"
    directory.mkdir()
    (directory / AlarmSound.MELODY.filename).write_bytes(b"ID3")
    (directory / AlarmSound.LOW_BUZZ.filename).write_bytes(b"RIFF")
    return directory


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def haptics():
    return LogHaptics()


@pytest.fixture
def player(sounds_dir, backend, haptics, scheduler):
    player = AlarmPlayer(
        resolver=BundleSoundResolver(sounds_dir, fallback=None),
        backend=backend,
        haptics=haptics,
        scheduler=scheduler,
        auto_stop_interval=900,
        vibration_interval=1.7,
    )
    yield player
    player.stop_all()
