"""Shared fixtures for the Melodeck core tests."""

from pathlib import Path

import pytest

from melodeck.core.defaults import P4G
from melodeck.core.file_io import write_document
from melodeck.core.paths import AppPaths
from melodeck.core.save_queue import SaveQueue


class ManualTimer:
    """Stand-in for ``threading.Timer`` that only fires when told to."""

    def __init__(self, delay: float, callback) -> None:
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def live(self) -> bool:
        return self.started and not self.cancelled and not self.fired

    def fire(self) -> None:
        """Run the callback even if cancelled, like a timer thread that lost the race."""
        self.fired = True
        self.callback()


class ManualTimers:
    def __init__(self) -> None:
        self.created: list[ManualTimer] = []

    def __call__(self, delay: float, callback) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.created.append(timer)
        return timer

    def live(self) -> list[ManualTimer]:
        return [t for t in self.created if t.live]

    def fire_all(self) -> None:
        for timer in self.live():
            timer.fire()


@pytest.fixture(scope="session")
def qt_app():
    from PySide6.QtCore import QCoreApplication
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def queue(timers: ManualTimers) -> SaveQueue:
    return SaveQueue(timer_factory=timers)


@pytest.fixture
def paths(tmp_path: Path) -> AppPaths:
    return AppPaths(tmp_path / "melodeck")


DEFAULT_SONGS = [
    {
        "id": "0",
        "isEnabled": False,
        "name": "Your Affection",
        "category": "Battle",
        "originalFile": "bgm_01.wav",
        "replacementFilePath": None,
        "loopStartSample": 0,
        "loopEndSample": 0,
        "outputFilePath": "bgm/01.raw",
        "extraData": None,
    },
    {
        "id": "1",
        "isEnabled": False,
        "name": "Heartbeat, Heartbreak",
        "category": "Dungeon",
        "originalFile": "bgm_02.wav",
        "replacementFilePath": None,
        "loopStartSample": 0,
        "loopEndSample": 0,
        "outputFilePath": "bgm/02.raw",
        "extraData": {"cue": 2},
    },
    {
        "id": "2",
        "isEnabled": False,
        "name": "Unused Jingle",
        "category": "hidden",
        "originalFile": None,
        "replacementFilePath": None,
        "loopStartSample": 0,
        "loopEndSample": 0,
        "outputFilePath": "bgm/03.raw",
        "extraData": None,
    },
]


@pytest.fixture
def default_music_data(paths: AppPaths) -> Path:
    """Write a three-song default music data document for P4G."""
    return write_document(
        paths.default_music_data_path(P4G),
        {"game": P4G, "songs": DEFAULT_SONGS},
    )
