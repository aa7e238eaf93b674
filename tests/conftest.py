"""Shared test doubles: a manual clock scheduler and an in-memory QSettings."""

from __future__ import annotations

import heapq
import itertools
import sys
from pathlib import Path
from typing import Callable

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from dbmeter.constants import BUFFER_SIZE  # noqa: E402


class _Repeating:
    def __init__(self, scheduler: "FakeScheduler", interval_ms: int, callback) -> None:
        self.scheduler = scheduler
        self.interval_ms = interval_ms
        self.callback = callback
        self.active = True

    def fire(self) -> None:
        if not self.active:
            return
        self.callback()
        if self.active:
            self.scheduler.call_later(self.interval_ms, self.fire)

    def stop(self) -> None:
        self.active = False


class FakeScheduler:
    """Scheduler whose clock only moves when the test advances it."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now = start_ms
        self._queue: list = []
        self._order = itertools.count()

    def now_ms(self) -> int:
        return self.now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> None:
        heapq.heappush(self._queue, (self.now + int(delay_ms), next(self._order), callback))

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> _Repeating:
        handle = _Repeating(self, interval_ms, callback)
        self.call_later(interval_ms, handle.fire)
        return handle

    @property
    def pending(self) -> int:
        return len(self._queue)

    def advance_to(self, target_ms: int) -> None:
        """Run every callback due up to ``target_ms`` in time order."""
        while self._queue and self._queue[0][0] <= target_ms:
            due, _, callback = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            callback()
        self.now = max(self.now, target_ms)

    def advance(self, delta_ms: int) -> None:
        self.advance_to(self.now + delta_ms)


class MemorySettings:
    """Dictionary with the two ``QSettings`` methods the store uses."""

    def __init__(self, initial: dict | None = None) -> None:
        self.data = dict(initial or {})

    def value(self, key, default=None):
        return self.data.get(key, default)

    def setValue(self, key, value) -> None:  # noqa: N802 - QSettings API
        self.data[key] = value


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def notify(self, title: str, body: str) -> None:
        self.calls.append((title, body))


def tone_for_db(db: float, size: int = BUFFER_SIZE) -> np.ndarray:
    """Constant block whose uncalibrated reading is ``db``."""
    return np.full(size, 10 ** ((db - 80.0) / 20.0), dtype=np.float64)


def silence(size: int = BUFFER_SIZE) -> np.ndarray:
    return np.zeros(size, dtype=np.float32)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def backend() -> MemorySettings:
    return MemorySettings()
