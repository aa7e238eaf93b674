"""Session handling of :class:`dbmeter.monitor.Monitor` on a manual clock."""

from __future__ import annotations

import numpy as np
import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from conftest import tone_for_db  # noqa: E402

from dbmeter.audio_source import DeviceUnavailableError  # noqa: E402
from dbmeter.constants import FFT_SIZE  # noqa: E402
from dbmeter.monitor import Monitor  # noqa: E402
from dbmeter.settings import SettingsStore  # noqa: E402


class FakeSource:
    def __init__(self, device_id: str, level_db: float = 90.0, fail: bool = False) -> None:
        self.device_id = device_id
        self.level_db = level_db
        self.fail = fail
        self.opened = False
        self.closed = False

    def open(self) -> None:
        if self.fail:
            raise DeviceUnavailableError("Permission denied")
        self.opened = True

    def read(self) -> np.ndarray:
        return tone_for_db(self.level_db, FFT_SIZE)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="module")
def app():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


@pytest.fixture
def sources() -> list:
    return []


@pytest.fixture
def monitor(app, scheduler, notifier, backend, sources):
    def factory(device_id):
        source = FakeSource(device_id)
        sources.append(source)
        return source

    return Monitor(SettingsStore(backend), notifier, scheduler=scheduler, source_factory=factory)


def _record(signal) -> list:
    seen: list = []
    signal.connect(lambda *args: seen.append(args))
    return seen


def test_start_runs_loop_and_reports_event(monitor, scheduler, notifier, sources) -> None:
    readings = _record(monitor.readingChanged)
    events = _record(monitor.eventLogged)
    alerts = _record(monitor.alertChanged)

    assert monitor.start("3") is True
    assert monitor.running
    assert sources[0].opened
    assert readings[0] == (90, 90)

    scheduler.advance_to(3100)
    assert len(notifier.calls) == 1
    assert len(events) == 1
    assert events[0][0].db == 90
    assert alerts == [(True,)]
    assert len(monitor.event_log) == 1


def test_start_persists_device(monitor, backend) -> None:
    monitor.start("5")
    assert monitor.store.settings.device_id == "5"
    assert '"deviceId": "5"' in backend.data["db-meter-settings"]


def test_stop_halts_loop_and_resets(monitor, scheduler, sources) -> None:
    readings = _record(monitor.readingChanged)
    running = _record(monitor.runningChanged)

    monitor.start("1")
    scheduler.advance_to(500)
    monitor.stop()
    assert sources[0].closed
    assert not monitor.running
    assert readings[-1] == (0, 0)
    assert running == [(True,), (False,)]
    assert monitor.engine.peak_db == 0

    count = len(readings)
    scheduler.advance_to(2000)
    assert len(readings) == count


def test_stop_when_idle_is_noop(monitor) -> None:
    running = _record(monitor.runningChanged)
    monitor.stop()
    assert running == []


def test_switch_device_releases_previous_first(monitor, scheduler, sources) -> None:
    monitor.start("1")
    scheduler.advance_to(100)
    assert monitor.switch_device("2") is True
    assert [s.device_id for s in sources] == ["1", "2"]
    assert sources[0].closed
    assert not sources[1].closed

    readings = _record(monitor.readingChanged)
    scheduler.advance_to(116)
    # Only the new session's tick is still re-arming.
    assert len(readings) == 1


def test_acquisition_failure_reports_error(app, scheduler, notifier, backend) -> None:
    monitor = Monitor(
        SettingsStore(backend),
        notifier,
        scheduler=scheduler,
        source_factory=lambda device_id: FakeSource(device_id, fail=True),
    )
    errors = _record(monitor.errorOccurred)
    assert monitor.start("1") is False
    assert not monitor.running
    assert errors == [("Permission denied",)]
    assert monitor.store.settings.device_id == ""


def test_start_without_device(monitor) -> None:
    errors = _record(monitor.errorOccurred)
    assert monitor.start() is False
    assert len(errors) == 1


def test_session_trend_flushes_every_thirty_seconds(monitor, scheduler) -> None:
    trends = _record(monitor.sessionTrendChanged)
    scheduler.advance_to(30000)
    assert trends == [([0],)]

    monitor.start("1")
    scheduler.advance_to(60000)
    assert trends[-1] == ([0, 90],)
