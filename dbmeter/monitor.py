"""Monitoring session: device ownership and the analysis loop.

:class:`Monitor` lives for the whole process.  It owns at most one
:class:`~dbmeter.audio_source.AudioSource` at a time and drives the
:class:`~dbmeter.engine.MeterEngine` from a tick that re-arms itself on the
scheduler after every iteration, so the loop never blocks the event loop.
Results are published through Qt signals.

Starting always stops the previous session first, and a device switch is a
full stop followed by a start.  Every session gets a new number; a tick
belonging to an older session finishes its iteration but does not re-arm.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6 import QtCore

from .audio_source import AudioSource, DeviceUnavailableError
from .constants import BUFFER_SIZE, SESSION_INTERVAL_MS, TICK_INTERVAL_MS
from .detector import SoundEvent
from .engine import MeterEngine
from .history import SessionAggregator
from .loudness import spectrum_levels
from .scheduler import QtScheduler
from .settings import SettingsStore

logger = logging.getLogger(__name__)


class Monitor(QtCore.QObject):
    """Capture audio from the selected device and run the meter on it."""

    # Smoothed value, only when due for display
    levelChanged = QtCore.Signal(float)
    # Instantaneous reading and running peak
    readingChanged = QtCore.Signal(int, int)
    alertChanged = QtCore.Signal(bool)
    historyChanged = QtCore.Signal(list)
    spectrumChanged = QtCore.Signal(object)
    sessionTrendChanged = QtCore.Signal(list)
    eventLogged = QtCore.Signal(object)
    runningChanged = QtCore.Signal(bool)
    errorOccurred = QtCore.Signal(str)

    def __init__(
        self,
        store: SettingsStore,
        notifier,
        *,
        scheduler=None,
        source_factory: Callable[[str], AudioSource] = AudioSource,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.store = store
        self.scheduler = scheduler if scheduler is not None else QtScheduler(self)
        self.source_factory = source_factory
        self.source: Optional[AudioSource] = None
        self.aggregator = SessionAggregator(on_flush=self.sessionTrendChanged.emit)
        self.engine = MeterEngine(
            store,
            self.scheduler,
            notifier,
            aggregator=self.aggregator,
            on_event=self._on_event,
        )
        self._session = 0
        self._alerting = False
        # The session trend is collected for the lifetime of the process.
        self._aggregation_timer = self.scheduler.call_every(
            SESSION_INTERVAL_MS, self.aggregator.flush
        )

    # --------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self.source is not None

    @property
    def event_log(self):
        return self.engine.event_log

    def start(self, device_id: Optional[str] = None) -> bool:
        """Start monitoring ``device_id`` (default: the saved device).

        Returns ``False`` if the device could not be acquired; in that case
        nothing is left running and the meter state stays at its defaults.
        """
        self.stop()

        device_id = device_id if device_id is not None else self.store.settings.device_id
        if device_id is None or device_id == "":
            logger.warning("No input device selected")
            self.errorOccurred.emit("No input device selected")
            return False

        source = self.source_factory(device_id)
        try:
            source.open()
        except DeviceUnavailableError as e:
            logger.error("Audio error: %s", e)
            self.errorOccurred.emit(str(e))
            return False

        self.source = source
        self._session += 1
        if self.store.settings.device_id != str(device_id):
            self.store.update(device_id=str(device_id))
        logger.info("Monitoring started on device %s", device_id)
        self.runningChanged.emit(True)
        self._tick(self._session)
        return True

    def stop(self) -> None:
        """Release the device and halt the loop.  Safe to call when idle."""
        if self.source is None:
            return
        source, self.source = self.source, None
        self._session += 1
        try:
            source.close()
        except Exception as e:
            logger.warning("Error while releasing device: %s", e)

        self.engine.reset()
        self._set_alerting(False)
        self.readingChanged.emit(0, 0)
        self.historyChanged.emit(self.engine.history.values())
        self.runningChanged.emit(False)
        logger.info("Monitoring stopped")

    def switch_device(self, device_id: str) -> bool:
        return self.start(device_id)

    # --------------------------------------------------------------
    def _tick(self, session: int) -> None:
        if session != self._session or self.source is None:
            return

        window = self.source.read()
        result = self.engine.tick(window[-BUFFER_SIZE:], self.scheduler.now_ms())

        if result.display_db is not None:
            self.levelChanged.emit(result.display_db)
        self.readingChanged.emit(result.current_db, result.peak_db)
        self._set_alerting(result.alerting)
        self.historyChanged.emit(self.engine.history.values())
        self.spectrumChanged.emit(spectrum_levels(window))

        # stop() may have run from one of the slots above.
        if session == self._session:
            self.scheduler.call_later(TICK_INTERVAL_MS, lambda: self._tick(session))

    def _set_alerting(self, alerting: bool) -> None:
        if alerting != self._alerting:
            self._alerting = alerting
            self.alertChanged.emit(alerting)

    def _on_event(self, event: SoundEvent) -> None:
        self.eventLogged.emit(event)


__all__ = ["Monitor"]
