"""One analysis tick of the meter.

:class:`MeterEngine` owns the per-session state (smoothing, live history,
running peak, detector) plus the process-wide session aggregator, and runs
a sample block through all of them in a fixed order.  It has no knowledge
of Qt or of the audio device, which makes it easy to drive from tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .constants import HISTORY_INTERVAL_MS
from .detector import EventDetector, EventLog, SoundEvent
from .history import HistoryBuffer, SessionAggregator
from .loudness import estimate_db
from .settings import Settings, SettingsStore
from .smoothing import Smoother

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickResult:
    """Outcome of one tick."""

    current_db: int
    timestamp_ms: int
    display_db: Optional[float]
    peak_db: int
    alerting: bool
    qualified: bool


class MeterEngine:
    """Runs the loudness pipeline for each sample block.

    Args:
        store: Source of the current settings; coefficients are re-derived
            whenever it changes.
        scheduler: Clock and deferred-call provider.
        notifier: Receives ``notify(title, body)`` for each event.
        aggregator: Session trend collector shared across monitoring
            sessions; a new one is created if omitted.
        on_event: Optional callback for every recorded event.
    """

    def __init__(
        self,
        store: SettingsStore,
        scheduler,
        notifier,
        aggregator: Optional[SessionAggregator] = None,
        on_event: Optional[Callable[[SoundEvent], None]] = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.smoother = Smoother(store.settings.smoothing_speed)
        self.history = HistoryBuffer()
        self.aggregator = aggregator if aggregator is not None else SessionAggregator()
        self.event_log = EventLog()
        self.detector = EventDetector(
            scheduler, notifier, event_log=self.event_log, on_event=on_event
        )
        self.peak_db: int = 0
        self._last_history_ms: Optional[int] = None
        store.subscribe(self._on_settings_changed)

    def _on_settings_changed(self, settings: Settings) -> None:
        self.smoother.configure(settings.smoothing_speed)

    # --------------------------------------------------------------
    def tick(self, samples: np.ndarray, now_ms: int) -> TickResult:
        settings = self.store.settings
        current_db = estimate_db(samples, settings.calibration_offset_db)

        display_db = self.smoother.update(current_db, now_ms)

        if self._last_history_ms is None or now_ms - self._last_history_ms >= HISTORY_INTERVAL_MS:
            self.history.append(current_db)
            self._last_history_ms = now_ms

        self.peak_db = max(self.peak_db, current_db)
        self.aggregator.record(current_db)

        qualified = self.detector.update(
            current_db,
            now_ms,
            settings.threshold_db,
            settings.duration_threshold_sec,
        )
        return TickResult(
            current_db=current_db,
            timestamp_ms=now_ms,
            display_db=display_db,
            peak_db=self.peak_db,
            alerting=self.detector.alerting,
            qualified=qualified,
        )

    def reset(self) -> None:
        """Clear per-session state; the event log and session trend survive."""
        self.smoother.reset()
        self.history.reset()
        self.peak_db = 0
        self._last_history_ms = None
        self.detector.reset()


__all__ = ["MeterEngine", "TickResult"]
