"""Sustained-noise detection.

An *episode* is a run of consecutive ticks whose reading is strictly above
the threshold.  Once an episode has lasted ``duration_threshold_sec`` the
detector waits a further :data:`~dbmeter.constants.PEAK_CAPTURE_DELAY_MS`
so the peak can keep climbing, then records one :class:`SoundEvent` and
sends one notification.  Notifications are at least
:data:`~dbmeter.constants.NOTIFY_COOLDOWN_MS` apart, measured from the
previous notification rather than from the end of an episode.
"""

from __future__ import annotations

import datetime
import enum
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .constants import (
    EVENT_LOG_CAPACITY,
    NOTIFICATION_TITLE,
    NOTIFY_COOLDOWN_MS,
    PEAK_CAPTURE_DELAY_MS,
)
from .loudness import db_label

logger = logging.getLogger(__name__)


class DetectorState(enum.Enum):
    IDLE = "idle"
    SUSTAINING = "sustaining"
    COOLING = "cooling"


@dataclass(frozen=True)
class SoundEvent:
    """A recorded sustained-noise event."""

    id: str
    timestamp: str
    db: int
    label: str


@dataclass(frozen=True)
class PendingEmission:
    """Values fixed at qualification time for a scheduled emission."""

    threshold_db: int
    duration_threshold_sec: float
    qualified_at_ms: int
    sustained_sec: float


class EventLog:
    """Bounded log of events, newest first."""

    def __init__(self, capacity: int = EVENT_LOG_CAPACITY) -> None:
        self.capacity = capacity
        self._events: deque[SoundEvent] = deque(maxlen=capacity)

    def add(self, event: SoundEvent) -> None:
        # appendleft on a full deque drops the oldest entry from the right
        self._events.appendleft(event)

    def clear(self) -> None:
        self._events.clear()

    def events(self) -> list[SoundEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[SoundEvent]:
        return iter(list(self._events))


def format_seconds(value: float) -> str:
    """Render a duration without a trailing ``.0`` (``2`` / ``2.5``)."""
    return f"{value:g}"


def notification_body(peak_db: int, duration_threshold_sec: float) -> str:
    return f"Level reached {peak_db} dB for {format_seconds(duration_threshold_sec)}+ sec."


def _clock_timestamp() -> str:
    return datetime.datetime.now().strftime("%H:%M:%S")


class EventDetector:
    """State machine turning readings into sustained-noise events.

    Parameters
    ----------
    scheduler:
        Provides ``call_later(delay_ms, callback)`` for the deferred
        emission (see :mod:`dbmeter.scheduler`).
    notifier:
        Object with ``notify(title, body)``.  Failures are logged and never
        prevent the event from being recorded.
    event_log:
        Log events are appended to; a new one is created if omitted.
    on_event:
        Optional callback invoked with each new :class:`SoundEvent`.
    timestamp:
        Callable returning the human readable event time.
    """

    def __init__(
        self,
        scheduler,
        notifier,
        event_log: Optional[EventLog] = None,
        on_event: Optional[Callable[[SoundEvent], None]] = None,
        timestamp: Callable[[], str] = _clock_timestamp,
    ) -> None:
        self.scheduler = scheduler
        self.notifier = notifier
        self.event_log = event_log if event_log is not None else EventLog()
        self.on_event = on_event
        self.timestamp = timestamp

        self.loud_start_ms: Optional[int] = None
        self.event_peak_db: int = 0
        self.last_notify_ms: Optional[int] = None
        self.alerting: bool = False
        self._pending: Optional[PendingEmission] = None
        self._last_tick_ms: Optional[int] = None

    # --------------------------------------------------------------
    @property
    def event_pending(self) -> bool:
        """``True`` between qualification and emission."""
        return self._pending is not None

    @property
    def state(self) -> DetectorState:
        if self._pending is not None:
            return DetectorState.COOLING
        if self._last_tick_ms is not None and not self._cooldown_elapsed(self._last_tick_ms):
            return DetectorState.COOLING
        if self.loud_start_ms is not None:
            return DetectorState.SUSTAINING
        return DetectorState.IDLE

    def _cooldown_elapsed(self, now_ms: int) -> bool:
        if self.last_notify_ms is None:
            return True
        return now_ms - self.last_notify_ms > NOTIFY_COOLDOWN_MS

    # --------------------------------------------------------------
    def update(
        self,
        current_db: int,
        now_ms: int,
        threshold_db: int,
        duration_threshold_sec: float,
    ) -> bool:
        """Process one reading.

        Returns
        -------
        bool
            ``True`` if this reading qualified an episode and scheduled an
            emission.
        """

        self._last_tick_ms = now_ms

        if current_db <= threshold_db:
            # Strictly contiguous: one quiet tick restarts the sustain timer.
            self.loud_start_ms = None
            self.alerting = False
            return False

        self.alerting = True
        if self.loud_start_ms is None:
            self.loud_start_ms = now_ms
        self.event_peak_db = max(self.event_peak_db, current_db)

        sustained_ms = now_ms - self.loud_start_ms
        if (
            self._pending is None
            and sustained_ms >= duration_threshold_sec * 1000
            and self._cooldown_elapsed(now_ms)
        ):
            pending = PendingEmission(
                threshold_db=threshold_db,
                duration_threshold_sec=duration_threshold_sec,
                qualified_at_ms=now_ms,
                sustained_sec=sustained_ms / 1000,
            )
            self._pending = pending
            logger.debug("Episode qualified after %.2fs at %d dB", pending.sustained_sec, current_db)
            self.scheduler.call_later(PEAK_CAPTURE_DELAY_MS, lambda: self._emit(pending))
            return True
        return False

    def _emit(self, pending: PendingEmission) -> SoundEvent:
        peak = self.event_peak_db
        event = SoundEvent(
            id=uuid.uuid4().hex,
            timestamp=self.timestamp(),
            db=peak,
            label=db_label(peak),
        )
        logger.info(
            "Sustained noise: peak %d dB (%s), threshold %d dB for %ss",
            peak,
            event.label,
            pending.threshold_db,
            format_seconds(pending.duration_threshold_sec),
        )
        self.event_log.add(event)

        try:
            self.notifier.notify(
                NOTIFICATION_TITLE, notification_body(peak, pending.duration_threshold_sec)
            )
        except Exception as e:
            logger.warning("Notification failed, event kept in log: %s", e)

        self.last_notify_ms = self.scheduler.now_ms()
        self._pending = None
        self.event_peak_db = 0

        if self.on_event is not None:
            self.on_event(event)
        return event

    def reset(self) -> None:
        """Forget the current episode (used when the input device changes).

        A pending emission is left to fire.
        """
        self.loud_start_ms = None
        self.alerting = False


__all__ = [
    "DetectorState",
    "SoundEvent",
    "PendingEmission",
    "EventLog",
    "EventDetector",
    "format_seconds",
    "notification_body",
]
