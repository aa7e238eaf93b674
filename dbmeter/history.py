"""Short- and long-horizon trend buffers.

:class:`HistoryBuffer` holds the last few seconds of readings for the live
chart.  :class:`SessionAggregator` reduces readings to one peak per
aggregation period and keeps a few hours of those peaks.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from .constants import HISTORY_LENGTH, SESSION_CAPACITY

logger = logging.getLogger(__name__)


class HistoryBuffer:
    """Fixed-length ring of recent readings, oldest first.

    The buffer starts (and resets) filled with zeros so the chart always
    spans ``length`` points.
    """

    def __init__(self, length: int = HISTORY_LENGTH) -> None:
        self.length = length
        self._values: deque[int] = deque([0] * length, maxlen=length)

    def append(self, db: int) -> None:
        self._values.append(db)

    def values(self) -> list[int]:
        return list(self._values)

    def reset(self) -> None:
        self._values = deque([0] * self.length, maxlen=self.length)

    def __len__(self) -> int:
        return len(self._values)


class SessionAggregator:
    """Collect the loudest reading of each period into a session trend.

    :meth:`record` is called on every tick; :meth:`flush` is called by a
    repeating timer.  Each flush appends the peak seen since the previous
    flush (``0`` if nothing was recorded) and starts a new period.  Only the
    last ``capacity`` peaks are kept.

    Parameters
    ----------
    capacity:
        Maximum number of points kept in the session trend.
    on_flush:
        Optional callback receiving the trend after every flush.
    """

    def __init__(
        self,
        capacity: int = SESSION_CAPACITY,
        on_flush: Optional[Callable[[list[int]], None]] = None,
    ) -> None:
        self.capacity = capacity
        self.on_flush = on_flush
        self.session_peak_db: int = 0
        self._trend: deque[int] = deque(maxlen=capacity)

    def record(self, db: int) -> None:
        if db > self.session_peak_db:
            self.session_peak_db = db

    def flush(self) -> list[int]:
        """Close the current period and return the updated trend."""
        self._trend.append(self.session_peak_db)
        logger.debug("Session point %d dB (%d points)", self.session_peak_db, len(self._trend))
        self.session_peak_db = 0
        trend = self.trend
        if self.on_flush is not None:
            self.on_flush(trend)
        return trend

    @property
    def trend(self) -> list[int]:
        return list(self._trend)


__all__ = ["HistoryBuffer", "SessionAggregator"]
