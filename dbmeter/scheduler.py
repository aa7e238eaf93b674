"""Cooperative timers for the analysis loop.

Every piece of mutable meter state is touched from one thread: the Qt
event loop.  Components that need time or deferred work take a scheduler
object rather than calling ``QTimer`` directly, so the same code can be
driven by a manual clock in tests.  A scheduler provides:

* ``now_ms()`` – monotonic time in milliseconds,
* ``call_later(delay_ms, callback)`` – run ``callback`` once,
* ``call_every(interval_ms, callback)`` – run ``callback`` repeatedly,
  returning a handle with a ``stop()`` method.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from PySide6 import QtCore


class QtScheduler:
    """Scheduler backed by ``QTimer`` on the current thread's event loop."""

    def __init__(self, parent: Optional[QtCore.QObject] = None) -> None:
        self.parent = parent
        # Keep repeating timers alive for as long as the scheduler is.
        self._timers: list[QtCore.QTimer] = []

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> None:
        QtCore.QTimer.singleShot(int(delay_ms), callback)

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> QtCore.QTimer:
        timer = QtCore.QTimer(self.parent)
        timer.setInterval(int(interval_ms))
        timer.timeout.connect(callback)
        timer.start()
        self._timers.append(timer)
        return timer


__all__ = ["QtScheduler"]
