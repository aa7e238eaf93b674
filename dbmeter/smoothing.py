"""Exponential smoothing of the instantaneous reading for display."""

from __future__ import annotations

from typing import Optional

from .constants import DEFAULT_SMOOTHING_SPEED, SMOOTHING_PRESETS


def smoothing_coefficients(speed: str) -> tuple[float, int]:
    """Return ``(alpha, refresh_interval_ms)`` for a smoothing ``speed``.

    Unknown names fall back to the ``"medium"`` preset.
    """

    return SMOOTHING_PRESETS.get(speed, SMOOTHING_PRESETS[DEFAULT_SMOOTHING_SPEED])


class Smoother:
    """Exponential moving average with a throttled display value.

    The average is updated on every tick so that smoothing continuity does
    not depend on how often the display is refreshed.  Only the emission of
    the display value is rate limited: :meth:`update` returns the smoothed
    value when more than ``refresh_interval_ms`` have passed since the last
    emission, otherwise ``None``.

    Parameters
    ----------
    speed:
        Name of the smoothing preset (``"slow"``, ``"medium"`` or
        ``"fast"``).
    """

    def __init__(self, speed: str = DEFAULT_SMOOTHING_SPEED) -> None:
        self.alpha: float = 0.0
        self.refresh_interval_ms: int = 0
        self.smoothed_db: float = 0.0
        self.last_display_update_ms: int = 0
        self.configure(speed)

    def configure(self, speed: str) -> None:
        """Switch to another preset, keeping the current average."""
        self.alpha, self.refresh_interval_ms = smoothing_coefficients(speed)

    def update(self, current_db: float, now_ms: int) -> Optional[float]:
        """Fold ``current_db`` into the average.

        Returns
        -------
        float or None
            The smoothed value if it is due for display, else ``None``.
        """

        self.smoothed_db = self.alpha * current_db + (1 - self.alpha) * self.smoothed_db
        if now_ms - self.last_display_update_ms > self.refresh_interval_ms:
            self.last_display_update_ms = now_ms
            return self.smoothed_db
        return None

    def reset(self) -> None:
        self.smoothed_db = 0.0
        self.last_display_update_ms = 0


__all__ = ["Smoother", "smoothing_coefficients"]
