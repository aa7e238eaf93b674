"""User-tunable settings and their persistence.

The settings are a single flat record persisted as JSON under a fixed key
of a ``QSettings``-style backend (any object providing
``value(key, default)`` and ``setValue(key, value)``).  The record is
loaded once when the :class:`SettingsStore` is created and rewritten in
full on every change.  Values outside their allowed range are clamped, so
an invalid setting can never reach the detector.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .constants import (
    CALIBRATION_RANGE,
    DEFAULT_CALIBRATION_DB,
    DEFAULT_DURATION_SEC,
    DEFAULT_SMOOTHING_SPEED,
    DEFAULT_THRESHOLD_DB,
    DURATION_RANGE,
    SETTINGS_KEY,
    SMOOTHING_PRESETS,
    THRESHOLD_RANGE,
)
from .smoothing import smoothing_coefficients

logger = logging.getLogger(__name__)

# Persisted field names, kept compatible with records written by earlier
# releases of the meter.
_RECORD_FIELDS = {
    "threshold_db": "threshold",
    "duration_threshold_sec": "durationThreshold",
    "calibration_offset_db": "calibrationOffset",
    "smoothing_speed": "smoothingSpeed",
    "device_id": "deviceId",
}


def _clamp(value, bounds):
    low, high = bounds
    return max(low, min(high, value))


def _as_number(value: Any, kind: type, default):
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return kind(round(number)) if kind is int else kind(number)


@dataclass(frozen=True)
class Settings:
    """The user's meter settings."""

    threshold_db: int = DEFAULT_THRESHOLD_DB
    duration_threshold_sec: float = DEFAULT_DURATION_SEC
    calibration_offset_db: int = DEFAULT_CALIBRATION_DB
    smoothing_speed: str = DEFAULT_SMOOTHING_SPEED
    device_id: str = ""

    def clamped(self) -> "Settings":
        """Return a copy with every field coerced into its allowed range."""
        speed = self.smoothing_speed
        if speed not in SMOOTHING_PRESETS:
            speed = DEFAULT_SMOOTHING_SPEED
        return Settings(
            threshold_db=_clamp(
                _as_number(self.threshold_db, int, DEFAULT_THRESHOLD_DB), THRESHOLD_RANGE
            ),
            duration_threshold_sec=_clamp(
                _as_number(self.duration_threshold_sec, float, DEFAULT_DURATION_SEC),
                DURATION_RANGE,
            ),
            calibration_offset_db=_clamp(
                _as_number(self.calibration_offset_db, int, DEFAULT_CALIBRATION_DB),
                CALIBRATION_RANGE,
            ),
            smoothing_speed=speed,
            device_id="" if self.device_id is None else str(self.device_id),
        )

    @property
    def smoothing_alpha(self) -> float:
        return smoothing_coefficients(self.smoothing_speed)[0]

    @property
    def refresh_interval_ms(self) -> int:
        return smoothing_coefficients(self.smoothing_speed)[1]

    def to_record(self) -> dict[str, Any]:
        """Return the flat, JSON-serialisable persisted form."""
        return {
            record_name: getattr(self, field)
            for field, record_name in _RECORD_FIELDS.items()
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Settings":
        """Build settings from a persisted record.

        Missing or malformed fields take their default value.
        """
        defaults = cls()
        values = {
            field: record.get(record_name, getattr(defaults, field))
            for field, record_name in _RECORD_FIELDS.items()
        }
        return cls(**values).clamped()


class SettingsStore:
    """Process-wide holder of the current :class:`Settings`.

    Args:
        backend: Key-value store with the ``QSettings`` API.
        key: Key the JSON record is stored under.
    """

    def __init__(self, backend, key: str = SETTINGS_KEY) -> None:
        self._backend = backend
        self._key = key
        self._listeners: list[Callable[[Settings], None]] = []
        self._settings = self._load()

    @property
    def settings(self) -> Settings:
        return self._settings

    def _load(self) -> Settings:
        raw = self._backend.value(self._key, None)
        if raw is None or raw == "":
            logger.info("No saved settings, using defaults")
            return Settings()
        try:
            record = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable saved settings: %s", e)
            return Settings()
        if not isinstance(record, Mapping):
            logger.warning("Ignoring saved settings of type %s", type(record).__name__)
            return Settings()
        settings = Settings.from_record(record)
        logger.debug("Loaded settings %s", settings)
        return settings

    def save(self) -> None:
        self._backend.setValue(self._key, json.dumps(self._settings.to_record()))

    def update(self, **changes: Any) -> Settings:
        """Apply ``changes`` (``Settings`` field names), persist and notify.

        Raises:
            TypeError: If a name is not a settings field.
        """
        self._settings = dataclasses.replace(self._settings, **changes).clamped()
        self.save()
        for listener in list(self._listeners):
            listener(self._settings)
        return self._settings

    def subscribe(self, listener: Callable[[Settings], None]) -> None:
        """Call ``listener`` with the new settings after every update."""
        self._listeners.append(listener)


__all__ = ["Settings", "SettingsStore"]
