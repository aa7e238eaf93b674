"""Application-wide constants used by the decibel meter.

The values in this module configure the audio capture, the loudness
estimate and the sustained-noise detector.  Centralising them avoids
magic numbers spread throughout the code base and keeps the numeric
behaviour of the meter in one place.
"""

from __future__ import annotations

# ─── Audio configuration ────────────────────────────────────────────────────

# Sampling frequency requested from the capture device.
SAMPLE_RATE: int = 44_100

# Size of the rolling capture window kept by the audio source.  The
# spectrum view uses the whole window; the loudness estimate uses the most
# recent ``BUFFER_SIZE`` samples of it.
FFT_SIZE: int = 1024
BUFFER_SIZE: int = FFT_SIZE // 2

# Block size handed to the PortAudio callback.
BLOCK_SIZE: int = 256

# Interval of the self-resubmitting analysis tick (~60 Hz, one display frame).
TICK_INTERVAL_MS: int = 16

# ─── Loudness estimate ─────────────────────────────────────────────────────

# Offset mapping a typical microphone's full-scale RMS onto a 0–120 dB
# display range.  Empirical, not derived from physics.
CALIBRATION_BASELINE_DB: float = 80.0

# RMS values at or below this are treated as silence (0 dB).
RMS_FLOOR: float = 1e-6

# Spectrum visualisation: dB range mapped onto [0, 1] and number of bars.
SPECTRUM_MIN_DB: float = -100.0
SPECTRUM_MAX_DB: float = -30.0
SPECTRUM_BARS: int = 40

# Loudness bands, as (exclusive upper bound, label).  Anything at or above
# the last bound is labelled ``LOUDEST_LABEL``.
DB_BANDS: tuple[tuple[int, str], ...] = (
    (30, "Whisper Quiet"),
    (40, "Quiet Library"),
    (50, "Quiet Room"),
    (60, "Normal Conversation"),
    (70, "Busy Office"),
    (80, "Loud Café"),
    (90, "Vacuum / Traffic"),
    (100, "Sound System"),
)
LOUDEST_LABEL: str = "Potential Hearing Damage!"

# ─── Smoothing presets ─────────────────────────────────────────────────────

# speed -> (EMA alpha, display refresh interval in ms)
SMOOTHING_PRESETS: dict[str, tuple[float, int]] = {
    "slow": (0.10, 1000),
    "medium": (0.25, 700),
    "fast": (0.60, 400),
}
DEFAULT_SMOOTHING_SPEED: str = "medium"

# ─── Event detection ───────────────────────────────────────────────────────

# Minimum time between two notifications, measured from the previous one.
NOTIFY_COOLDOWN_MS: int = 7000

# Extra time after qualification during which the event peak keeps rising.
PEAK_CAPTURE_DELAY_MS: int = 1000

NOTIFICATION_TITLE: str = "Sustained Noise Detected!"

# ─── Buffers ───────────────────────────────────────────────────────────────

EVENT_LOG_CAPACITY: int = 50
HISTORY_LENGTH: int = 100
# The live chart only takes a new point every ``HISTORY_INTERVAL_MS``.
HISTORY_INTERVAL_MS: int = 50

# 480 points at 30 s resolution cover roughly four hours.
SESSION_INTERVAL_MS: int = 30_000
SESSION_CAPACITY: int = 480

# ─── Settings ──────────────────────────────────────────────────────────────

SETTINGS_KEY: str = "db-meter-settings"
SETTINGS_ORGANISATION: str = "dbmeter"
SETTINGS_APPLICATION: str = "dbmeter"

DEFAULT_THRESHOLD_DB: int = 80
DEFAULT_DURATION_SEC: float = 2.0
DEFAULT_CALIBRATION_DB: int = 0

THRESHOLD_RANGE: tuple[int, int] = (30, 120)
DURATION_RANGE: tuple[float, float] = (0.1, 10.0)
CALIBRATION_RANGE: tuple[int, int] = (-30, 30)

EXPORT_FILENAME: str = "noise-logs.csv"

__all__ = [
    "SAMPLE_RATE",
    "FFT_SIZE",
    "BUFFER_SIZE",
    "BLOCK_SIZE",
    "TICK_INTERVAL_MS",
    "CALIBRATION_BASELINE_DB",
    "RMS_FLOOR",
    "SPECTRUM_MIN_DB",
    "SPECTRUM_MAX_DB",
    "SPECTRUM_BARS",
    "DB_BANDS",
    "LOUDEST_LABEL",
    "SMOOTHING_PRESETS",
    "DEFAULT_SMOOTHING_SPEED",
    "NOTIFY_COOLDOWN_MS",
    "PEAK_CAPTURE_DELAY_MS",
    "NOTIFICATION_TITLE",
    "EVENT_LOG_CAPACITY",
    "HISTORY_LENGTH",
    "HISTORY_INTERVAL_MS",
    "SESSION_INTERVAL_MS",
    "SESSION_CAPACITY",
    "SETTINGS_KEY",
    "SETTINGS_ORGANISATION",
    "SETTINGS_APPLICATION",
    "DEFAULT_THRESHOLD_DB",
    "DEFAULT_DURATION_SEC",
    "DEFAULT_CALIBRATION_DB",
    "THRESHOLD_RANGE",
    "DURATION_RANGE",
    "CALIBRATION_RANGE",
    "EXPORT_FILENAME",
]
