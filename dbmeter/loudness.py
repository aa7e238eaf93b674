"""Loudness estimation for the decibel meter.

This module turns a block of normalised audio samples into the single
calibrated decibel reading shown by the meter.  The estimate is a plain
RMS-to-log conversion shifted by :data:`~dbmeter.constants.CALIBRATION_BASELINE_DB`
and the user's calibration offset; no frequency weighting is applied.
It also provides the loudness band labels and the spectrum levels used
purely for visualisation.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.signal import get_window

from .constants import (
    CALIBRATION_BASELINE_DB,
    DB_BANDS,
    LOUDEST_LABEL,
    RMS_FLOOR,
    SPECTRUM_BARS,
    SPECTRUM_MAX_DB,
    SPECTRUM_MIN_DB,
)


def rms(samples: np.ndarray) -> float:
    """Return the root-mean-square level of ``samples``.

    Empty input and non-finite results both yield ``0.0``.
    """

    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    if samples.size == 0:
        return 0.0
    value = float(np.sqrt(np.mean(samples**2)))
    if not math.isfinite(value):
        return 0.0
    return value


def estimate_db(samples: np.ndarray, calibration_offset_db: float = 0) -> int:
    """Convert a block of samples into a calibrated decibel reading.

    Parameters
    ----------
    samples:
        One-dimensional array of normalised amplitudes, roughly in
        ``[-1, 1]``.
    calibration_offset_db:
        User calibration added to the base estimate.

    Returns
    -------
    int
        ``round(max(0, 20*log10(rms) + 80 + offset))``.  Silence (RMS at or
        below ``1e-6``) has a base of 0, so the reading never goes negative
        whatever the sign of the offset.
    """

    level = rms(samples)
    if level > RMS_FLOOR:
        base_db = 20.0 * math.log10(level) + CALIBRATION_BASELINE_DB
    else:
        base_db = 0.0
    # Half-up rounding; the value is never negative here.
    return int(math.floor(max(0.0, base_db + calibration_offset_db) + 0.5))


def db_label(db: float) -> str:
    """Return the name of the loudness band ``db`` falls into."""

    for upper, label in DB_BANDS:
        if db < upper:
            return label
    return LOUDEST_LABEL


def spectrum_levels(samples: np.ndarray, bars: int = SPECTRUM_BARS) -> np.ndarray:
    """Return normalised magnitude levels for the spectrum bars.

    The block is Blackman-windowed, transformed with a real FFT and each
    bin's magnitude is converted to decibels.  The range
    ``[SPECTRUM_MIN_DB, SPECTRUM_MAX_DB]`` is mapped linearly onto
    ``[0, 1]`` and the lowest ``bars`` bins are returned.  The result is
    display data only; nothing in the meter is derived from it.

    Parameters
    ----------
    samples:
        One-dimensional array of audio samples.
    bars:
        Number of levels to return.

    Returns
    -------
    np.ndarray
        ``bars`` float32 values in ``[0, 1]``.  Bins missing because the
        block is too short are zero.
    """

    samples = np.asarray(samples, dtype=np.float64).reshape(-1)
    levels = np.zeros(bars, dtype=np.float32)
    if samples.size < 2:
        return levels

    window = get_window("blackman", samples.size)
    magnitude = np.abs(np.fft.rfft(samples * window)) / samples.size
    with np.errstate(divide="ignore"):
        spectrum_db = 20.0 * np.log10(magnitude)
    span = SPECTRUM_MAX_DB - SPECTRUM_MIN_DB
    scaled = np.clip((spectrum_db - SPECTRUM_MIN_DB) / span, 0.0, 1.0)
    scaled = np.nan_to_num(scaled, nan=0.0)

    count = min(bars, scaled.size)
    levels[:count] = scaled[:count]
    return levels


__all__ = ["rms", "estimate_db", "db_label", "spectrum_levels"]
