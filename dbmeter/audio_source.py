"""Microphone capture through ``sounddevice``.

:class:`AudioSource` opens a mono PortAudio input stream and keeps the most
recent :data:`~dbmeter.constants.FFT_SIZE` samples in a rolling window.
The PortAudio callback runs on the driver's thread and only copies samples
into that window under a lock; everything else reads a snapshot from the
Qt thread through :meth:`AudioSource.read`.

PortAudio hands over the raw device signal: no echo cancellation, noise
suppression or automatic gain control is applied.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

# ``sounddevice`` needs the PortAudio shared library.  When it cannot be
# imported ``sd`` is ``None`` and opening a device reports it as
# unavailable instead of failing at import time.
try:
    import sounddevice as sd  # type: ignore
except ImportError:
    sd = None

from .constants import BLOCK_SIZE, FFT_SIZE, SAMPLE_RATE

logger = logging.getLogger(__name__)


class DeviceUnavailableError(RuntimeError):
    """The input device could not be opened (permission, removed, busy…)."""


@dataclass(frozen=True)
class InputDevice:
    """An input device as offered to the user."""

    id: str
    label: str


def _is_monitor(name: str) -> bool:
    n = name.lower()
    return ("monitor" in n) or ("loopback" in n)


def list_input_devices() -> list[InputDevice]:
    """Return every physical capture device.

    Devices without input channels and virtual monitor/loopback sources are
    skipped.  The ``id`` is the PortAudio device index as a string.

    Raises:
        DeviceUnavailableError: If ``sounddevice`` is missing or device
            enumeration fails.
    """
    if sd is None:
        raise DeviceUnavailableError("The sounddevice module is not available")
    try:
        devices = sd.query_devices()
    except Exception as e:
        raise DeviceUnavailableError(f"Audio enumeration failed: {e}") from e

    found: list[InputDevice] = []
    for idx, dev in enumerate(devices):
        if dev.get("max_input_channels", 0) < 1:
            continue
        name = dev["name"]
        if _is_monitor(name):
            continue
        found.append(InputDevice(id=str(idx), label=f"{idx}: {name}"))
    return found


def choose_device(devices: Sequence[InputDevice], preferred: Optional[str]) -> Optional[InputDevice]:
    """Pick ``preferred`` if it is available, else the first device."""
    if preferred:
        for device in devices:
            if device.id == str(preferred):
                return device
    return devices[0] if devices else None


class AudioSource:
    """Rolling window of the most recent samples from one input device.

    Args:
        device_id: PortAudio device index (as string or int).
        sample_rate: Capture sampling frequency in hertz.
        window_size: Number of samples kept and returned by :meth:`read`.
        block_size: Frames per PortAudio callback.
    """

    def __init__(
        self,
        device_id,
        *,
        sample_rate: int = SAMPLE_RATE,
        window_size: int = FFT_SIZE,
        block_size: int = BLOCK_SIZE,
    ) -> None:
        self.device_id = device_id
        self.sample_rate = sample_rate
        self.window_size = window_size
        self.block_size = block_size
        self.stream = None
        self._lock = threading.Lock()
        self._window = np.zeros(window_size, dtype=np.float32)

    # --------------------------------------------------------------
    def _callback(self, indata, frames, _time, status) -> None:  # noqa: D401
        if status:
            logger.debug("Input status: %s", status)
        samples = np.asarray(indata, dtype=np.float32)
        if samples.ndim == 2:
            samples = samples[:, 0]
        samples = samples.reshape(-1)
        with self._lock:
            if samples.size >= self.window_size:
                self._window = samples[-self.window_size:].copy()
            else:
                self._window = np.concatenate((self._window[samples.size:], samples))

    # --------------------------------------------------------------
    def open(self) -> None:
        """Acquire the device and start capturing.

        Raises:
            DeviceUnavailableError: If the stream cannot be opened.
        """
        if self.stream is not None:
            return
        if sd is None:
            raise DeviceUnavailableError("The sounddevice module is not available")
        try:
            device = int(self.device_id)
        except (TypeError, ValueError):
            device = self.device_id
        try:
            stream = sd.InputStream(
                device=device,
                channels=1,
                samplerate=self.sample_rate,
                blocksize=self.block_size,
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except Exception as e:
            raise DeviceUnavailableError(f"Cannot open input device {self.device_id}: {e}") from e
        self.stream = stream
        logger.info("Capturing from device %s at %d Hz", self.device_id, self.sample_rate)

    def read(self) -> np.ndarray:
        """Return a copy of the current sample window."""
        with self._lock:
            return self._window.copy()

    @property
    def active(self) -> bool:
        return self.stream is not None

    def close(self) -> None:
        """Release the device.  Safe to call more than once."""
        stream, self.stream = self.stream, None
        if stream is None:
            return
        try:
            stream.abort()
        except Exception as e:
            logger.warning("Error stopping input stream: %s", e)
        try:
            stream.close()
        except Exception as e:
            logger.warning("Error closing input stream: %s", e)
        with self._lock:
            self._window = np.zeros(self.window_size, dtype=np.float32)
        logger.info("Released device %s", self.device_id)

    def __enter__(self) -> "AudioSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


__all__ = [
    "AudioSource",
    "DeviceUnavailableError",
    "InputDevice",
    "choose_device",
    "list_input_devices",
]
