"""
Sample-window sources for the live loop.

The pipeline never talks to audio hardware itself; it asks a source for the
most recent window of normalized mono samples once per tick.

* MicrophoneSource: sounddevice input stream feeding a ring buffer.
* ArraySource / FileSource: replay in-memory or on-disk audio, advancing
  by one tick's worth of samples per read (for offline runs and tests).
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol

import numpy as np
import librosa

try:  # PortAudio may be missing on headless machines
    import sounddevice as sd
except (ImportError, OSError):  # pragma: no cover - depends on host audio stack
    sd = None

from .config import CaptureConfig, validate_capture
from .errors import CaptureError

logger = logging.getLogger(__name__)


class WindowSource(Protocol):
    sample_rate: int

    def read_window(self, size: int) -> np.ndarray:
        ...


class MicrophoneSource:
    def __init__(self, config: Optional[CaptureConfig] = None, buffer_seconds: float = 1.0) -> None:
        config = config or CaptureConfig()
        validate_capture(config)
        self.config = config
        self.sample_rate = int(config.sample_rate)
        self._ring = np.zeros(max(1, int(self.sample_rate * buffer_seconds)), dtype=np.float32)
        self._write_idx = 0
        self._lock = threading.Lock()
        self._stream = None

    @property
    def running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return
        if sd is None:
            raise CaptureError("sounddevice/PortAudio is not available on this system")
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                device=self.config.device,
                callback=self._callback,
            )
            stream.start()
        except Exception as e:
            raise CaptureError(f"Could not open input device {self.config.device!r}: {e}") from e
        self._stream = stream
        logger.info("Microphone capture started at %d Hz", self.sample_rate)

    def stop(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        stream.stop()
        stream.close()
        logger.info("Microphone capture stopped")

    def __enter__(self) -> "MicrophoneSource":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("Input stream status: %s", status)
        self.write(indata[:, 0])

    def write(self, samples: np.ndarray) -> None:
        """Append samples to the ring buffer (called from the audio thread)."""
        samples = np.asarray(samples, dtype=np.float32)
        n = self._ring.size
        if samples.size >= n:
            samples = samples[-n:]
        with self._lock:
            end = self._write_idx + samples.size
            if end <= n:
                self._ring[self._write_idx:end] = samples
            else:
                first = n - self._write_idx
                self._ring[self._write_idx:] = samples[:first]
                self._ring[: samples.size - first] = samples[first:]
            self._write_idx = end % n

    def read_window(self, size: int) -> np.ndarray:
        if size > self._ring.size:
            raise CaptureError(f"Window of {size} samples exceeds ring buffer of {self._ring.size}")
        with self._lock:
            ordered = np.concatenate((self._ring[self._write_idx:], self._ring[: self._write_idx]))
        return ordered[-size:].astype(np.float64)


class ArraySource:
    """Replays a mono signal, advancing ``sample_rate / tick_hz`` samples per read."""

    def __init__(self, samples: np.ndarray, sample_rate: int, tick_hz: float = 60.0) -> None:
        if sample_rate <= 0 or tick_hz <= 0:
            raise CaptureError("sample_rate and tick_hz must be positive")
        self.samples = np.asarray(samples, dtype=np.float64).reshape(-1)
        self.sample_rate = int(sample_rate)
        self.hop = self.sample_rate / float(tick_hz)
        self._pos = 0.0

    @property
    def exhausted(self) -> bool:
        return self._pos >= self.samples.size

    def position_ms(self) -> float:
        """Audio time of the latest read; doubles as a clock for offline recording."""
        return 1000.0 * self._pos / self.sample_rate

    def read_window(self, size: int) -> np.ndarray:
        self._pos += self.hop
        end = int(round(self._pos))
        start = end - size
        out = np.zeros(size, dtype=np.float64)
        lo, hi = max(0, start), min(end, self.samples.size)
        if hi > lo:
            out[lo - start: hi - start] = self.samples[lo:hi]
        return out


class FileSource(ArraySource):
    def __init__(self, path: str, sample_rate: Optional[int] = None, tick_hz: float = 60.0) -> None:
        try:
            y, sr = librosa.load(path, sr=sample_rate, mono=True)
        except Exception as e:
            raise CaptureError(f"Could not load audio file {path}: {e}") from e
        logger.info("Loaded %s (%.2fs at %d Hz)", path, len(y) / float(sr), sr)
        super().__init__(np.clip(y, -1.0, 1.0), int(sr), tick_hz)
        self.path = path
