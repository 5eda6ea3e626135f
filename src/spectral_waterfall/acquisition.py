"""Audio sources and the real-time spectral transform that feeds each tick."""

from __future__ import annotations

import logging
import queue
from typing import Optional

import numpy as np

from spectral_waterfall.errors import AcquisitionDenied
from spectral_waterfall.models import AnalysisParams
from spectral_waterfall.utils import blackman_window, dbfs

try:  # Optional dependency
    import sounddevice as sd
except Exception:  # pragma: no cover - optional dependency may be absent in CI
    sd = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class AudioSource:
    """Abstract audio stream interface."""

    samplerate: int

    def start(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError

    def read(self) -> np.ndarray:  # pragma: no cover - interface method
        raise NotImplementedError

    def read_available(self) -> np.ndarray:
        """Return whatever audio arrived since the last call without blocking."""
        return self.read()

    def stop(self) -> None:  # pragma: no cover - interface method
        raise NotImplementedError


class MicSource(AudioSource):
    """Audio source backed by the default system microphone."""

    def __init__(self, samplerate: int, hop: int, device: Optional[str] = None) -> None:
        if sd is None:
            raise AcquisitionDenied("sounddevice is not available. Install it or use --demo.")

        self.samplerate = samplerate
        self.hop = hop
        self.device = device
        self.q: "queue.Queue[np.ndarray]" = queue.Queue(maxsize=64)
        self.stream = None

    def _callback(self, indata, frames, time_info, status):
        try:
            self.q.put_nowait(indata[:, 0].copy())
        except queue.Full:
            logger.debug("Input queue full, dropping %d frames", frames)

    def start(self) -> None:
        if sd is None:  # pragma: no cover - guarded in __init__
            raise AcquisitionDenied("sounddevice is not available.")
        try:
            self.stream = sd.InputStream(
                channels=1,
                samplerate=self.samplerate,
                blocksize=self.hop,
                device=self.device,
                callback=self._callback,
                dtype="float32",
            )
            self.stream.start()
        except Exception as exc:  # pragma: no cover - depends on audio backend
            self.stream = None
            raise AcquisitionDenied(f"could not open input device: {exc}") from exc

    def read(self) -> np.ndarray:
        return self.read_available()

    def read_available(self) -> np.ndarray:
        chunks = []
        while True:
            try:
                chunks.append(self.q.get_nowait())
            except queue.Empty:
                break
        if not chunks:
            return np.array([], dtype=np.float32)
        return np.concatenate(chunks).astype(np.float32, copy=False)

    def stop(self) -> None:
        if self.stream is not None:
            try:  # pragma: no cover - depends on audio backend
                self.stream.stop()
                self.stream.close()
            except Exception as exc:
                logger.debug("Error closing input stream: %s", exc)
            self.stream = None


class DemoSource(AudioSource):
    """Synthetic source: a harmonic tone over a slow chirp and a little noise."""

    def __init__(self, samplerate: int, hop: int, fundamental: float = 220.0) -> None:
        self.samplerate = samplerate
        self.hop = hop
        self.fundamental = fundamental
        self.t = 0
        self._rng = np.random.default_rng(0)

    def start(self) -> None:
        self.t = 0

    def read(self) -> np.ndarray:
        n = self.hop
        sr = self.samplerate
        t = (self.t + np.arange(n)) / sr
        f0 = self.fundamental
        tone = sum(
            (0.3 / k) * np.sin(2 * np.pi * k * f0 * t) for k in range(1, 5)
        )
        sweep = 2000.0 + 1500.0 * np.sin(2 * np.pi * 0.1 * t)
        chirp = 0.1 * np.sin(2 * np.pi * sweep * t)
        noise = 0.01 * self._rng.standard_normal(n)
        self.t += n
        y = np.tanh(1.5 * (tone + chirp + noise))
        return y.astype(np.float32)

    def stop(self) -> None:
        pass


class SpectralTransform:
    """Byte spectrum and waveform of the most recent ``transform_size`` samples.

    Mirrors a browser analyser node: a periodic Blackman window, magnitudes
    normalized by the transform size, exponential smoothing between calls,
    and decibels mapped linearly from ``[min_decibels, max_decibels]`` onto
    ``[0, 255]``.  The waveform maps ``[-1, 1]`` onto ``[0, 255]`` with 128 as
    silence.
    """

    def __init__(
        self,
        transform_size: int,
        smoothing_time_constant: float = 0.8,
        min_decibels: float = -100.0,
        max_decibels: float = -30.0,
    ) -> None:
        if min_decibels >= max_decibels:
            raise ValueError("min_decibels must be below max_decibels")
        self.transform_size = int(transform_size)
        self.smoothing = float(smoothing_time_constant)
        self.min_decibels = float(min_decibels)
        self.max_decibels = float(max_decibels)
        self.window = blackman_window(self.transform_size)
        self._smoothed = np.zeros(self.transform_size // 2, dtype=np.float64)

    def reset(self) -> None:
        self._smoothed[:] = 0.0

    def magnitudes(self, block: np.ndarray) -> np.ndarray:
        spectrum = np.fft.rfft(block * self.window, n=self.transform_size)
        mag = np.abs(spectrum[: self.transform_size // 2]) / self.transform_size
        self._smoothed = self.smoothing * self._smoothed + (1.0 - self.smoothing) * mag
        db = dbfs(self._smoothed)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (db - self.min_decibels))
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def time_domain(self, block: np.ndarray) -> np.ndarray:
        scaled = np.floor(128.0 * (1.0 + block))
        return np.clip(scaled, 0, 255).astype(np.uint8)


class FrameAcquirer:
    """Pulls audio from a source and produces one frame's arrays per tick."""

    def __init__(
        self,
        source: AudioSource,
        params: AnalysisParams,
        transform: Optional[SpectralTransform] = None,
    ) -> None:
        self.source = source
        self.params = params
        self.transform = transform or SpectralTransform(params.transform_size)
        self._block = np.zeros(params.transform_size, dtype=np.float32)
        self.started = False

    def start(self) -> None:
        self.source.start()
        self.transform.reset()
        self._block[:] = 0.0
        self.started = True
        logger.info(
            "Acquisition started: %.0f Hz, transform size %d",
            self.params.sample_rate_hz,
            self.params.transform_size,
        )

    def stop(self) -> None:
        if self.started:
            self.source.stop()
            self.started = False

    def read_frame(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(magnitudes, time_domain)`` for the latest audio."""
        chunk = np.asarray(self.source.read_available(), dtype=np.float32)
        n = self.params.transform_size
        if chunk.size >= n:
            self._block = chunk[-n:].copy()
        elif chunk.size:
            self._block = np.concatenate([self._block[chunk.size :], chunk])
        return self.transform.magnitudes(self._block), self.transform.time_domain(self._block)


__all__ = [
    "AudioSource",
    "MicSource",
    "DemoSource",
    "SpectralTransform",
    "FrameAcquirer",
    "sd",
]
