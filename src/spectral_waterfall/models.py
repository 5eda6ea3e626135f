"""Data model shared by the live pipeline, recorder and replay engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from spectral_waterfall.frequency_mapper import ScaleMode, bin_frequency


@dataclass(frozen=True)
class AnalysisParams:
    """Static parameters of one acquisition session."""

    sample_rate_hz: float = 44100.0
    transform_size: int = 2048
    scale_mode: ScaleMode = ScaleMode.LOGARITHMIC

    @property
    def buffer_length(self) -> int:
        return self.transform_size // 2

    @property
    def nyquist_hz(self) -> float:
        return self.sample_rate_hz / 2.0

    def bin_frequency(self, bin_index: float) -> float:
        return bin_frequency(bin_index, self.sample_rate_hz, self.transform_size)


def _frozen_bytes(values: Sequence[int] | np.ndarray) -> np.ndarray:
    arr = np.array(values, dtype=np.uint8, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Frame:
    """One sampled instant: byte magnitudes plus the byte time-domain block."""

    relative_time_ms: float
    magnitudes: np.ndarray
    time_domain: np.ndarray

    @classmethod
    def capture(
        cls,
        relative_time_ms: float,
        magnitudes: Sequence[int] | np.ndarray,
        time_domain: Sequence[int] | np.ndarray,
    ) -> "Frame":
        """Copy the acquisition buffers into a read-only frame."""
        if relative_time_ms < 0:
            raise ValueError("relative_time_ms must be non-negative")
        return cls(
            float(relative_time_ms),
            _frozen_bytes(magnitudes),
            _frozen_bytes(time_domain),
        )


@dataclass(frozen=True, eq=False)
class Recording:
    """A finalized capture session, ordered chronologically."""

    id: str
    label: str
    created_at: str
    duration_ms: float
    params: AnalysisParams
    frames: tuple[Frame, ...] = field(default_factory=tuple)

    @property
    def frame_times(self) -> list[float]:
        return [frame.relative_time_ms for frame in self.frames]

    @property
    def last_frame(self) -> Optional[Frame]:
        return self.frames[-1] if self.frames else None


__all__ = ["AnalysisParams", "Frame", "Recording"]
