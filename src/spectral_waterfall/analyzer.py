"""Per-frame spectral feature extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from spectral_waterfall.errors import InvalidFrame
from spectral_waterfall.frequency_mapper import freq_to_bin
from spectral_waterfall.models import AnalysisParams


FUNDAMENTAL_SEARCH_MAX_HZ = 2000.0
FUNDAMENTAL_MIN_MAGNITUDE = 50
FUNDAMENTAL_MIN_HZ = 10.0
HARMONIC_ORDERS = (2, 3, 4)
HARMONIC_MIN_MAGNITUDE = 30


@dataclass(frozen=True)
class Harmonic:
    order: int
    frequency_hz: float
    amplitude: int


@dataclass(frozen=True)
class FeatureSummary:
    """Features of a single frame; never accumulated across frames."""

    dominant_freq_hz: float
    fundamental_freq_hz: Optional[float] = None
    harmonics: tuple[Harmonic, ...] = field(default_factory=tuple)


def validate_magnitudes(
    magnitudes: Sequence[int] | np.ndarray, buffer_length: int
) -> np.ndarray:
    """Return ``magnitudes`` as an ``int64`` array or raise :class:`InvalidFrame`."""
    try:
        arr = np.asarray(magnitudes)
    except (TypeError, ValueError) as exc:
        raise InvalidFrame(f"magnitudes are not array-like: {exc}") from exc
    if arr.ndim != 1:
        raise InvalidFrame(f"magnitudes must be one-dimensional, got shape {arr.shape}")
    if arr.size != buffer_length:
        raise InvalidFrame(
            f"expected {buffer_length} magnitude bins, got {arr.size}"
        )
    if arr.dtype.kind not in "biuf":
        raise InvalidFrame(f"magnitudes have non-numeric dtype {arr.dtype}")
    if arr.size and not np.all(np.isfinite(arr)):
        raise InvalidFrame("magnitudes contain non-finite values")
    if arr.size and (arr.min() < 0 or arr.max() > 255):
        raise InvalidFrame("magnitudes must lie in [0, 255]")
    return arr.astype(np.int64)


class SpectralAnalyzer:
    """Turns one frame's byte magnitudes into a :class:`FeatureSummary`."""

    def __init__(self, params: AnalysisParams) -> None:
        self.params = params

    def analyze(self, magnitudes: Sequence[int] | np.ndarray) -> FeatureSummary:
        mags = validate_magnitudes(magnitudes, self.params.buffer_length)
        if mags.size == 0:
            return FeatureSummary(dominant_freq_hz=0.0)

        dominant_bin = int(np.argmax(mags))
        dominant = self.params.bin_frequency(dominant_bin)

        fundamental = self._fundamental(mags)
        harmonics: tuple[Harmonic, ...] = ()
        if fundamental is not None:
            harmonics = self._harmonics(mags, fundamental)

        return FeatureSummary(dominant, fundamental, harmonics)

    def _fundamental(self, mags: np.ndarray) -> Optional[float]:
        p = self.params
        limit = min(
            freq_to_bin(FUNDAMENTAL_SEARCH_MAX_HZ, p.sample_rate_hz, p.transform_size),
            mags.size,
        )
        if limit <= 1:
            return None

        idx = np.arange(1, limit)
        values = mags[idx]
        above_left = values > mags[idx - 1]
        right = np.minimum(idx + 1, mags.size - 1)
        above_right = (idx == mags.size - 1) | (values > mags[right])
        peaks = above_left & above_right & (values > FUNDAMENTAL_MIN_MAGNITUDE)
        if not np.any(peaks):
            return None

        candidates = np.where(peaks, values, -1)
        best = int(idx[int(np.argmax(candidates))])
        freq = p.bin_frequency(best)
        if freq > FUNDAMENTAL_MIN_HZ:
            return freq
        return None

    def _harmonics(self, mags: np.ndarray, fundamental: float) -> tuple[Harmonic, ...]:
        p = self.params
        found = []
        for order in HARMONIC_ORDERS:
            freq = order * fundamental
            harmonic_bin = freq_to_bin(freq, p.sample_rate_hz, p.transform_size)
            if harmonic_bin >= mags.size:
                continue
            amplitude = int(mags[harmonic_bin])
            if amplitude > HARMONIC_MIN_MAGNITUDE:
                found.append(Harmonic(order, freq, amplitude))
        return tuple(found)


def analyze_magnitudes(
    magnitudes: Sequence[int] | np.ndarray, params: AnalysisParams
) -> FeatureSummary:
    """Convenience wrapper around :meth:`SpectralAnalyzer.analyze`."""
    return SpectralAnalyzer(params).analyze(magnitudes)


__all__ = [
    "Harmonic",
    "FeatureSummary",
    "SpectralAnalyzer",
    "analyze_magnitudes",
    "validate_magnitudes",
]
