"""Coordinate transforms between FFT bins, frequencies and pixel rows.

Every place that needs to know where a frequency lands on screen (the
waterfall painter, the hover readout and the legend) goes through the
functions in this module so the three always agree.  Row ``0`` is the top
of a surface and holds the highest displayed frequency.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

MIN_FREQ_HZ = 5.0
MAX_FREQ_HZ = 20000.0

LEGEND_POSITIONS = (1.0, 0.75, 0.5, 0.35, 0.2, 0.0)

_LOG_MIN = math.log10(MIN_FREQ_HZ)
_LOG_MAX = math.log10(MAX_FREQ_HZ)


class ScaleMode(enum.Enum):
    """Vertical frequency axis layout."""

    LINEAR = "linear"
    LOGARITHMIC = "logarithmic"

    @classmethod
    def parse(cls, value: "ScaleMode | str | bool") -> "ScaleMode":
        if isinstance(value, ScaleMode):
            return value
        if isinstance(value, bool):
            return cls.LOGARITHMIC if value else cls.LINEAR
        text = str(value).strip().lower()
        if text in ("log", "logarithmic"):
            return cls.LOGARITHMIC
        if text in ("lin", "linear"):
            return cls.LINEAR
        raise ValueError(f"unknown scale mode: {value!r}")

    def toggled(self) -> "ScaleMode":
        return ScaleMode.LINEAR if self is ScaleMode.LOGARITHMIC else ScaleMode.LOGARITHMIC


def bin_frequency(bin_index: float, sample_rate_hz: float, transform_size: int) -> float:
    """Return the frequency of ``bin_index`` in Hz."""
    return bin_index * sample_rate_hz / transform_size


def freq_to_bin(freq_hz: float, sample_rate_hz: float, transform_size: int) -> int:
    """Return the bin whose range contains ``freq_hz``."""
    return int(math.floor(freq_hz * transform_size / sample_rate_hz))


def clamp_frequency(freq_hz: float, low: float = MIN_FREQ_HZ, high: float = MAX_FREQ_HZ) -> float:
    return max(low, min(high, freq_hz))


def _band_fraction(freq_hz: float, scale_mode: ScaleMode) -> float:
    if scale_mode is ScaleMode.LOGARITHMIC:
        return 1.0 - (math.log10(freq_hz) - _LOG_MIN) / (_LOG_MAX - _LOG_MIN)
    return 1.0 - (freq_hz - MIN_FREQ_HZ) / (MAX_FREQ_HZ - MIN_FREQ_HZ)


def bin_to_pixel_y(
    bin_index: int,
    buffer_length: int,
    pixel_height: int,
    scale_mode: ScaleMode,
    sample_rate_hz: float,
    transform_size: int,
) -> Optional[int]:
    """Map a bin onto a pixel row of a surface ``pixel_height`` rows tall.

    Returns ``None`` when the bin lies outside the displayed band
    [``MIN_FREQ_HZ``, ``MAX_FREQ_HZ``] or outside ``[0, buffer_length)``.
    """
    if bin_index < 0 or bin_index >= buffer_length:
        return None
    freq = bin_frequency(bin_index, sample_rate_hz, transform_size)
    if freq < MIN_FREQ_HZ or freq > MAX_FREQ_HZ:
        return None
    frac = _band_fraction(freq, scale_mode)
    return int(math.floor(frac * (pixel_height - 1)))


def pixel_y_to_freq(pixel_y: float, pixel_height: int, scale_mode: ScaleMode) -> float:
    """Inverse of :func:`bin_to_pixel_y`, evaluated at the pixel center.

    The result is not clamped; callers showing it to a user should pass it
    through :func:`clamp_frequency`.
    """
    frac = 1.0 - (pixel_y + 0.5) / (pixel_height - 1)
    if scale_mode is ScaleMode.LOGARITHMIC:
        return 10.0 ** (_LOG_MIN + frac * (_LOG_MAX - _LOG_MIN))
    return MIN_FREQ_HZ + frac * (MAX_FREQ_HZ - MIN_FREQ_HZ)


def column_rows(
    buffer_length: int,
    pixel_height: int,
    scale_mode: ScaleMode,
    sample_rate_hz: float,
    transform_size: int,
) -> np.ndarray:
    """Pixel row of every bin as an ``int`` array, ``-1`` for out-of-band bins."""
    rows = np.full(buffer_length, -1, dtype=np.int64)
    for i in range(buffer_length):
        row = bin_to_pixel_y(
            i, buffer_length, pixel_height, scale_mode, sample_rate_hz, transform_size
        )
        if row is not None:
            rows[i] = row
    return rows


def hover_frequency(
    pixel_y: float, pixel_height: int, scale_mode: ScaleMode
) -> Optional[float]:
    """Frequency under the pointer on the waterfall, clamped to the band."""
    if pixel_height - 1 <= 0:
        return None
    y = min(max(pixel_y, 0.0), pixel_height - 1)
    return clamp_frequency(pixel_y_to_freq(y, pixel_height, scale_mode))


def spectrum_hover_frequency(
    pixel_x: float,
    width: int,
    buffer_length: int,
    sample_rate_hz: float,
    transform_size: int,
) -> Optional[float]:
    """Frequency under the pointer on the instantaneous spectrum plot.

    The spectrum plot draws one point per pixel at a stride of
    ``ceil(buffer_length / width)`` bins, so pixel ``x`` shows bin
    ``x * stride``.  The bin's center frequency is reported.
    """
    if width <= 0 or buffer_length <= 0:
        return None
    x = min(max(pixel_x, 0.0), width - 1)
    step = spectrum_stride(buffer_length, width)
    bin_index = min(buffer_length - 1, int(math.floor(x + 0.5)) * step)
    freq = bin_frequency(bin_index + 0.5, sample_rate_hz, transform_size)
    return clamp_frequency(freq, 0.0, MAX_FREQ_HZ)


def spectrum_stride(buffer_length: int, width: int) -> int:
    return max(1, int(math.ceil(buffer_length / width)))


def format_frequency(freq_hz: float) -> str:
    """Legend style label: ``"440 Hz"`` or ``"1.2 kHz"``."""
    if freq_hz >= 1000.0:
        tenths = math.floor(freq_hz / 100.0 + 0.5) / 10.0
        return f"{tenths:g} kHz"
    return f"{int(math.floor(freq_hz + 0.5))} Hz"


def format_feature_frequency(freq_hz: Optional[float]) -> str:
    """Readout style label used by the analysis panel."""
    if freq_hz is None:
        return "—"
    if freq_hz >= 1000.0:
        return f"{freq_hz / 1000.0:.2f} kHz"
    return f"{int(math.floor(freq_hz + 0.5))} Hz"


@dataclass(frozen=True)
class LegendTick:
    position: float
    row: float
    frequency_hz: float
    label: str


def legend_ticks(pixel_height: int, scale_mode: ScaleMode) -> list[LegendTick]:
    """Frequency labels at the fixed fractional rows of the legend."""
    ticks = []
    for p in LEGEND_POSITIONS:
        row = p * (pixel_height - 1)
        if pixel_height - 1 <= 0:
            freq = MIN_FREQ_HZ + (MAX_FREQ_HZ - MIN_FREQ_HZ) * (1.0 - p)
        else:
            freq = clamp_frequency(pixel_y_to_freq(row, pixel_height, scale_mode))
        ticks.append(LegendTick(p, row, freq, format_frequency(freq)))
    return ticks


__all__ = [
    "MIN_FREQ_HZ",
    "MAX_FREQ_HZ",
    "LEGEND_POSITIONS",
    "ScaleMode",
    "LegendTick",
    "bin_frequency",
    "freq_to_bin",
    "clamp_frequency",
    "bin_to_pixel_y",
    "pixel_y_to_freq",
    "column_rows",
    "hover_frequency",
    "spectrum_hover_frequency",
    "spectrum_stride",
    "format_frequency",
    "format_feature_frequency",
    "legend_ticks",
]
