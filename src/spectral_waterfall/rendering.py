"""Pixel-level renderers for the waterfall and its companion plots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from spectral_waterfall.frequency_mapper import (
    ScaleMode,
    column_rows,
    legend_ticks,
    spectrum_stride,
)
from spectral_waterfall.models import AnalysisParams


def intensity_to_color(intensity: float | np.ndarray) -> np.ndarray:
    """Map normalized intensity ``v`` in [0, 1] to an RGB byte triple.

    ``r = floor(255 v^3)``, ``g = floor(50 v)``, ``b = floor(255 sqrt(v))``.
    Accepts a scalar or an array; the color axis is appended last.
    """
    v = np.clip(np.asarray(intensity, dtype=np.float64), 0.0, 1.0)
    rgb = np.stack(
        [
            np.floor(255.0 * v**3),
            np.floor(50.0 * v),
            np.floor(255.0 * np.sqrt(v)),
        ],
        axis=-1,
    )
    return rgb.astype(np.uint8)


class PixelSurface:
    """A fixed-size RGB raster, ``pixels[row, column]``."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("surface dimensions must be positive")
        self.width = int(width)
        self.height = int(height)
        self.pixels = np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def fill(self, rgb: Sequence[int] = (0, 0, 0)) -> None:
        self.pixels[:, :] = np.asarray(rgb, dtype=np.uint8)

    def scroll_left(self, columns: int = 1) -> None:
        """Shift the image left; the rightmost columns keep their old content."""
        if columns <= 0 or self.width <= columns:
            return
        self.pixels[:, :-columns] = self.pixels[:, columns:]


@dataclass
class PolylineSurface:
    """Holds the single polyline drawn on a stateless plot."""

    width: int
    height: int
    xs: np.ndarray = field(default_factory=lambda: np.zeros(0))
    ys: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def clear(self) -> None:
        self.xs = np.zeros(0)
        self.ys = np.zeros(0)

    def polyline(self, xs: np.ndarray, ys: np.ndarray) -> None:
        self.xs = np.asarray(xs, dtype=np.float64)
        self.ys = np.asarray(ys, dtype=np.float64)

    @property
    def point_count(self) -> int:
        return int(self.xs.size)


class WaterfallRenderer:
    """Scroll-and-paint renderer for the frequency-over-time image.

    The surface is never redrawn as a whole during normal operation: each
    frame shifts the history one pixel to the left and paints a new column at
    the right edge.  Changing the scale mode only affects columns painted
    afterwards.
    """

    def __init__(
        self,
        width: int,
        height: int,
        params: AnalysisParams,
        scale_mode: Optional[ScaleMode] = None,
    ) -> None:
        self.surface = PixelSurface(width, height)
        self.params = params
        self.scale_mode = scale_mode if scale_mode is not None else params.scale_mode
        self._row_bins: Optional[tuple[np.ndarray, np.ndarray]] = None

    @property
    def width(self) -> int:
        return self.surface.width

    @property
    def height(self) -> int:
        return self.surface.height

    def set_params(self, params: AnalysisParams) -> None:
        if params != self.params:
            self.params = params
            self._row_bins = None

    def set_scale_mode(self, scale_mode: ScaleMode) -> None:
        if scale_mode is not self.scale_mode:
            self.scale_mode = scale_mode
            self._row_bins = None

    def clear(self) -> None:
        self.surface.fill((0, 0, 0))

    def _painted_rows(self) -> tuple[np.ndarray, np.ndarray]:
        # For each painted row keep the highest bin mapping onto it.
        if self._row_bins is None:
            p = self.params
            rows = column_rows(
                p.buffer_length,
                self.height,
                self.scale_mode,
                p.sample_rate_hz,
                p.transform_size,
            )
            owner = np.full(self.height, -1, dtype=np.int64)
            for bin_index, row in enumerate(rows):
                if 0 <= row < self.height:
                    owner[row] = bin_index
            painted = np.flatnonzero(owner >= 0)
            self._row_bins = (painted, owner[painted])
        return self._row_bins

    def render(self, magnitudes: np.ndarray) -> None:
        """Scroll the history and paint ``magnitudes`` as the newest column."""
        self.surface.scroll_left(1)
        rows, bins = self._painted_rows()
        if rows.size == 0:
            return
        values = np.asarray(magnitudes, dtype=np.float64)[bins] / 255.0
        self.surface.pixels[rows, self.width - 1] = intensity_to_color(values)

    def grid_rows(self) -> list[float]:
        return [tick.row for tick in legend_ticks(self.height, self.scale_mode)]


class AuxiliaryPlotRenderer:
    """Draws the waveform and instantaneous spectrum of the current frame."""

    def __init__(self, waveform: PolylineSurface, spectrum: PolylineSurface) -> None:
        self.waveform = waveform
        self.spectrum = spectrum

    def render(self, time_domain: np.ndarray, magnitudes: np.ndarray) -> None:
        self.render_waveform(time_domain)
        self.render_spectrum(magnitudes)

    def render_waveform(self, time_domain: np.ndarray) -> None:
        surface = self.waveform
        surface.clear()
        samples = np.asarray(time_domain, dtype=np.float64)
        if samples.size == 0:
            return
        slice_width = surface.width / samples.size
        xs = np.arange(samples.size) * slice_width
        ys = (samples / 128.0) / 2.0 * surface.height
        surface.polyline(xs, ys)

    def render_spectrum(self, magnitudes: np.ndarray) -> None:
        surface = self.spectrum
        surface.clear()
        mags = np.asarray(magnitudes, dtype=np.float64)
        if mags.size == 0:
            return
        step = spectrum_stride(mags.size, surface.width)
        sampled = mags[::step]
        xs = np.arange(sampled.size, dtype=np.float64)
        ys = surface.height - (sampled / 255.0) * surface.height
        surface.polyline(xs, ys)


__all__ = [
    "intensity_to_color",
    "PixelSurface",
    "PolylineSurface",
    "WaterfallRenderer",
    "AuxiliaryPlotRenderer",
]
