"""The per-tick processing chain shared by live capture and replay."""

from __future__ import annotations

import logging
from typing import Callable, Optional

import numpy as np

from spectral_waterfall.analyzer import FeatureSummary, SpectralAnalyzer
from spectral_waterfall.errors import InvalidFrame
from spectral_waterfall.frequency_mapper import ScaleMode
from spectral_waterfall.models import AnalysisParams
from spectral_waterfall.rendering import AuxiliaryPlotRenderer, WaterfallRenderer

logger = logging.getLogger(__name__)

FeatureListener = Callable[[FeatureSummary], None]


def validate_time_domain(time_domain: np.ndarray, transform_size: int) -> np.ndarray:
    arr = np.asarray(time_domain)
    if arr.ndim != 1 or arr.size != transform_size:
        raise InvalidFrame(
            f"expected {transform_size} time-domain samples, got shape {arr.shape}"
        )
    if arr.dtype.kind not in "biuf":
        raise InvalidFrame(f"time-domain samples have non-numeric dtype {arr.dtype}")
    if arr.size and (arr.min() < 0 or arr.max() > 255):
        raise InvalidFrame("time-domain samples must lie in [0, 255]")
    return arr


class FramePipeline:
    """Feeds one frame to the analyzer and both renderers.

    Frames that do not match the active parameters are logged and dropped;
    the caller's tick loop carries on with the next frame.
    """

    def __init__(
        self,
        params: AnalysisParams,
        waterfall: WaterfallRenderer,
        plots: AuxiliaryPlotRenderer,
    ) -> None:
        self.params = params
        self.analyzer = SpectralAnalyzer(params)
        self.waterfall = waterfall
        self.plots = plots
        self.last_summary: Optional[FeatureSummary] = None
        self.dropped_frames = 0
        self._listeners: list[FeatureListener] = []
        self.waterfall.set_params(params)

    def add_listener(self, listener: FeatureListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: FeatureListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_params(self, params: AnalysisParams) -> None:
        """Switch sample rate / transform size, e.g. when replaying a recording."""
        params = AnalysisParams(
            params.sample_rate_hz, params.transform_size, self.scale_mode
        )
        self.params = params
        self.analyzer = SpectralAnalyzer(params)
        self.waterfall.set_params(params)

    @property
    def scale_mode(self) -> ScaleMode:
        return self.waterfall.scale_mode

    def set_scale_mode(self, scale_mode: ScaleMode) -> None:
        self.waterfall.set_scale_mode(scale_mode)
        self.params = AnalysisParams(
            self.params.sample_rate_hz, self.params.transform_size, scale_mode
        )

    def process(
        self, magnitudes: np.ndarray, time_domain: np.ndarray
    ) -> Optional[FeatureSummary]:
        try:
            summary = self.analyzer.analyze(magnitudes)
            validate_time_domain(time_domain, self.params.transform_size)
        except InvalidFrame as exc:
            self.dropped_frames += 1
            logger.warning("Dropping frame: %s", exc)
            return None

        self.waterfall.render(magnitudes)
        self.plots.render(time_domain, magnitudes)
        self.last_summary = summary
        for listener in list(self._listeners):
            listener(summary)
        return summary


__all__ = ["FramePipeline", "FeatureListener", "validate_time_domain"]
