"""Live spectral waterfall with feature overlays, recording and replay."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AnalysisParams",
    "Frame",
    "Recording",
    "ScaleMode",
    "FeatureSummary",
    "SpectralAnalyzer",
    "WaterfallRenderer",
    "AuxiliaryPlotRenderer",
    "FramePipeline",
    "RecordingBuffer",
    "RecordingCollection",
    "ReplayEngine",
    "ModeController",
    "WaterfallConfig",
    "WaterfallApp",
    "main",
]

_EXPORT_MAP = {
    "AnalysisParams": ("spectral_waterfall.models", "AnalysisParams"),
    "Frame": ("spectral_waterfall.models", "Frame"),
    "Recording": ("spectral_waterfall.models", "Recording"),
    "ScaleMode": ("spectral_waterfall.frequency_mapper", "ScaleMode"),
    "FeatureSummary": ("spectral_waterfall.analyzer", "FeatureSummary"),
    "SpectralAnalyzer": ("spectral_waterfall.analyzer", "SpectralAnalyzer"),
    "WaterfallRenderer": ("spectral_waterfall.rendering", "WaterfallRenderer"),
    "AuxiliaryPlotRenderer": ("spectral_waterfall.rendering", "AuxiliaryPlotRenderer"),
    "FramePipeline": ("spectral_waterfall.pipeline", "FramePipeline"),
    "RecordingBuffer": ("spectral_waterfall.recording", "RecordingBuffer"),
    "RecordingCollection": ("spectral_waterfall.recording", "RecordingCollection"),
    "ReplayEngine": ("spectral_waterfall.replay", "ReplayEngine"),
    "ModeController": ("spectral_waterfall.mode", "ModeController"),
    "WaterfallConfig": ("spectral_waterfall.config", "WaterfallConfig"),
    "WaterfallApp": ("spectral_waterfall.visualizer", "WaterfallApp"),
    "main": ("spectral_waterfall.cli", "main"),
}


if TYPE_CHECKING:  # pragma: no cover - only for type checkers
    from spectral_waterfall.analyzer import FeatureSummary, SpectralAnalyzer
    from spectral_waterfall.cli import main
    from spectral_waterfall.config import WaterfallConfig
    from spectral_waterfall.frequency_mapper import ScaleMode
    from spectral_waterfall.mode import ModeController
    from spectral_waterfall.models import AnalysisParams, Frame, Recording
    from spectral_waterfall.pipeline import FramePipeline
    from spectral_waterfall.recording import RecordingBuffer, RecordingCollection
    from spectral_waterfall.rendering import AuxiliaryPlotRenderer, WaterfallRenderer
    from spectral_waterfall.replay import ReplayEngine
    from spectral_waterfall.visualizer import WaterfallApp


def __getattr__(name: str) -> Any:
    """Lazily import heavy submodules on demand."""

    if name in _EXPORT_MAP:
        module_name, attribute = _EXPORT_MAP[name]
        module = import_module(module_name)
        value = getattr(module, attribute)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(__all__))
