"""Configuration for the waterfall visualizer."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, Optional

from spectral_waterfall.frequency_mapper import ScaleMode
from spectral_waterfall.models import AnalysisParams

_DEFAULT_CONFIG_NAME = "waterfall_config.json"


@dataclasses.dataclass
class WaterfallConfig:
    """Settings for acquisition, rendering and recording storage."""

    sample_rate: int = 44100
    transform_size: int = 2048
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    waterfall_width: int = 1024
    waterfall_height: int = 320
    plot_width: int = 512
    plot_height: int = 160
    scale_mode: str = "logarithmic"
    tick_interval_ms: int = 16
    hop: int = 512
    recordings_path: str = "data/recordings.json"
    device: Optional[str] = None

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        n = int(self.transform_size)
        if n < 32 or n > 32768 or n & (n - 1):
            raise ValueError(
                f"transform_size must be a power of two in [32, 32768], got {self.transform_size}"
            )
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        for name in ("waterfall_width", "waterfall_height", "plot_width", "plot_height"):
            if int(getattr(self, name)) <= 1:
                raise ValueError(f"{name} must be greater than 1")
        if self.min_decibels >= self.max_decibels:
            raise ValueError("min_decibels must be below max_decibels")
        if not 0.0 <= self.smoothing_time_constant <= 1.0:
            raise ValueError("smoothing_time_constant must lie in [0, 1]")
        if self.tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be positive")
        ScaleMode.parse(self.scale_mode)

    @property
    def scale(self) -> ScaleMode:
        return ScaleMode.parse(self.scale_mode)

    def analysis_params(self) -> AnalysisParams:
        return AnalysisParams(float(self.sample_rate), int(self.transform_size), self.scale)

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "WaterfallConfig":
        normalized = dict(raw)

        aliases = {
            "samplerate": "sample_rate",
            "sampleRate": "sample_rate",
            "fft_size": "transform_size",
            "fftSize": "transform_size",
            "smoothing": "smoothing_time_constant",
        }
        for legacy_key, new_key in aliases.items():
            if legacy_key in normalized and new_key not in normalized:
                normalized[new_key] = normalized.pop(legacy_key)

        if "log_scale" in normalized and "scale_mode" not in normalized:
            normalized["scale_mode"] = ScaleMode.parse(bool(normalized.pop("log_scale"))).value

        known = {f.name for f in dataclasses.fields(WaterfallConfig)}
        filtered = {k: v for k, v in normalized.items() if k in known}
        return WaterfallConfig(**filtered)


def default_config_path() -> Path:
    return Path(__file__).with_name(_DEFAULT_CONFIG_NAME)


def load_config(path: Optional[Path] = None) -> WaterfallConfig:
    """Load a config file, falling back to the packaged defaults."""
    config_path = Path(path) if path is not None else default_config_path()
    data = json.loads(config_path.read_text(encoding="utf-8"))
    return WaterfallConfig.from_dict(data)


__all__ = ["WaterfallConfig", "load_config", "default_config_path"]
