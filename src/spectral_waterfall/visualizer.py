"""Matplotlib front end: waterfall, waveform, spectrum and feature readout."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt

from spectral_waterfall.acquisition import AudioSource, FrameAcquirer, SpectralTransform
from spectral_waterfall.analyzer import FeatureSummary
from spectral_waterfall.config import WaterfallConfig
from spectral_waterfall.errors import AcquisitionDenied, StorageUnavailable
from spectral_waterfall.frequency_mapper import (
    format_feature_frequency,
    hover_frequency,
    legend_ticks,
    spectrum_hover_frequency,
)
from spectral_waterfall.mode import Idle, Live, Mode, ModeController, Replaying, TickSource
from spectral_waterfall.persistence import default_export_name, export_recordings
from spectral_waterfall.pipeline import FramePipeline
from spectral_waterfall.recording import RecordingCollection
from spectral_waterfall.rendering import (
    AuxiliaryPlotRenderer,
    PolylineSurface,
    WaterfallRenderer,
)

logger = logging.getLogger(__name__)

_TIME_GRID_INTERVALS = 10
_MIC_ERROR = "Could not access the microphone. Check the input device and press [m] to retry."


class MatplotlibTickSource(TickSource):
    """Single-shot canvas timers standing in for display refresh callbacks."""

    def __init__(self, fig, interval_ms: int = 16) -> None:
        self.fig = fig
        self.interval_ms = int(interval_ms)

    def schedule(self, callback):
        timer = self.fig.canvas.new_timer(interval=self.interval_ms)
        timer.single_shot = True
        timer.add_callback(callback)
        timer.start()
        return timer

    def cancel(self, handle) -> None:
        handle.stop()


def describe_features(summary: Optional[FeatureSummary]) -> str:
    if summary is None:
        return "Top resonating: —"
    lines = [f"Top resonating: {format_feature_frequency(summary.dominant_freq_hz)}"]
    if summary.fundamental_freq_hz is not None:
        lines.append(f"Fundamental: {format_feature_frequency(summary.fundamental_freq_hz)}")
    if summary.harmonics:
        lines.append("Harmonics:")
        lines.extend(
            f"  {h.order}×  {format_feature_frequency(h.frequency_hz)}"
            for h in summary.harmonics
        )
    return "\n".join(lines)


class WaterfallApp:
    """Interactive matplotlib waterfall driven by a :class:`ModeController`."""

    def __init__(
        self,
        source: AudioSource,
        config: Optional[WaterfallConfig] = None,
        collection: Optional[RecordingCollection] = None,
        tick_source: Optional[TickSource] = None,
    ) -> None:
        if config is None:
            config = WaterfallConfig()
        self.config = config
        params = config.analysis_params()
        self.collection = collection if collection is not None else RecordingCollection()

        self.waterfall = WaterfallRenderer(
            config.waterfall_width, config.waterfall_height, params
        )
        self.waveform_surface = PolylineSurface(config.plot_width, config.plot_height)
        self.spectrum_surface = PolylineSurface(config.plot_width, config.plot_height)
        self.pipeline = FramePipeline(
            params,
            self.waterfall,
            AuxiliaryPlotRenderer(self.waveform_surface, self.spectrum_surface),
        )
        transform = SpectralTransform(
            config.transform_size,
            smoothing_time_constant=config.smoothing_time_constant,
            min_decibels=config.min_decibels,
            max_decibels=config.max_decibels,
        )
        self.acquirer = FrameAcquirer(source, params, transform)

        self.fig = plt.figure(figsize=(14, 8))
        if tick_source is None:
            tick_source = MatplotlibTickSource(self.fig, config.tick_interval_ms)
        self.controller = ModeController(
            self.pipeline, self.collection, tick_source, acquirer=self.acquirer
        )

        self.hover_hz: Optional[float] = None
        self.error: str = ""
        self._build_axes()

        self.pipeline.add_listener(self._on_frame)
        self.controller.add_listener(self._on_mode_change)
        self.collection.add_listener(lambda _c: self._update_status())
        self.fig.canvas.mpl_connect("key_press_event", self.on_key)
        self.fig.canvas.mpl_connect("motion_notify_event", self.on_motion)
        self.fig.canvas.mpl_connect("axes_leave_event", self.on_leave)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------
    def _build_axes(self) -> None:
        gs = self.fig.add_gridspec(
            nrows=2, ncols=2, height_ratios=[2, 1], width_ratios=[1, 1], hspace=0.35
        )
        self.ax_wf = self.fig.add_subplot(gs[0, :])
        self.ax_wave = self.fig.add_subplot(gs[1, 0])
        self.ax_spec = self.fig.add_subplot(gs[1, 1])

        self.im = self.ax_wf.imshow(
            self.waterfall.surface.pixels, aspect="auto", interpolation="nearest"
        )
        self.ax_wf.set_ylabel("Frequency")
        self.ax_wf.set_xlabel("Time (s)")
        self._grid_lines: list = []
        self._update_legend()

        w, h = self.config.plot_width, self.config.plot_height
        for ax, title in ((self.ax_wave, "Waveform"), (self.ax_spec, "Spectrum (FFT)")):
            ax.set_facecolor("black")
            ax.set_xlim(0, w)
            ax.set_ylim(h, 0)
            ax.set_xticks([])
            ax.set_yticks([])
            ax.set_title(title)
        (self.wave_line,) = self.ax_wave.plot([], [], lw=2, color="#4caf50")
        (self.spec_line,) = self.ax_spec.plot([], [], lw=2, color="#ff9800")

        self.features_text = self.fig.text(0.80, 0.93, "", va="top", family="monospace")
        self.status_text = self.fig.text(0.01, 0.97, "", va="top")
        self._update_status()

    def _update_legend(self) -> None:
        ticks = legend_ticks(self.waterfall.height, self.waterfall.scale_mode)
        self.ax_wf.set_yticks([t.row for t in ticks])
        self.ax_wf.set_yticklabels([t.label for t in ticks])
        for line in self._grid_lines:
            line.remove()
        self._grid_lines = [
            self.ax_wf.axhline(t.row, color=(1.0, 0.6, 0.0, 0.3), lw=1) for t in ticks
        ]
        width = self.waterfall.width
        xs = [i / _TIME_GRID_INTERVALS * (width - 1) for i in range(_TIME_GRID_INTERVALS + 1)]
        self._grid_lines.extend(
            self.ax_wf.axvline(x, color=(1.0, 0.6, 0.0, 0.3), lw=1) for x in xs
        )
        self.ax_wf.set_xticks(xs)
        self.ax_wf.set_xticklabels([str(i) for i in range(_TIME_GRID_INTERVALS + 1)])

    def _update_status(self) -> None:
        mode = self.controller.mode
        if isinstance(mode, Replaying):
            state = f"Replaying {mode.recording.label}"
        elif isinstance(mode, Live):
            state = "Listening"
        else:
            state = "Idle"
        if self.controller.is_recording:
            state += "  |  ● Recording"
        hover = f"{self.hover_hz:.0f} Hz" if self.hover_hz is not None else "—"
        scale = self.waterfall.scale_mode.value
        parts = [
            f"{state}  |  Freq: {hover}  |  Scale: {scale}  |  Recordings: {len(self.collection)}",
            "[r] record  [l] log/linear  [p] replay latest  [1-9] replay n  "
            "[x] stop replay  [d] delete latest  [e] export  [m] retry mic  [q] quit",
        ]
        if self.error:
            parts.append(self.error)
        self.status_text.set_text("\n".join(parts))

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def _on_frame(self, summary: FeatureSummary) -> None:
        self.im.set_data(self.waterfall.surface.pixels)
        self.wave_line.set_data(self.waveform_surface.xs, self.waveform_surface.ys)
        self.spec_line.set_data(self.spectrum_surface.xs, self.spectrum_surface.ys)
        self.features_text.set_text(describe_features(summary))
        self.fig.canvas.draw_idle()

    def _on_mode_change(self, _previous: Mode, current: Mode) -> None:
        if isinstance(current, Idle):
            self.features_text.set_text(describe_features(None))
        if self.controller.acquisition_error is not None:
            self.error = _MIC_ERROR
        elif isinstance(current, Live):
            self.error = ""
        self._update_status()
        self.fig.canvas.draw_idle()

    def on_motion(self, event) -> None:
        if event.inaxes is self.ax_wf and event.ydata is not None:
            # imshow centers row r on y == r; convert to top-edge pixel coordinates.
            self.hover_hz = hover_frequency(
                event.ydata + 0.5, self.waterfall.height, self.waterfall.scale_mode
            )
        elif event.inaxes is self.ax_spec and event.xdata is not None:
            p = self.pipeline.params
            self.hover_hz = spectrum_hover_frequency(
                event.xdata,
                self.spectrum_surface.width,
                p.buffer_length,
                p.sample_rate_hz,
                p.transform_size,
            )
        else:
            self.hover_hz = None
        self._update_status()
        self.fig.canvas.draw_idle()

    def on_leave(self, _event) -> None:
        self.hover_hz = None
        self._update_status()

    def on_key(self, event) -> None:
        key = event.key
        if key in ("q", "escape"):
            plt.close(self.fig)
        elif key == "r":
            self.controller.toggle_recording()
        elif key == "l":
            self.controller.set_scale_mode(self.waterfall.scale_mode.toggled())
            self._update_legend()
        elif key == "p":
            self.replay_index(0)
        elif key is not None and key.isdigit() and key != "0":
            self.replay_index(int(key) - 1)
        elif key == "x":
            self.controller.cancel_replay()
        elif key == "d":
            latest = self.collection.at(0)
            if latest is not None:
                self.controller.delete_recording(latest.id)
        elif key == "e":
            self.export(Path(default_export_name()))
        elif key == "m":
            self.start()
        self._update_status()
        self.fig.canvas.draw_idle()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def replay_index(self, index: int) -> bool:
        recording = self.collection.at(index)
        if recording is None:
            return False
        return self.controller.start_replay(recording.id)

    def export(self, path: Path) -> Optional[Path]:
        if not len(self.collection):
            return None
        try:
            return export_recordings(path, self.collection)
        except StorageUnavailable as exc:
            logger.error("Export failed: %s", exc)
            self.error = f"Export failed: {exc}"
            return None

    def start(self) -> bool:
        """Start live capture, reporting a refused device instead of raising."""
        try:
            self.controller.start_live()
        except AcquisitionDenied as exc:
            logger.error("Could not access the microphone: %s", exc)
            self.error = _MIC_ERROR
            self._update_status()
            return False
        self.error = ""
        self._update_status()
        return True

    def run(self) -> None:
        self.waterfall.clear()
        self.start()
        try:
            plt.show()
        finally:
            self.controller.stop()


__all__ = ["WaterfallApp", "MatplotlibTickSource", "describe_features"]
