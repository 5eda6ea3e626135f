from pathlib import Path
from types import SimpleNamespace
import sys

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from spectral_waterfall.acquisition import DemoSource
from spectral_waterfall.analyzer import FeatureSummary, Harmonic
from spectral_waterfall.config import WaterfallConfig
from spectral_waterfall.errors import AcquisitionDenied
from spectral_waterfall.frequency_mapper import ScaleMode, hover_frequency
from spectral_waterfall.mode import Idle, Live, ManualTickSource, Replaying
from spectral_waterfall.visualizer import WaterfallApp, describe_features


@pytest.fixture
def app():
    config = WaterfallConfig(
        sample_rate=8000,
        transform_size=256,
        waterfall_width=64,
        waterfall_height=48,
        plot_width=64,
        plot_height=32,
        hop=128,
    )
    ticks = ManualTickSource()
    instance = WaterfallApp(DemoSource(8000, 128), config=config, tick_source=ticks)
    yield instance, ticks
    plt.close(instance.fig)


def _key(key):
    return SimpleNamespace(key=key)


def test_describe_features():
    assert describe_features(None) == "Top resonating: —"
    summary = FeatureSummary(440.0, 220.0, (Harmonic(2, 440.0, 90),))
    text = describe_features(summary)
    assert "Top resonating: 440 Hz" in text
    assert "Fundamental: 220 Hz" in text
    assert "2×  440 Hz" in text


def test_live_frames_update_artists(app):
    instance, ticks = app
    assert instance.start()
    assert isinstance(instance.controller.mode, Live)
    for _ in range(3):
        ticks.fire()
    assert instance.pipeline.last_summary is not None
    assert instance.waveform_surface.point_count == 256
    assert instance.features_text.get_text().startswith("Top resonating:")


def test_keys_drive_recording_and_replay(app):
    instance, ticks = app
    instance.start()
    instance.on_key(_key("r"))
    for _ in range(2):
        ticks.fire()
    instance.on_key(_key("r"))
    assert len(instance.collection) == 1

    instance.on_key(_key("1"))
    assert isinstance(instance.controller.mode, Replaying)
    instance.on_key(_key("x"))
    assert isinstance(instance.controller.mode, Live)

    instance.on_key(_key("d"))
    assert len(instance.collection) == 0


def test_scale_toggle_relabels_legend(app):
    instance, _ticks = app
    before = [label.get_text() for label in instance.ax_wf.get_yticklabels()]
    instance.on_key(_key("l"))
    assert instance.waterfall.scale_mode is ScaleMode.LINEAR
    after = [label.get_text() for label in instance.ax_wf.get_yticklabels()]
    assert before != after


def test_hover_over_waterfall(app):
    instance, _ticks = app
    instance.on_motion(SimpleNamespace(inaxes=instance.ax_wf, ydata=0.0, xdata=3.0))
    assert instance.hover_hz is not None and instance.hover_hz > 10000
    instance.on_leave(None)
    assert instance.hover_hz is None


def test_export_writes_file(app, tmp_path):
    instance, ticks = app
    assert instance.export(tmp_path / "none.json") is None
    instance.start()
    instance.controller.start_recording()
    ticks.fire()
    instance.controller.stop_recording()
    path = instance.export(tmp_path / "export.json")
    assert path is not None and path.exists()


def test_hover_matches_painted_row(app):
    instance, _ticks = app
    height = instance.waterfall.height
    mode = instance.waterfall.scale_mode
    for row in (0, 10, height - 1):
        instance.on_motion(SimpleNamespace(inaxes=instance.ax_wf, ydata=float(row), xdata=0.0))
        assert instance.hover_hz == pytest.approx(hover_frequency(row + 0.5, height, mode))


def test_denied_resume_after_replay_shows_retry_message(app):
    instance, ticks = app
    instance.start()
    instance.controller.start_recording()
    ticks.fire()
    instance.controller.stop_recording()
    instance.replay_index(0)

    def deny():
        raise AcquisitionDenied("device busy")

    instance.acquirer.source.start = deny
    instance.on_key(_key("x"))
    assert isinstance(instance.controller.mode, Idle)
    assert "press [m] to retry" in instance.error
    assert "press [m] to retry" in instance.status_text.get_text()
