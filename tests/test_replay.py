from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from spectral_waterfall.models import AnalysisParams, Frame, Recording
from spectral_waterfall.pipeline import FramePipeline
from spectral_waterfall.rendering import AuxiliaryPlotRenderer, PolylineSurface, WaterfallRenderer
from spectral_waterfall.replay import ReplayEngine, select_frame_index

PARAMS = AnalysisParams(sample_rate_hz=8000, transform_size=64)


def _pipeline(params=PARAMS):
    return FramePipeline(
        params,
        WaterfallRenderer(8, 16, params),
        AuxiliaryPlotRenderer(PolylineSurface(32, 16), PolylineSurface(32, 16)),
    )


def _recording(times, params=PARAMS):
    frames = tuple(
        Frame.capture(
            t,
            np.full(params.buffer_length, i * 10, dtype=np.uint8),
            np.full(params.transform_size, 128, dtype=np.uint8),
        )
        for i, t in enumerate(times)
    )
    return Recording("r1", "Recording 1", "2024-01-01T00:00:00", times[-1], params, frames)


def test_select_frame_holds_until_timestamp():
    times = [0.0, 100.0, 200.0]
    assert select_frame_index(times, 0.0) == (0, False)
    assert select_frame_index(times, 50.0) == (1, False)
    assert select_frame_index(times, 150.0) == (2, False)
    assert select_frame_index(times, 200.0) == (2, False)
    assert select_frame_index(times, 250.0) == (2, True)


def test_select_frame_requires_frames():
    with pytest.raises(ValueError):
        select_frame_index([], 10.0)


def test_replay_runs_to_completion():
    now = [0.0]
    pipeline = _pipeline()
    engine = ReplayEngine(_recording([0.0, 100.0, 200.0]), pipeline, clock=lambda: now[0])
    engine.start()

    shown = []
    for t in (0.0, 150.0, 250.0):
        now[0] = t
        shown.append(engine.tick())
    assert engine.complete
    assert not engine.running
    assert [s.dominant_freq_hz for s in shown] == [0.0, 0.0, 0.0]
    assert pipeline.last_summary is shown[-1]
    assert engine.tick() is None
    assert engine.ticks == 3


def test_replay_switches_pipeline_params_and_keeps_scale():
    other = AnalysisParams(sample_rate_hz=16000, transform_size=128)
    pipeline = _pipeline()
    engine = ReplayEngine(_recording([0.0, 30.0], other), pipeline, clock=lambda: 0.0)
    engine.start()
    assert pipeline.params.sample_rate_hz == 16000
    assert pipeline.params.transform_size == 128
    assert pipeline.params.scale_mode is PARAMS.scale_mode
    assert engine.tick() is not None
    assert pipeline.dropped_frames == 0


def test_cancel_stops_ticks():
    pipeline = _pipeline()
    engine = ReplayEngine(_recording([0.0, 100.0]), pipeline, clock=lambda: 0.0)
    engine.start()
    engine.cancel()
    assert engine.tick() is None
    assert engine.cancelled and not engine.complete


def test_empty_recording_is_rejected():
    empty = Recording("e", "Empty", "2024", 0.0, PARAMS, ())
    with pytest.raises(ValueError):
        ReplayEngine(empty, _pipeline())
