from pathlib import Path
import sys

import numpy as np

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from spectral_waterfall.frequency_mapper import ScaleMode, column_rows
from spectral_waterfall.models import AnalysisParams
from spectral_waterfall.rendering import (
    AuxiliaryPlotRenderer,
    PixelSurface,
    PolylineSurface,
    WaterfallRenderer,
    intensity_to_color,
)

SMALL = AnalysisParams(sample_rate_hz=8000, transform_size=64, scale_mode=ScaleMode.LINEAR)


def test_intensity_to_color_endpoints():
    assert intensity_to_color(0.0).tolist() == [0, 0, 0]
    assert intensity_to_color(1.0).tolist() == [255, 50, 255]
    assert intensity_to_color(0.25).tolist() == [3, 12, 127]


def test_intensity_to_color_is_vectorized_and_clipped():
    colors = intensity_to_color(np.array([-1.0, 0.5, 2.0]))
    assert colors.shape == (3, 3)
    assert colors.dtype == np.uint8
    assert colors[0].tolist() == [0, 0, 0]
    assert colors[2].tolist() == [255, 50, 255]


def test_scroll_left_keeps_rightmost_column():
    surface = PixelSurface(3, 2)
    surface.pixels[:, 0] = 10
    surface.pixels[:, 1] = 20
    surface.pixels[:, 2] = 30
    surface.scroll_left()
    assert surface.pixels[0, :, 0].tolist() == [20, 30, 30]


def test_render_paints_newest_column_and_scrolls_history():
    renderer = WaterfallRenderer(4, 16, SMALL)
    renderer.render(np.full(SMALL.buffer_length, 255, dtype=np.uint8))

    rows = column_rows(SMALL.buffer_length, 16, ScaleMode.LINEAR, 8000, 64)
    painted = sorted({int(r) for r in rows if r >= 0})
    assert painted
    for row in painted:
        assert renderer.surface.pixels[row, 3].tolist() == [255, 50, 255]
    unpainted = [r for r in range(16) if r not in painted]
    assert all(renderer.surface.pixels[r, 3].tolist() == [0, 0, 0] for r in unpainted)

    renderer.render(np.zeros(SMALL.buffer_length, dtype=np.uint8))
    for row in painted:
        assert renderer.surface.pixels[row, 2].tolist() == [255, 50, 255]
        assert renderer.surface.pixels[row, 3].tolist() == [0, 0, 0]


def test_highest_bin_owns_a_shared_row():
    rows = column_rows(SMALL.buffer_length, 16, ScaleMode.LINEAR, 8000, 64)
    shared_row = int(rows[1])
    owners = [i for i, r in enumerate(rows) if r == shared_row]
    assert len(owners) > 1

    mags = np.zeros(SMALL.buffer_length, dtype=np.uint8)
    mags[owners[:-1]] = 255
    renderer = WaterfallRenderer(4, 16, SMALL)
    renderer.render(mags)
    assert renderer.surface.pixels[shared_row, 3].tolist() == [0, 0, 0]

    mags[owners[-1]] = 255
    renderer.render(mags)
    assert renderer.surface.pixels[shared_row, 3].tolist() == [255, 50, 255]


def test_scale_change_only_affects_new_columns():
    params = AnalysisParams(44100, 2048, ScaleMode.LOGARITHMIC)
    renderer = WaterfallRenderer(8, 64, params)
    mags = np.linspace(0, 255, params.buffer_length).astype(np.uint8)
    renderer.render(mags)
    painted = renderer.surface.pixels[:, 7].copy()

    renderer.set_scale_mode(ScaleMode.LINEAR)
    renderer.render(mags)
    assert np.array_equal(renderer.surface.pixels[:, 6], painted)
    assert not np.array_equal(renderer.surface.pixels[:, 7], painted)


def test_clear_blackens_surface():
    renderer = WaterfallRenderer(4, 16, SMALL)
    renderer.render(np.full(SMALL.buffer_length, 200, dtype=np.uint8))
    renderer.clear()
    assert not renderer.surface.pixels.any()


def test_waveform_polyline_centers_silence():
    waveform = PolylineSurface(512, 160)
    spectrum = PolylineSurface(512, 160)
    AuxiliaryPlotRenderer(waveform, spectrum).render_waveform(np.full(2048, 128))
    assert waveform.point_count == 2048
    assert np.allclose(waveform.ys, 80.0)
    assert waveform.xs[1] == 0.25
    assert waveform.xs[-1] == 2047 * 0.25


def test_spectrum_polyline_uses_stride():
    waveform = PolylineSurface(512, 160)
    spectrum = PolylineSurface(512, 160)
    mags = np.zeros(1024, dtype=np.uint8)
    mags[::2] = 255
    AuxiliaryPlotRenderer(waveform, spectrum).render_spectrum(mags)
    assert spectrum.point_count == 512
    assert spectrum.xs[:3].tolist() == [0.0, 1.0, 2.0]
    assert np.allclose(spectrum.ys, 0.0)


def test_plots_are_stateless_between_frames():
    waveform = PolylineSurface(100, 50)
    spectrum = PolylineSurface(100, 50)
    plots = AuxiliaryPlotRenderer(waveform, spectrum)
    plots.render(np.full(64, 255), np.full(32, 255))
    plots.render(np.zeros(64), np.zeros(32))
    assert np.allclose(waveform.ys, 0.0)
    assert np.allclose(spectrum.ys, 50.0)
