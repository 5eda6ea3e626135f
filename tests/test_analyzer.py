from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from spectral_waterfall.analyzer import SpectralAnalyzer, analyze_magnitudes
from spectral_waterfall.errors import InvalidFrame
from spectral_waterfall.frequency_mapper import freq_to_bin
from spectral_waterfall.models import AnalysisParams

PARAMS = AnalysisParams(sample_rate_hz=44100, transform_size=2048)
BIN_HZ = 44100 / 2048


def _harmonic_frame(f0: float = 100.0) -> np.ndarray:
    mags = np.zeros(PARAMS.buffer_length, dtype=np.uint8)
    fundamental_bin = freq_to_bin(f0, 44100, 2048)
    mags[fundamental_bin] = 200
    for order, value in ((2, 120), (3, 90), (4, 60)):
        mags[order * fundamental_bin] = value
    return mags


def test_silence_has_no_fundamental():
    summary = analyze_magnitudes(np.zeros(1024, dtype=np.uint8), PARAMS)
    assert summary.dominant_freq_hz == 0.0
    assert summary.fundamental_freq_hz is None
    assert summary.harmonics == ()


def test_isolated_peak_with_harmonics():
    summary = SpectralAnalyzer(PARAMS).analyze(_harmonic_frame())

    assert summary.fundamental_freq_hz == pytest.approx(100.0, abs=BIN_HZ)
    assert [h.order for h in summary.harmonics] == [2, 3, 4]
    for harmonic, expected in zip(summary.harmonics, (200.0, 300.0, 400.0)):
        assert harmonic.frequency_hz == pytest.approx(expected, abs=harmonic.order * BIN_HZ)
        assert harmonic.frequency_hz == pytest.approx(
            harmonic.order * summary.fundamental_freq_hz
        )
    assert [h.amplitude for h in summary.harmonics] == [120, 90, 60]
    assert summary.dominant_freq_hz == summary.fundamental_freq_hz


def test_exact_bin_alignment():
    params = AnalysisParams(sample_rate_hz=51200, transform_size=2048)
    mags = np.zeros(params.buffer_length, dtype=np.uint8)
    mags[4] = 200  # 100 Hz at 25 Hz per bin
    mags[8] = 40
    mags[12] = 31
    mags[16] = 30
    summary = analyze_magnitudes(mags, params)
    assert summary.fundamental_freq_hz == 100.0
    assert [(h.order, h.frequency_hz, h.amplitude) for h in summary.harmonics] == [
        (2, 200.0, 40),
        (3, 300.0, 31),
    ]


def test_dominant_ties_resolve_to_lowest_bin():
    mags = np.zeros(1024, dtype=np.uint8)
    mags[300] = 180
    mags[40] = 180
    summary = analyze_magnitudes(mags, PARAMS)
    assert summary.dominant_freq_hz == pytest.approx(40 * BIN_HZ)


def test_peaks_below_threshold_are_ignored():
    mags = np.zeros(1024, dtype=np.uint8)
    mags[10] = 50
    summary = analyze_magnitudes(mags, PARAMS)
    assert summary.dominant_freq_hz == pytest.approx(10 * BIN_HZ)
    assert summary.fundamental_freq_hz is None


def test_plateau_is_not_a_peak():
    mags = np.zeros(1024, dtype=np.uint8)
    mags[10] = 120
    mags[11] = 120
    assert analyze_magnitudes(mags, PARAMS).fundamental_freq_hz is None


def test_fundamental_search_stops_at_2khz():
    mags = np.zeros(1024, dtype=np.uint8)
    mags[freq_to_bin(3000.0, 44100, 2048)] = 250
    mags[20] = 60
    summary = analyze_magnitudes(mags, PARAMS)
    assert summary.dominant_freq_hz == pytest.approx(3000.0, abs=BIN_HZ)
    assert summary.fundamental_freq_hz == pytest.approx(20 * BIN_HZ)


def test_largest_peak_wins_first_seen_on_ties():
    mags = np.zeros(1024, dtype=np.uint8)
    mags[15] = 90
    mags[30] = 150
    mags[45] = 150
    summary = analyze_magnitudes(mags, PARAMS)
    assert summary.fundamental_freq_hz == pytest.approx(30 * BIN_HZ)


def test_harmonics_out_of_range_are_skipped():
    params = AnalysisParams(sample_rate_hz=8000, transform_size=64)
    mags = np.zeros(params.buffer_length, dtype=np.uint8)
    mags[10] = 200  # 1250 Hz, 4th harmonic lands beyond the last bin
    mags[20] = 100
    mags[30] = 100
    summary = analyze_magnitudes(mags, params)
    assert summary.fundamental_freq_hz == 1250.0
    assert [h.order for h in summary.harmonics] == [2, 3]


@pytest.mark.parametrize(
    "bad",
    [
        np.zeros(1000, dtype=np.uint8),
        np.zeros((2, 512), dtype=np.uint8),
        np.full(1024, -1, dtype=np.int16),
        np.full(1024, 256, dtype=np.int16),
        np.array(["a"] * 1024),
    ],
)
def test_malformed_frames_are_rejected(bad):
    with pytest.raises(InvalidFrame):
        SpectralAnalyzer(PARAMS).analyze(bad)
