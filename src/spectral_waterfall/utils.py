"""Small numeric and timing helpers."""

from __future__ import annotations

import time

import numpy as np
from scipy.signal import get_window

EPS = 1e-12


def dbfs(x: np.ndarray) -> np.ndarray:
    """Convert a linear magnitude array into dBFS."""
    return 20.0 * np.log10(np.maximum(x, EPS))


def blackman_window(n: int) -> np.ndarray:
    """Return a periodic Blackman window of length ``n`` as ``float32``."""
    return get_window("blackman", n, fftbins=True).astype(np.float32)


def monotonic_ms() -> float:
    """Milliseconds from an arbitrary, monotonically increasing origin."""
    return time.perf_counter() * 1000.0


__all__ = ["EPS", "dbfs", "blackman_window", "monotonic_ms"]
