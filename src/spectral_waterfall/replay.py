"""Wall-clock playback of a stored recording through the live pipeline."""

from __future__ import annotations

import bisect
import logging
from typing import Callable, Optional, Sequence

from spectral_waterfall.analyzer import FeatureSummary
from spectral_waterfall.models import Frame, Recording
from spectral_waterfall.pipeline import FramePipeline
from spectral_waterfall.utils import monotonic_ms

logger = logging.getLogger(__name__)


def select_frame_index(frame_times: Sequence[float], elapsed_ms: float) -> tuple[int, bool]:
    """Index of the frame to show ``elapsed_ms`` into playback.

    The first frame whose timestamp is at or after ``elapsed_ms`` is chosen,
    so each frame is held on screen until its own time arrives.  Past the
    last timestamp the last frame is returned together with ``True`` to
    signal that playback is complete.
    """
    if not frame_times:
        raise ValueError("recording has no frames")
    index = bisect.bisect_left(frame_times, elapsed_ms)
    if index >= len(frame_times):
        return len(frame_times) - 1, True
    return index, False


class ReplayEngine:
    """Drives a :class:`FramePipeline` from a recording's frames.

    The engine only reads the recording.  Playback is linear from the start
    and ends either on completion or on :meth:`cancel`.
    """

    def __init__(
        self,
        recording: Recording,
        pipeline: FramePipeline,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        if not recording.frames:
            raise ValueError("cannot replay a recording without frames")
        self.recording = recording
        self.pipeline = pipeline
        self._clock = clock
        self._times = recording.frame_times
        self.start_time: Optional[float] = None
        self.complete = False
        self.cancelled = False
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self.start_time is not None and not (self.complete or self.cancelled)

    def start(self, now_ms: Optional[float] = None) -> None:
        self.pipeline.set_params(self.recording.params)
        self.pipeline.waterfall.clear()
        self.start_time = self._clock() if now_ms is None else now_ms
        self.complete = False
        self.cancelled = False
        self.ticks = 0
        logger.info(
            "Replaying %s (%d frames, %.0f ms)",
            self.recording.label,
            len(self.recording.frames),
            self.recording.duration_ms,
        )

    def cancel(self) -> None:
        if self.running:
            logger.info("Replay of %s cancelled", self.recording.label)
        self.cancelled = True

    def elapsed(self, now_ms: Optional[float] = None) -> float:
        if self.start_time is None:
            raise RuntimeError("replay has not been started")
        now = self._clock() if now_ms is None else now_ms
        return now - self.start_time

    def frame_at(self, elapsed_ms: float) -> tuple[Frame, bool]:
        index, complete = select_frame_index(self._times, elapsed_ms)
        return self.recording.frames[index], complete

    def tick(self, now_ms: Optional[float] = None) -> Optional[FeatureSummary]:
        """Show the frame due at the current time; returns its features."""
        if not self.running:
            return None
        elapsed = self.elapsed(now_ms)
        frame, complete = self.frame_at(elapsed)
        summary = self.pipeline.process(frame.magnitudes, frame.time_domain)
        self.ticks += 1
        logger.debug("Replay tick %d at %.1f ms -> frame t=%.1f", self.ticks, elapsed, frame.relative_time_ms)
        if complete:
            self.complete = True
            logger.info("Replay of %s finished", self.recording.label)
        return summary


__all__ = ["ReplayEngine", "select_frame_index"]
