"""Single owner of the live/replay mode and of the tick schedule.

Only one driver paints the surfaces at a time.  Every transition cancels
the pending tick of the mode being left before the next mode touches the
pipeline, so no callback from an old mode survives a switch.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from spectral_waterfall.errors import AcquisitionDenied, WaterfallError
from spectral_waterfall.frequency_mapper import ScaleMode
from spectral_waterfall.models import AnalysisParams, Recording
from spectral_waterfall.pipeline import FramePipeline
from spectral_waterfall.recording import RecordingBuffer, RecordingCollection
from spectral_waterfall.replay import ReplayEngine
from spectral_waterfall.utils import monotonic_ms

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Live:
    params: AnalysisParams


@dataclass(frozen=True, eq=False)
class Replaying:
    recording: Recording
    start_time: float


Mode = Union[Idle, Live, Replaying]
ModeListener = Callable[[Mode, Mode], None]


class TickSource:
    """One-shot callbacks aligned with display refreshes."""

    def schedule(self, callback: TickCallback) -> object:  # pragma: no cover - interface
        raise NotImplementedError

    def cancel(self, handle: object) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ManualTickSource(TickSource):
    """Tick source driven explicitly with :meth:`fire`; used headless and in tests."""

    def __init__(self) -> None:
        self._pending: dict[int, TickCallback] = {}
        self._ids = itertools.count(1)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, callback: TickCallback) -> object:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: object) -> None:
        self._pending.pop(handle, None)  # type: ignore[arg-type]

    def fire(self) -> int:
        """Run the callbacks scheduled before this refresh; returns how many ran."""
        due, self._pending = self._pending, {}
        for callback in due.values():
            callback()
        return len(due)


class ModeController:
    """Owns the tagged mode ``Idle | Live | Replaying`` and all transitions."""

    def __init__(
        self,
        pipeline: FramePipeline,
        collection: RecordingCollection,
        tick_source: TickSource,
        acquirer=None,
        clock: Callable[[], float] = monotonic_ms,
        resume_live_after_replay: bool = True,
    ) -> None:
        self.pipeline = pipeline
        self.collection = collection
        self.tick_source = tick_source
        self.acquirer = acquirer
        self.clock = clock
        self.resume_live_after_replay = resume_live_after_replay
        self.recorder = RecordingBuffer(collection, clock=clock)
        self.mode: Mode = Idle()
        self.replay: Optional[ReplayEngine] = None
        self.acquisition_error: Optional[AcquisitionDenied] = None
        self._tick_handle: Optional[object] = None
        self._listeners: list[ModeListener] = []

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def add_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def _set_mode(self, mode: Mode) -> None:
        previous, self.mode = self.mode, mode
        logger.info("Mode %s -> %s", type(previous).__name__, type(mode).__name__)
        self._notify(previous)

    def _notify(self, previous: Mode) -> None:
        for listener in list(self._listeners):
            listener(previous, self.mode)

    def _cancel_tick(self) -> None:
        if self._tick_handle is not None:
            self.tick_source.cancel(self._tick_handle)
            self._tick_handle = None

    def _schedule(self, callback: TickCallback) -> None:
        self._tick_handle = self.tick_source.schedule(callback)

    @property
    def is_live(self) -> bool:
        return isinstance(self.mode, Live)

    @property
    def is_replaying(self) -> bool:
        return isinstance(self.mode, Replaying)

    @property
    def is_recording(self) -> bool:
        return self.recorder.active

    def start_live(self) -> None:
        """Begin live capture; :class:`AcquisitionDenied` leaves the mode Idle."""
        if self.acquirer is None:
            raise RuntimeError("no acquisition source configured")
        if self.is_live:
            return
        if self.is_replaying:
            self._end_replay(resume=False)
        self._cancel_tick()
        self.acquirer.start()
        self.acquisition_error = None
        self.pipeline.set_params(self.acquirer.params)
        self.pipeline.waterfall.clear()
        self._set_mode(Live(self.pipeline.params))
        self._schedule(self._live_tick)

    def stop(self) -> None:
        """Return to Idle from any mode, saving an in-progress recording."""
        self._cancel_tick()
        if self.recorder.active:
            self.recorder.stop()
        if self.replay is not None:
            self.replay.cancel()
            self.replay = None
        if self.acquirer is not None:
            self.acquirer.stop()
        if not isinstance(self.mode, Idle):
            self._set_mode(Idle())

    def start_recording(self) -> bool:
        if self.is_replaying or self.recorder.active:
            return False
        self.recorder.start(self.pipeline.params)
        return True

    def stop_recording(self) -> Optional[Recording]:
        return self.recorder.stop()

    def toggle_recording(self) -> Optional[Recording]:
        if self.recorder.active:
            return self.stop_recording()
        self.start_recording()
        return None

    def start_replay(self, recording_id: str) -> bool:
        recording = self.collection.get(recording_id)
        if recording is None:
            logger.warning("No recording with id %s", recording_id)
            return False
        # Live capture is cancelled before the replay touches the surfaces.
        self._cancel_tick()
        if self.recorder.active:
            self.recorder.stop()
        if self.replay is not None:
            self.replay.cancel()
        if self.acquirer is not None:
            self.acquirer.stop()

        engine = ReplayEngine(recording, self.pipeline, clock=self.clock)
        engine.start()
        self.replay = engine
        self._set_mode(Replaying(recording, engine.start_time))
        self._schedule(self._replay_tick)
        return True

    def cancel_replay(self) -> None:
        if self.is_replaying:
            self._end_replay(resume=self.resume_live_after_replay)

    def _end_replay(self, resume: bool) -> None:
        self._cancel_tick()
        if self.replay is not None:
            self.replay.cancel()
            self.replay = None
        self._set_mode(Idle())
        if resume and self.acquirer is not None:
            try:
                self.start_live()
            except AcquisitionDenied as exc:
                logger.error("Could not resume live capture after replay: %s", exc)
                self.acquisition_error = exc
                self._notify(self.mode)

    def delete_recording(self, recording_id: str) -> bool:
        mode = self.mode
        try:
            if isinstance(mode, Replaying) and mode.recording.id == recording_id:
                self.cancel_replay()
        finally:
            deleted = self.collection.delete(recording_id)
        return deleted

    def rename_recording(self, recording_id: str, label: str) -> Recording:
        return self.collection.rename(recording_id, label)

    def set_scale_mode(self, scale_mode: ScaleMode) -> None:
        self.pipeline.set_scale_mode(scale_mode)

    # ------------------------------------------------------------------
    # Tick handlers
    # ------------------------------------------------------------------
    def _live_tick(self) -> None:
        self._tick_handle = None
        if not self.is_live:
            return
        try:
            magnitudes, time_domain = self.acquirer.read_frame()
            summary = self.pipeline.process(magnitudes, time_domain)
            if summary is not None and self.recorder.active:
                self.recorder.append(magnitudes, time_domain, now_ms=self.clock())
        except WaterfallError as exc:
            logger.warning("Live tick failed: %s", exc)
        finally:
            if self.is_live and self._tick_handle is None:
                self._schedule(self._live_tick)

    def _replay_tick(self) -> None:
        self._tick_handle = None
        engine = self.replay
        if engine is None or not self.is_replaying:
            return
        try:
            engine.tick()
        except WaterfallError as exc:
            logger.warning("Replay tick failed: %s", exc)
        finally:
            if engine.complete:
                self._end_replay(resume=self.resume_live_after_replay)
            elif self.replay is engine and self._tick_handle is None:
                self._schedule(self._replay_tick)


__all__ = [
    "Idle",
    "Live",
    "Replaying",
    "Mode",
    "TickSource",
    "ManualTickSource",
    "ModeController",
]
