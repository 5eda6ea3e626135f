"""Capture of live frames and the collection that owns finished recordings."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Callable, Iterable, Iterator, Optional

import numpy as np

from spectral_waterfall.errors import StorageUnavailable
from spectral_waterfall.models import AnalysisParams, Frame, Recording
from spectral_waterfall.persistence import RecordingStore, now_label
from spectral_waterfall.utils import monotonic_ms

logger = logging.getLogger(__name__)

ChangeListener = Callable[["RecordingCollection"], None]


class RecordingCollection:
    """Most-recent-first list of recordings, optionally mirrored to disk.

    When the backing store fails the collection keeps working in memory and
    stops writing for the rest of the session.
    """

    def __init__(
        self,
        recordings: Iterable[Recording] = (),
        store: Optional[RecordingStore] = None,
    ) -> None:
        self._recordings: list[Recording] = list(recordings)
        self.store = store
        self.persistent = store is not None
        self._listeners: list[ChangeListener] = []

    @classmethod
    def load(cls, store: RecordingStore, params: AnalysisParams) -> "RecordingCollection":
        """Restore the collection persisted by a previous session."""
        try:
            recordings = store.load(params)
        except StorageUnavailable as exc:
            logger.warning("Recordings unavailable, keeping them in memory only: %s", exc)
            collection = cls((), store)
            collection.persistent = False
            return collection
        logger.info("Loaded %d recordings from %s", len(recordings), store.path)
        return cls(recordings, store)

    def __len__(self) -> int:
        return len(self._recordings)

    def __iter__(self) -> Iterator[Recording]:
        return iter(list(self._recordings))

    def __contains__(self, recording_id: object) -> bool:
        return any(rec.id == recording_id for rec in self._recordings)

    def list(self) -> list[Recording]:
        return list(self._recordings)

    def get(self, recording_id: str) -> Optional[Recording]:
        for rec in self._recordings:
            if rec.id == recording_id:
                return rec
        return None

    def at(self, index: int) -> Optional[Recording]:
        if 0 <= index < len(self._recordings):
            return self._recordings[index]
        return None

    @property
    def next_index(self) -> int:
        return len(self._recordings) + 1

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def add(self, recording: Recording) -> None:
        self._recordings.insert(0, recording)
        self._changed()

    def extend(self, recordings: Iterable[Recording]) -> int:
        """Prepend a batch, keeping the batch's own order."""
        batch = [rec for rec in recordings if rec.id not in self]
        if batch:
            self._recordings[:0] = batch
            self._changed()
        return len(batch)

    def delete(self, recording_id: str) -> bool:
        remaining = [rec for rec in self._recordings if rec.id != recording_id]
        if len(remaining) == len(self._recordings):
            return False
        self._recordings = remaining
        self._changed()
        return True

    def rename(self, recording_id: str, label: str) -> Recording:
        for i, rec in enumerate(self._recordings):
            if rec.id == recording_id:
                renamed = dataclasses.replace(rec, label=label)
                self._recordings[i] = renamed
                self._changed()
                return renamed
        raise KeyError(recording_id)

    def _changed(self) -> None:
        if self.store is not None and self.persistent:
            try:
                self.store.save(self._recordings)
            except StorageUnavailable as exc:
                logger.warning("Could not save recordings, continuing in memory: %s", exc)
                self.persistent = False
        for listener in list(self._listeners):
            listener(self)


class RecordingBuffer:
    """Accumulates frames between :meth:`start` and :meth:`stop`."""

    def __init__(
        self,
        collection: RecordingCollection,
        clock: Callable[[], float] = monotonic_ms,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.collection = collection
        self._clock = clock
        self._wall_clock = wall_clock
        self.active = False
        self._frames: list[Frame] = []
        self._origin: Optional[float] = None
        self._params: Optional[AnalysisParams] = None

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    def start(self, params: AnalysisParams) -> None:
        self._frames = []
        self._origin = None
        self._params = params
        self.active = True
        logger.info("Recording started")

    def append(
        self,
        magnitudes: np.ndarray,
        time_domain: np.ndarray,
        now_ms: Optional[float] = None,
    ) -> Optional[Frame]:
        if not self.active:
            return None
        now = self._clock() if now_ms is None else now_ms
        if self._origin is None:
            self._origin = now
        frame = Frame.capture(max(0.0, now - self._origin), magnitudes, time_domain)
        self._frames.append(frame)
        return frame

    def stop(self) -> Optional[Recording]:
        """Finish recording; adds and returns the new recording if any frames arrived."""
        if not self.active:
            return None
        self.active = False
        frames = tuple(self._frames)
        self._frames = []
        self._origin = None
        if not frames:
            logger.info("Recording stopped before any frame was captured")
            return None

        index = self.collection.next_index
        created_ms = int(self._wall_clock() * 1000)
        recording = Recording(
            id=f"{created_ms}-{index}",
            label=f"Recording {index}",
            created_at=now_label(),
            duration_ms=frames[-1].relative_time_ms,
            params=self._params or AnalysisParams(),
            frames=frames,
        )
        self.collection.add(recording)
        logger.info(
            "Saved %s: %d frames, %.0f ms", recording.label, len(frames), recording.duration_ms
        )
        return recording


__all__ = ["RecordingBuffer", "RecordingCollection"]
