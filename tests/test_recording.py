from pathlib import Path
import sys

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from spectral_waterfall.errors import StorageUnavailable
from spectral_waterfall.models import AnalysisParams, Frame, Recording
from spectral_waterfall.persistence import RecordingStore
from spectral_waterfall.recording import RecordingBuffer, RecordingCollection

PARAMS = AnalysisParams(sample_rate_hz=8000, transform_size=64)


def _frame_data(level: int = 0):
    return (
        np.full(PARAMS.buffer_length, level, dtype=np.uint8),
        np.full(PARAMS.transform_size, 128, dtype=np.uint8),
    )


def _recording(rec_id: str, label: str = "Recording") -> Recording:
    mags, td = _frame_data(10)
    return Recording(rec_id, label, "2024-01-01T00:00:00", 0.0, PARAMS, (Frame.capture(0, mags, td),))


def test_stop_without_frames_creates_nothing():
    collection = RecordingCollection()
    buffer = RecordingBuffer(collection)
    buffer.start(PARAMS)
    assert buffer.stop() is None
    assert len(collection) == 0
    assert not buffer.active


def test_frames_are_timed_from_the_first_frame():
    collection = RecordingCollection()
    buffer = RecordingBuffer(collection, wall_clock=lambda: 1700000000.0)
    buffer.start(PARAMS)
    for now in (1000.0, 1033.0, 1066.0):
        buffer.append(*_frame_data(), now_ms=now)
    recording = buffer.stop()

    assert recording is not None
    assert recording.frame_times == [0.0, 33.0, 66.0]
    assert recording.duration_ms == 66.0
    assert recording.label == "Recording 1"
    assert recording.id == "1700000000000-1"
    assert recording.params == PARAMS
    assert collection.at(0) is recording


def test_append_copies_buffers():
    collection = RecordingCollection()
    buffer = RecordingBuffer(collection, clock=lambda: 0.0)
    buffer.start(PARAMS)
    mags, td = _frame_data(7)
    frame = buffer.append(mags, td)
    mags[:] = 99
    assert frame.magnitudes[0] == 7
    with pytest.raises(ValueError):
        frame.magnitudes[0] = 1


def test_append_ignored_when_inactive():
    buffer = RecordingBuffer(RecordingCollection())
    assert buffer.append(*_frame_data(), now_ms=5.0) is None
    assert buffer.frame_count == 0


def test_collection_keeps_newest_first():
    collection = RecordingCollection()
    collection.add(_recording("a"))
    collection.add(_recording("b"))
    assert [rec.id for rec in collection] == ["b", "a"]
    assert collection.next_index == 3
    assert "a" in collection
    assert collection.at(5) is None


def test_extend_skips_known_ids_and_keeps_batch_order():
    collection = RecordingCollection([_recording("a")])
    added = collection.extend([_recording("x"), _recording("a"), _recording("y")])
    assert added == 2
    assert [rec.id for rec in collection] == ["x", "y", "a"]


def test_rename_and_delete():
    collection = RecordingCollection([_recording("a", "old")])
    renamed = collection.rename("a", "new")
    assert renamed.label == "new"
    assert collection.get("a").label == "new"
    with pytest.raises(KeyError):
        collection.rename("missing", "x")
    assert collection.delete("a")
    assert not collection.delete("a")
    assert len(collection) == 0


def test_listeners_see_every_change():
    collection = RecordingCollection()
    seen = []
    collection.add_listener(lambda c: seen.append(len(c)))
    collection.add(_recording("a"))
    collection.delete("a")
    assert seen == [1, 0]


def test_collection_persists_through_store(tmp_path):
    store = RecordingStore(tmp_path / "recordings.json")
    collection = RecordingCollection.load(store, PARAMS)
    collection.add(_recording("a", "first"))

    restored = RecordingCollection.load(store, PARAMS)
    assert [rec.id for rec in restored] == ["a"]
    assert restored.at(0).label == "first"
    assert restored.persistent


def test_store_failure_degrades_to_memory(monkeypatch, tmp_path):
    store = RecordingStore(tmp_path / "recordings.json")
    collection = RecordingCollection.load(store, PARAMS)

    def fail(_recordings):
        raise StorageUnavailable("disk full")

    monkeypatch.setattr(store, "save", fail)
    collection.add(_recording("a"))
    assert not collection.persistent
    assert len(collection) == 1
    collection.add(_recording("b"))
    assert len(collection) == 2


def test_unreadable_store_starts_empty(tmp_path):
    path = tmp_path / "recordings.json"
    path.write_text("{not json", encoding="utf-8")
    collection = RecordingCollection.load(RecordingStore(path), PARAMS)
    assert len(collection) == 0
    assert not collection.persistent
