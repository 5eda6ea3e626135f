"""JSON representation of recordings: export, import and the on-disk store."""

from __future__ import annotations

import json
import logging
import math
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np

from spectral_waterfall.errors import MalformedRecording, StorageUnavailable
from spectral_waterfall.frequency_mapper import ScaleMode
from spectral_waterfall.models import AnalysisParams, Frame, Recording

logger = logging.getLogger(__name__)

_SAMPLE_RATE_KEYS = ("sampleRateHz", "sampleRate")
_TRANSFORM_SIZE_KEYS = ("transformSize", "fftSize")
_SILENCE = 128


@dataclass(frozen=True)
class RecordingDefaults:
    """Values substituted for fields a persisted record does not provide."""

    params: AnalysisParams
    id: str
    label: str
    created_at: str


def now_label() -> str:
    return datetime.now().isoformat(timespec="seconds")


def frame_to_dict(frame: Frame) -> dict[str, Any]:
    return {
        "t": frame.relative_time_ms,
        "freq": frame.magnitudes.tolist(),
        "timeDomain": frame.time_domain.tolist(),
    }


def recording_to_dict(recording: Recording) -> dict[str, Any]:
    params = recording.params
    return {
        "id": recording.id,
        "label": recording.label,
        "createdAt": recording.created_at,
        "durationMs": recording.duration_ms,
        "sampleRateHz": params.sample_rate_hz,
        "transformSize": params.transform_size,
        "bufferLength": params.buffer_length,
        "scaleMode": params.scale_mode.value,
        "frames": [frame_to_dict(frame) for frame in recording.frames],
    }


def _positive_number(
    raw: Mapping[str, Any], keys: Sequence[str], allow_zero: bool = False
) -> Optional[float]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isfinite(value) and (value > 0 or (allow_zero and value == 0)):
            return float(value)
    return None


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _byte_array(values: Any, length: int, what: str) -> np.ndarray:
    if not isinstance(values, (list, tuple)):
        raise MalformedRecording(f"{what} is not an array")
    if len(values) != length:
        raise MalformedRecording(f"{what} has {len(values)} values, expected {length}")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
        raise MalformedRecording(f"{what} contains non-numeric values")
    arr = np.asarray(values, dtype=np.float64)
    if arr.size and (not np.all(np.isfinite(arr)) or arr.min() < 0 or arr.max() > 255):
        raise MalformedRecording(f"{what} values must lie in [0, 255]")
    return arr.astype(np.uint8)


def _infer_transform_size(raw: Mapping[str, Any], frames: list[Any]) -> Optional[int]:
    explicit = _positive_number(raw, _TRANSFORM_SIZE_KEYS)
    if explicit is not None:
        return int(explicit)
    buffer_length = _positive_number(raw, ("bufferLength",))
    if buffer_length is not None:
        return int(buffer_length) * 2
    first = frames[0] if frames else None
    if isinstance(first, Mapping):
        if isinstance(first.get("timeDomain"), list) and first["timeDomain"]:
            return len(first["timeDomain"])
        if isinstance(first.get("freq"), list) and first["freq"]:
            return len(first["freq"]) * 2
    return None


def reconcile(raw: Any, defaults: RecordingDefaults) -> Recording:
    """Merge a partial persisted record with ``defaults`` into a :class:`Recording`.

    Missing or non-positive numeric fields fall back to ``defaults``; the
    transform size is inferred from the stored arrays before falling back.
    Entries whose ``frames`` is not a non-empty array, or whose frames do
    not have the shape implied by the parameters, raise
    :class:`MalformedRecording`.  Frames are ordered by time and
    ``duration_ms`` is always the last frame's time.
    """
    if not isinstance(raw, Mapping):
        raise MalformedRecording("recording entry is not an object")
    frames_raw = raw.get("frames")
    if not isinstance(frames_raw, list):
        raise MalformedRecording("'frames' is not an array")
    if not frames_raw:
        raise MalformedRecording("recording has no frames")

    sample_rate = _positive_number(raw, _SAMPLE_RATE_KEYS)
    if sample_rate is None:
        sample_rate = defaults.params.sample_rate_hz
    transform_size = _infer_transform_size(raw, frames_raw)
    if transform_size is None:
        transform_size = defaults.params.transform_size
    try:
        scale_mode = ScaleMode.parse(raw.get("scaleMode", defaults.params.scale_mode))
    except ValueError:
        scale_mode = defaults.params.scale_mode
    params = AnalysisParams(sample_rate, transform_size, scale_mode)

    frames = []
    previous_t = 0.0
    for index, entry in enumerate(frames_raw):
        if not isinstance(entry, Mapping):
            raise MalformedRecording(f"frame {index} is not an object")
        t = _positive_number(entry, ("t",), allow_zero=True)
        t = previous_t if t is None else t
        magnitudes = _byte_array(
            entry.get("freq"), params.buffer_length, f"frame {index} 'freq'"
        )
        if "timeDomain" in entry:
            time_domain = _byte_array(
                entry["timeDomain"], params.transform_size, f"frame {index} 'timeDomain'"
            )
        else:
            time_domain = np.full(params.transform_size, _SILENCE, dtype=np.uint8)
        frames.append(Frame.capture(t, magnitudes, time_domain))
        previous_t = t

    frames.sort(key=lambda frame: frame.relative_time_ms)
    return Recording(
        id=_non_empty_str(raw.get("id")) or defaults.id,
        label=_non_empty_str(raw.get("label")) or defaults.label,
        created_at=_non_empty_str(raw.get("createdAt")) or defaults.created_at,
        duration_ms=frames[-1].relative_time_ms,
        params=params,
        frames=tuple(frames),
    )


def parse_recordings(
    payload: Any,
    params: AnalysisParams,
    *,
    fresh_ids: bool = False,
    label_prefix: str = "Imported recording",
) -> tuple[list[Recording], list[MalformedRecording]]:
    """Reconcile every entry of ``payload``; malformed entries are skipped.

    Returns the recordings in payload order together with the errors of the
    skipped entries.  With ``fresh_ids`` every entry gets a newly minted id
    so an imported batch never collides with recordings already held.
    """
    if isinstance(payload, Mapping):
        payload = [payload]
    if not isinstance(payload, list):
        raise MalformedRecording("expected a JSON array of recordings")

    stamp = int(time.time() * 1000)
    created = now_label()
    recordings: list[Recording] = []
    skipped: list[MalformedRecording] = []
    for index, entry in enumerate(payload):
        defaults = RecordingDefaults(
            params=params,
            id=f"{stamp}-{index}-{secrets.token_hex(3)}",
            label=f"{label_prefix} {index + 1}",
            created_at=created,
        )
        if fresh_ids and isinstance(entry, Mapping):
            entry = {k: v for k, v in entry.items() if k != "id"}
        try:
            recordings.append(reconcile(entry, defaults))
        except MalformedRecording as exc:
            logger.warning("Skipping recording entry %d: %s", index, exc)
            skipped.append(exc)
    return recordings, skipped


def export_recordings(path: Path, recordings: Iterable[Recording]) -> Path:
    """Write ``recordings`` to ``path`` as an indented JSON array."""
    path = Path(path)
    data = [recording_to_dict(rec) for rec in recordings]
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
    except OSError as exc:
        raise StorageUnavailable(f"could not write {path}: {exc}") from exc
    logger.info("Exported %d recordings to %s", len(data), path)
    return path


def import_recordings(
    path: Path, params: AnalysisParams
) -> tuple[list[Recording], list[MalformedRecording]]:
    """Read a JSON export and return its well-formed recordings with fresh ids."""
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise MalformedRecording(f"could not read {path}: {exc}") from exc
    recordings, skipped = parse_recordings(payload, params, fresh_ids=True)
    logger.info(
        "Imported %d recordings from %s (%d skipped)", len(recordings), path, len(skipped)
    )
    return recordings, skipped


def default_export_name() -> str:
    stamp = datetime.now().isoformat().replace(":", "-").replace(".", "-")
    return f"waterfall-recordings-{stamp}.json"


class RecordingStore:
    """Persists the whole recordings collection as one JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, params: AnalysisParams) -> list[Recording]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageUnavailable(f"could not read {self.path}: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageUnavailable(f"{self.path} is not valid JSON: {exc}") from exc
        try:
            recordings, _ = parse_recordings(payload, params, label_prefix="Recording")
        except MalformedRecording as exc:
            raise StorageUnavailable(f"{self.path}: {exc}") from exc
        return recordings

    def save(self, recordings: Iterable[Recording]) -> None:
        data = [recording_to_dict(rec) for rec in recordings]
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise StorageUnavailable(f"could not write {self.path}: {exc}") from exc


__all__ = [
    "RecordingDefaults",
    "RecordingStore",
    "reconcile",
    "parse_recordings",
    "recording_to_dict",
    "frame_to_dict",
    "export_recordings",
    "import_recordings",
    "default_export_name",
]
