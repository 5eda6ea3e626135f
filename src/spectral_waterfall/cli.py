"""Command-line entrypoint for the waterfall visualizer."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from spectral_waterfall.acquisition import DemoSource, MicSource, sd
from spectral_waterfall.config import WaterfallConfig, load_config
from spectral_waterfall.errors import AcquisitionDenied, MalformedRecording, StorageUnavailable
from spectral_waterfall.frequency_mapper import format_feature_frequency
from spectral_waterfall.persistence import RecordingStore, export_recordings, import_recordings
from spectral_waterfall.recording import RecordingCollection

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Live spectrogram waterfall with feature readout, recording and replay"
    )
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    parser.add_argument("--samplerate", type=int, default=None)
    parser.add_argument("--fft", type=int, default=None, help="Transform size")
    parser.add_argument("--device", type=str, default=None)
    parser.add_argument("--demo", action="store_true", help="Use a synthetic source")
    parser.add_argument(
        "--linear", action="store_true", help="Start with a linear frequency axis"
    )
    parser.add_argument(
        "--recordings", type=Path, default=None, help="Recordings JSON file"
    )
    parser.add_argument(
        "--import-file", type=Path, default=None, help="Import recordings and exit"
    )
    parser.add_argument(
        "--export-file", type=Path, default=None, help="Export recordings and exit"
    )
    parser.add_argument(
        "--list-recordings", action="store_true", help="List saved recordings and exit"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> WaterfallConfig:
    config = load_config(args.config)
    overrides = {}
    if args.samplerate is not None:
        overrides["sample_rate"] = args.samplerate
    if args.fft is not None:
        overrides["transform_size"] = args.fft
    if args.device is not None:
        overrides["device"] = args.device
    if args.linear:
        overrides["scale_mode"] = "linear"
    if args.recordings is not None:
        overrides["recordings_path"] = str(args.recordings)
    if not overrides:
        return config
    merged = {**vars(config), **overrides}
    return WaterfallConfig.from_dict(merged)


def create_source(args: argparse.Namespace, config: WaterfallConfig):
    if args.demo or sd is None:
        return DemoSource(config.sample_rate, config.hop)
    try:
        return MicSource(config.sample_rate, config.hop, device=config.device)
    except AcquisitionDenied as exc:  # pragma: no cover - interactive fallback
        logger.warning("Could not initialize microphone input: %s", exc)
        logger.warning(
            "Falling back to demo mode. Use --device to select input or install sounddevice."
        )
        return DemoSource(config.sample_rate, config.hop)


def _list_recordings(collection: RecordingCollection) -> None:
    if not len(collection):
        print("No recordings.")
        return
    for rec in collection:
        print(
            f"{rec.id}  {rec.label}  {rec.duration_ms / 1000.0:.1f}s  "
            f"{len(rec.frames)} frames  @ {rec.created_at}  "
            f"({format_feature_frequency(rec.params.sample_rate_hz)}, N={rec.params.transform_size})"
        )


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)
    params = config.analysis_params()
    store = RecordingStore(Path(config.recordings_path))
    collection = RecordingCollection.load(store, params)

    batch_command = False
    if args.import_file is not None:
        batch_command = True
        try:
            recordings, skipped = import_recordings(args.import_file, params)
        except MalformedRecording as exc:
            logger.error("Import failed: %s", exc)
            return 1
        added = collection.extend(recordings)
        print(f"Imported {added} recordings ({len(skipped)} skipped).")
    if args.export_file is not None:
        batch_command = True
        try:
            export_recordings(args.export_file, collection)
        except StorageUnavailable as exc:
            logger.error("Export failed: %s", exc)
            return 1
        print(f"Exported {len(collection)} recordings to {args.export_file}.")
    if args.list_recordings:
        batch_command = True
        _list_recordings(collection)
    if batch_command:
        return 0

    from spectral_waterfall.visualizer import WaterfallApp

    source = create_source(args, config)
    app = WaterfallApp(source=source, config=config, collection=collection)
    app.run()
    return 0


def main() -> None:
    raise SystemExit(run())


__all__ = ["parse_args", "build_config", "create_source", "run", "main"]
