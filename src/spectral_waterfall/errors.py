"""Error kinds raised by the waterfall pipeline."""

from __future__ import annotations


class WaterfallError(Exception):
    """Base class for all recoverable waterfall errors."""


class AcquisitionDenied(WaterfallError):
    """The audio input device is unavailable or access was refused."""


class InvalidFrame(WaterfallError):
    """A frame's arrays do not match the active analysis parameters."""


class MalformedRecording(WaterfallError):
    """A persisted or imported recording entry could not be understood."""


class StorageUnavailable(WaterfallError):
    """The recordings file could not be read or written."""


__all__ = [
    "WaterfallError",
    "AcquisitionDenied",
    "InvalidFrame",
    "MalformedRecording",
    "StorageUnavailable",
]
