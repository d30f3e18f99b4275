"""docreader: a local document reader with persistent progress and RSVP speed reading."""

from .errors import (
    ContentUnreadable,
    DecodeFailed,
    DocReaderError,
    EmptyExtraction,
    InvalidEvent,
    PermissionDenied,
    RenderFailure,
    StaleSession,
    UnknownDocument,
)
from .progress import to_offset, to_progress
from .store import DocumentRecord, ProgressStore

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ContentUnreadable",
    "DecodeFailed",
    "DocReaderError",
    "DocumentRecord",
    "EmptyExtraction",
    "InvalidEvent",
    "PermissionDenied",
    "ProgressStore",
    "RenderFailure",
    "StaleSession",
    "UnknownDocument",
    "to_offset",
    "to_progress",
]
