"""Conversions between pixel offsets, normalized progress and word cursors."""

from __future__ import annotations

from typing import Optional


def clamp(n, lo, hi):
    return max(lo, min(hi, n))


def to_progress(offset: int, estimated_height: Optional[int]) -> float:
    if not estimated_height or estimated_height <= 0:
        return 0.0
    return clamp(offset / estimated_height, 0.0, 1.0)


def to_offset(progress: float, estimated_height: int) -> int:
    if estimated_height <= 0:
        return 0
    return clamp(round(progress * estimated_height), 0, estimated_height)


def start_index(progress: float, word_count: int) -> int:
    """Word index to begin RSVP playback at for a given entry progress."""
    if word_count <= 0:
        return 0
    return clamp(round(progress * word_count), 0, word_count - 1)


def cursor_progress(cursor: int, word_count: int) -> float:
    if word_count <= 0:
        return 0.0
    return clamp(cursor / word_count, 0.0, 1.0)
