"""Reading sessions: the context object for one open document.

A ``ReadingSession`` is created on every document open and thrown away when
another document is opened or the reader is closed. Whoever currently owns
the session (the scrolling surface or the RSVP coordinator) is the only
writer of the document's persisted offsets.
"""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .config import ReaderSettings
from .content import (
    FileContentSource,
    LoadedContent,
    load_content,
    reading_text,
    render_failure_content,
)
from .errors import InvalidEvent, PermissionDenied, RenderFailure, StaleSession, UnknownDocument
from .estimator import HeightEstimator, make_observer
from .rsvp import ExitReason, Sleep, ViewModeCoordinator
from .store import DocumentRecord, ProgressStore

logger = logging.getLogger(__name__)


class Owner(str, enum.Enum):
    CONTINUOUS = "continuous"
    RSVP = "rsvp"


class BackAction(str, enum.Enum):
    EXIT_RSVP = "exit_rsvp"
    GO_BACK = "go_back"
    CLOSE = "close"


def _int(value: Any, default: int = 0) -> int:
    try:
        return max(0, int(round(float(value))))
    except (TypeError, ValueError, OverflowError):
        return default


def parse_zoom(value: Any) -> float:
    try:
        zoom = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidEvent(f"zoom must be a number, got {value!r}") from e
    if not math.isfinite(zoom) or zoom <= 0:
        raise InvalidEvent(f"zoom must be positive, got {value!r}")
    return zoom


@dataclass
class SurfaceMetrics:
    """Latest report from the rendering surface."""

    offset: int = 0
    horizontal: int = 0
    viewport_height: int = 0
    content_height: Optional[int] = None
    zoom: float = 1.0

    def update(self, payload: Mapping[str, Any], with_offsets: bool = True) -> None:
        if with_offsets:
            if "offset" in payload:
                self.offset = _int(payload["offset"], self.offset)
            if "horizontal" in payload:
                self.horizontal = _int(payload["horizontal"], self.horizontal)
        if "viewport_height" in payload:
            self.viewport_height = _int(payload["viewport_height"], self.viewport_height)
        if "content_height" in payload:
            raw = payload["content_height"]
            self.content_height = _int(raw) if raw is not None else None
        if payload.get("zoom") is not None:
            self.zoom = parse_zoom(payload["zoom"])


@dataclass(frozen=True)
class PendingOffset:
    """An offset to apply once the surface has been laid out."""

    vertical: int
    horizontal: int
    reason: str

    def to_dict(self) -> dict:
        return {"vertical": self.vertical, "horizontal": self.horizontal, "reason": self.reason}


class ReadingSession:
    def __init__(
        self,
        generation: int,
        record: DocumentRecord,
        content: LoadedContent,
        store: ProgressStore,
        source: FileContentSource,
        settings: ReaderSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.generation = generation
        self.record = record
        self.content = content
        self.store = store
        self.source = source
        self.settings = settings
        self.surface = SurfaceMetrics(
            offset=record.vertical, horizontal=record.horizontal, zoom=record.zoom
        )
        self.estimator = HeightEstimator(
            store,
            record.identity,
            make_observer(settings.native_size_hint),
            settings,
            persisted=record.estimated_height,
        )
        self.owner = Owner.CONTINUOUS
        self.pending_offset: Optional[PendingOffset] = None
        self.closed = False
        self.coordinator = ViewModeCoordinator(self, settings, sleep)
        self.render_failure: Optional[RenderFailure] = None
        self._restore_due = True

    @property
    def identity(self) -> str:
        return self.record.identity

    # ----------------------------------------------------------------
    # rendering surface events
    # ----------------------------------------------------------------

    def load_finished(self, payload: Mapping[str, Any]) -> None:
        self.estimator.begin_load()
        continuous = self.owner is Owner.CONTINUOUS
        # the page starts at the top; keep the saved offset until the restore lands
        self.surface.update(payload, with_offsets=continuous and not self._restore_due)

        if self._restore_due and continuous:
            self._restore_due = False
            saved = self.store.get(self.identity) or self.record
            logger.debug(
                "Restoring state: zoom=%s, v=%d, h=%d", saved.zoom, saved.vertical, saved.horizontal
            )
            self.surface.offset = saved.vertical
            self.surface.horizontal = saved.horizontal
            if saved.vertical > 0 or saved.horizontal > 0:
                self.pending_offset = PendingOffset(saved.vertical, saved.horizontal, "restore")

        self._observe_height()

    def scroll(self, payload: Mapping[str, Any]) -> None:
        if self.owner is not Owner.CONTINUOUS:
            logger.debug("Ignoring scroll report while %s owns the session", self.owner.value)
            return
        self.surface.update(payload)
        self.estimator.observe_scroll(self.surface.offset)

    def sync(self, payload: Mapping[str, Any]) -> None:
        """Apply the metrics sent along with a toggle, back or close request.

        Scroll reports are throttled, so the last one can lag behind the surface.
        """
        if payload and self.owner is Owner.CONTINUOUS and not self.closed:
            self.scroll(payload)

    def observe(self, payload: Mapping[str, Any]) -> Optional[int]:
        self.surface.update(payload, with_offsets=self.owner is Owner.CONTINUOUS)
        return self._observe_height()

    def background(self, payload: Mapping[str, Any]) -> None:
        self.observe(payload)
        self.persist()

    async def load_error(self, description: str) -> LoadedContent:
        failure = RenderFailure(description)
        logger.error("Render failure for %s: %s", self.identity, failure)
        content = await asyncio.to_thread(render_failure_content, self.source, self.identity, description)
        if self.closed:
            return content
        self.content = content
        self.render_failure = failure
        self.estimator.begin_load()
        self._restore_due = True
        return content

    def set_zoom(self, zoom: float) -> float:
        self.surface.zoom = parse_zoom(zoom)
        return self.surface.zoom

    def take_pending_offset(self) -> Optional[PendingOffset]:
        """Called after a layout pass; hands out the deferred offset exactly once."""
        if self.owner is not Owner.CONTINUOUS or self.closed:
            return None
        pending = self.pending_offset
        self.pending_offset = None
        return pending

    # ----------------------------------------------------------------
    # ownership hand-off, used by the coordinator
    # ----------------------------------------------------------------

    def take_ownership(self) -> None:
        self.owner = Owner.RSVP
        if self.pending_offset is not None:
            logger.debug("Dropping pending %s offset on RSVP entry", self.pending_offset.reason)
        self.pending_offset = None

    def hand_back(self, offset: Optional[int]) -> None:
        if offset is not None:
            self._write_offsets(Owner.RSVP, offset, self.surface.horizontal)
            self.surface.offset = offset
            self.pending_offset = PendingOffset(offset, self.surface.horizontal, "rsvp")
        self.owner = Owner.CONTINUOUS

    def best_height(self) -> int:
        s = self.surface
        return self.estimator.best_estimate(s.offset, s.viewport_height, s.content_height, s.zoom)

    async def extract_text(self) -> str:
        return await asyncio.to_thread(reading_text, self.source, self.identity, self.content)

    # ----------------------------------------------------------------
    # persistence
    # ----------------------------------------------------------------

    def persist(self) -> None:
        if self.owner is Owner.RSVP:
            offset = self.coordinator.progress_offset()
            if offset is not None:
                self._write_offsets(Owner.RSVP, offset, self.surface.horizontal)
        else:
            self._write_offsets(Owner.CONTINUOUS, self.surface.offset, self.surface.horizontal)
        self.store.upsert_zoom(self.identity, self.surface.zoom)

    def _write_offsets(self, writer: Owner, vertical: int, horizontal: int) -> bool:
        if writer is not self.owner:
            logger.warning(
                "Ignoring offset write from %s while %s owns %s",
                writer.value, self.owner.value, self.identity,
            )
            return False
        self.store.upsert_offsets(self.identity, vertical, horizontal)
        return True

    def _observe_height(self) -> Optional[int]:
        s = self.surface
        if s.viewport_height <= 0:
            return None
        return self.estimator.observe(s.offset, s.viewport_height, s.content_height, s.zoom)

    def close(self) -> None:
        if self.closed:
            return
        self.coordinator.exit(ExitReason.NAVIGATED_AWAY)
        self.persist()
        self.pending_offset = None
        self.closed = True
        logger.debug("Closed session %d for %s", self.generation, self.identity)

    def snapshot(self) -> dict:
        return {
            "ok": True,
            "generation": self.generation,
            "owner": self.owner.value,
            "kind": self.content.kind.value,
            "failed": self.content.failed,
            "error": str(self.render_failure) if self.render_failure else None,
            "offset": self.surface.offset,
            "estimated_height": self.estimator.persisted,
            "pending": self.pending_offset is not None,
            **self.coordinator.snapshot(),
        }


class SessionManager:
    """Holds the one open reading session."""

    def __init__(
        self,
        store: ProgressStore,
        source: FileContentSource,
        settings: ReaderSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.store = store
        self.source = source
        self.settings = settings
        self.current: Optional[ReadingSession] = None
        self._sleep = sleep
        self._generations = itertools.count(1)
        self._opening = 0

    async def open(self, identity: str) -> ReadingSession:
        self.close()
        record = self.store.get(identity)
        if record is None:
            raise UnknownDocument(identity)

        generation = next(self._generations)
        self._opening = generation
        try:
            content = await asyncio.to_thread(load_content, self.source, identity)
        except PermissionDenied:
            logger.error("Cannot open %s, returning to list", identity, exc_info=True)
            raise
        if self._opening != generation:
            raise StaleSession(f"open of {identity} superseded")

        self.close()
        session = ReadingSession(
            generation, record, content, self.store, self.source, self.settings, self._sleep
        )
        self.current = session
        logger.info(
            "Opened %s (%s, session %d)", record.display_name or identity, content.kind.value, generation
        )
        return session

    def get(self, generation: int) -> ReadingSession:
        session = self.current
        if session is None or session.generation != generation:
            raise StaleSession(f"session {generation} is not open")
        return session

    def back(self, generation: int, can_go_back: bool = False) -> BackAction:
        session = self.get(generation)
        if session.coordinator.active:
            session.coordinator.exit(ExitReason.BACK)
            return BackAction.EXIT_RSVP
        if can_go_back:
            return BackAction.GO_BACK
        self.close()
        return BackAction.CLOSE

    def close(self) -> None:
        session = self.current
        self.current = None
        if session is not None:
            session.close()

    def closing(self, identity: str) -> None:
        """Close the session if its document is being removed from the list."""
        if self.current is not None and self.current.identity == identity:
            self.close()
