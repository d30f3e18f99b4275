"""Scrollable-height estimation from noisy renderer signals.

The browser's reported content size is often wrong right after load (images
and late content not yet laid out), so the estimate is refined over a session
and only ever grows. Overestimating is preferred: an estimate that is too small
makes the RSVP hand-off overshoot past real content.
"""

from __future__ import annotations

import abc
import logging
from typing import Optional

from .config import ReaderSettings
from .store import ProgressStore

logger = logging.getLogger(__name__)


class ScrollExtentObserver(abc.ABC):
    """How much the rendering surface can tell us about its own extent."""

    @abc.abstractmethod
    def size_hint(self, raw_content_size: Optional[int], zoom: float) -> Optional[int]:
        ...


class NativeSizeHint(ScrollExtentObserver):
    def size_hint(self, raw_content_size: Optional[int], zoom: float) -> Optional[int]:
        if not raw_content_size or raw_content_size <= 0:
            return None
        return round(raw_content_size * (zoom if zoom > 0 else 1.0))


class EstimateOnly(ScrollExtentObserver):
    def size_hint(self, raw_content_size: Optional[int], zoom: float) -> Optional[int]:
        return None


def make_observer(native: bool) -> ScrollExtentObserver:
    return NativeSizeHint() if native else EstimateOnly()


class HeightEstimator:
    def __init__(
        self,
        store: ProgressStore,
        identity: str,
        observer: ScrollExtentObserver,
        settings: ReaderSettings,
        persisted: Optional[int] = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.observer = observer
        self.settings = settings
        self.persisted = persisted
        self.high_water_mark = 0
        self.viewport_height = 0

    def begin_load(self) -> None:
        self.high_water_mark = 0

    def observe_scroll(self, offset: int) -> None:
        self.high_water_mark = max(self.high_water_mark, max(0, int(offset)))

    def candidate(
        self,
        offset: int,
        viewport_height: int,
        raw_content_size: Optional[int] = None,
        zoom: float = 1.0,
    ) -> int:
        scrolled = max(self.high_water_mark, offset) + viewport_height + self.settings.height_slack
        hint = self.observer.size_hint(raw_content_size, zoom)
        return max(scrolled, hint or 0)

    def accepts(self, candidate: int) -> bool:
        if self.persisted is None:
            return True
        if candidate > self.persisted + self.settings.min_height_delta:
            return True
        # late content can outgrow the small-delta guard by a wide margin
        return candidate > self.persisted * self.settings.height_growth_factor

    def observe(
        self,
        offset: int,
        viewport_height: int,
        raw_content_size: Optional[int] = None,
        zoom: float = 1.0,
    ) -> Optional[int]:
        """Take one observation; persist and return the candidate if accepted."""
        offset = max(0, int(offset))
        self.viewport_height = max(0, int(viewport_height))
        self.observe_scroll(offset)

        estimated = self.candidate(offset, self.viewport_height, raw_content_size, zoom)
        logger.debug(
            "observe %s: offset=%d hwm=%d viewport=%d raw=%s zoom=%.2f candidate=%d persisted=%s",
            self.identity, offset, self.high_water_mark, self.viewport_height,
            raw_content_size, zoom, estimated, self.persisted,
        )
        if not self.accepts(estimated):
            return None

        self.store.upsert_estimated_height(self.identity, estimated)
        self.persisted = estimated
        logger.debug("Saved new total height %d for %s", estimated, self.identity)
        return estimated

    def best_estimate(
        self,
        offset: int = 0,
        viewport_height: int = 0,
        raw_content_size: Optional[int] = None,
        zoom: float = 1.0,
    ) -> int:
        """Height to translate coordinates against right now."""
        hint = self.observer.size_hint(raw_content_size, zoom) or 0
        known = max(self.persisted or 0, hint)
        if known > 0:
            return known
        if viewport_height > 0:
            return self.candidate(offset, viewport_height, raw_content_size, zoom)
        return self.settings.fallback_height
