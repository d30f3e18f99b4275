"""Switching between continuous scrolling and word-at-a-time RSVP playback.

The coordinator is the only component that moves a session between view
modes. Entering RSVP takes ownership of the document's reading state away
from the scrolling surface; leaving hands back an absolute offset that the
surface applies once it is laid out again.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

from .config import ReaderSettings
from .errors import EmptyExtraction
from .progress import cursor_progress, start_index, to_offset, to_progress
from .text import tokenize_words

if TYPE_CHECKING:
    from .session import ReadingSession

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

EMPTY_NOTICE = (
    "No readable text detected\n\n"
    "Document may be mostly tables/images.\n"
    "Try scrolling or normal view."
)


class ViewState(str, enum.Enum):
    CONTINUOUS = "continuous"
    TRANSITIONING_TO_RSVP = "transitioning_to_rsvp"
    NOTICE = "notice"
    RSVP_PLAYING = "rsvp_playing"
    RSVP_PAUSED = "rsvp_paused"
    TRANSITIONING_TO_CONTINUOUS = "transitioning_to_continuous"


class ExitReason(str, enum.Enum):
    COMPLETED = "completed"
    EXPLICIT = "explicit"
    TAP = "tap"
    BACK = "back"
    NAVIGATED_AWAY = "navigated_away"
    EMPTY = "empty"


def derive_words(text: str) -> List[str]:
    words = tokenize_words(text)
    if not words:
        raise EmptyExtraction("No readable text detected")
    return words


class CancelToken:
    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class PacingTimer:
    """A cancellable ticking task.

    Every ``start()`` gets a fresh token, so a tick that was already due when
    ``cancel()`` ran sees its own token cancelled and does nothing.
    """

    def __init__(self, interval: Callable[[], float], on_tick: Callable[[], bool], sleep: Sleep) -> None:
        self._interval = interval
        self._on_tick = on_tick
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._token: Optional[CancelToken] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.cancel()
        token = CancelToken()
        self._token = token
        self._task = asyncio.get_running_loop().create_task(self._run(token))

    def cancel(self) -> None:
        if self._token is not None:
            self._token.cancel()
        task = self._task
        self._task = None
        self._token = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self, token: CancelToken) -> None:
        while not token.cancelled:
            # re-read every tick so a pace change applies to the next word
            await self._sleep(self._interval())
            if token.cancelled:
                return
            if not self._on_tick():
                return


@dataclass
class RsvpSession:
    words: List[str]
    cursor: int
    start_index: int
    wpm: int
    entry_offset: int
    entry_height: int
    running: bool = True

    @property
    def word_count(self) -> int:
        return len(self.words)

    @property
    def word(self) -> Optional[str]:
        if 0 <= self.cursor < len(self.words):
            return self.words[self.cursor]
        return None

    @property
    def ticks(self) -> int:
        return self.cursor - self.start_index

    @property
    def finished(self) -> bool:
        return self.cursor >= len(self.words)


class ViewModeCoordinator:
    def __init__(self, session: "ReadingSession", settings: ReaderSettings, sleep: Sleep = asyncio.sleep) -> None:
        self.session = session
        self.settings = settings
        self.state = ViewState.CONTINUOUS
        self.rsvp: Optional[RsvpSession] = None
        self.notice: Optional[str] = None
        self.wpm = settings.default_wpm
        self.last_exit: Optional[ExitReason] = None
        self._sleep = sleep
        self._timer = PacingTimer(self._interval, self._tick, sleep)
        self._notice_task: Optional[asyncio.Task] = None
        # bumped on every enter/exit; continuations from an older epoch are dropped
        self._epoch = 0

    @property
    def active(self) -> bool:
        return self.state is not ViewState.CONTINUOUS

    @property
    def playing(self) -> bool:
        return self.state is ViewState.RSVP_PLAYING

    async def enter(self) -> None:
        if self.state is not ViewState.CONTINUOUS:
            return
        self._epoch += 1
        epoch = self._epoch
        self.state = ViewState.TRANSITIONING_TO_RSVP

        entry_offset = self.session.surface.offset
        entry_height = self.session.best_height()
        progress = to_progress(entry_offset, entry_height)
        self.session.take_ownership()
        logger.debug(
            "RSVP start - scrollY: %d / totalHeight: %d, progress: %.4f",
            entry_offset, entry_height, progress,
        )

        text = await self.session.extract_text()
        if epoch != self._epoch:
            logger.debug("RSVP entry superseded during extraction, discarding %d chars", len(text))
            return

        try:
            words = derive_words(text)
        except EmptyExtraction:
            logger.info("No readable text in %s, leaving RSVP", self.session.identity)
            self._show_notice(epoch)
            return

        first = start_index(progress, len(words))
        logger.debug("RSVP starting from word index %d / %d", first, len(words))
        self.rsvp = RsvpSession(
            words=words,
            cursor=first,
            start_index=first,
            wpm=self.wpm,
            entry_offset=entry_offset,
            entry_height=entry_height,
        )
        self.state = ViewState.RSVP_PLAYING
        self._timer.start()

    def exit(self, reason: ExitReason = ExitReason.EXPLICIT) -> Optional[int]:
        """Leave RSVP and return the offset handed to the scrolling surface, if any."""
        if self.state in (ViewState.CONTINUOUS, ViewState.TRANSITIONING_TO_CONTINUOUS):
            return None
        self._epoch += 1
        self.state = ViewState.TRANSITIONING_TO_CONTINUOUS
        self._timer.cancel()
        self._cancel_notice()

        restored = self.progress_offset()
        if restored is not None:
            logger.debug(
                "Restoring scroll to %d (cursor %d / %d)",
                restored, self.rsvp.cursor, self.rsvp.word_count,
            )
        self.session.hand_back(restored)

        self.rsvp = None
        self.notice = None
        self.last_exit = reason
        self.state = ViewState.CONTINUOUS
        logger.debug("RSVP exited (%s)", reason.value)
        return restored

    async def toggle(self) -> None:
        if self.state is ViewState.CONTINUOUS:
            await self.enter()
        else:
            self.exit(ExitReason.EXPLICIT)

    def tap(self) -> Optional[int]:
        return self.exit(ExitReason.TAP)

    def pause(self) -> None:
        if self.state is not ViewState.RSVP_PLAYING:
            return
        self._timer.cancel()
        self.rsvp.running = False
        self.state = ViewState.RSVP_PAUSED

    def resume(self) -> None:
        if self.state is not ViewState.RSVP_PAUSED:
            return
        self.rsvp.running = True
        self.state = ViewState.RSVP_PLAYING
        self._timer.start()

    def toggle_pause(self) -> None:
        if self.state is ViewState.RSVP_PLAYING:
            self.pause()
        elif self.state is ViewState.RSVP_PAUSED:
            self.resume()

    def set_wpm(self, wpm: int) -> int:
        self.wpm = self.settings.clamp_wpm(wpm)
        if self.rsvp is not None:
            self.rsvp.wpm = self.wpm
        return self.wpm

    def progress_offset(self) -> Optional[int]:
        """Offset matching the cursor, or None when playback never advanced."""
        rsvp = self.rsvp
        if rsvp is None or rsvp.ticks <= 0:
            return None
        progress = cursor_progress(rsvp.cursor, rsvp.word_count)
        return to_offset(progress, self.session.best_height())

    def snapshot(self) -> dict:
        rsvp = self.rsvp
        return {
            "state": self.state.value,
            "word": rsvp.word if rsvp else None,
            "cursor": rsvp.cursor if rsvp else None,
            "word_count": rsvp.word_count if rsvp else 0,
            "wpm": self.wpm,
            "notice": self.notice,
            "last_exit": self.last_exit.value if self.last_exit else None,
        }

    # ----------------------------------------------------------------

    def _interval(self) -> float:
        return 60.0 / self.rsvp.wpm

    def _tick(self) -> bool:
        rsvp = self.rsvp
        if rsvp is None:
            return False
        rsvp.cursor += 1
        if rsvp.finished:
            self.exit(ExitReason.COMPLETED)
            return False
        return True

    def _show_notice(self, epoch: int) -> None:
        self.state = ViewState.NOTICE
        self.notice = EMPTY_NOTICE
        self._notice_task = asyncio.get_running_loop().create_task(self._dismiss_notice(epoch))

    async def _dismiss_notice(self, epoch: int) -> None:
        await self._sleep(self.settings.empty_notice_seconds)
        if epoch == self._epoch:
            self._notice_task = None
            self.exit(ExitReason.EMPTY)

    def _cancel_notice(self) -> None:
        task = self._notice_task
        self._notice_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
