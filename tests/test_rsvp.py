"""Tests for the view-mode coordinator and RSVP pacing."""

import asyncio

import pytest
from conftest import settle, words

from docreader.content import FileContentSource
from docreader.errors import EmptyExtraction
from docreader.rsvp import ExitReason, PacingTimer, ViewState, derive_words
from docreader.session import Owner, SessionManager


def make_doc(tmp_path, text, name="doc.txt"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


async def open_session(store, settings, identity, sleep):
    manager = SessionManager(store, FileContentSource(), settings, sleep=sleep)
    store.add(identity, "doc")
    session = await manager.open(identity)
    return manager, session


def test_derive_words_rejects_blank_text():
    with pytest.raises(EmptyExtraction):
        derive_words(" \n\t ")
    assert derive_words(" a  b ") == ["a", "b"]


def test_entry_progress_picks_start_word(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(100))
    store.upsert_offsets(doc, 300, 0)
    store.upsert_estimated_height(doc, 1000)

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        await session.coordinator.enter()
        snap = session.coordinator.snapshot()
        session.coordinator.exit()
        return snap

    snap = asyncio.run(scenario())
    assert snap["state"] == "rsvp_playing"
    assert snap["word_count"] == 100
    assert snap["cursor"] == 30
    assert snap["word"] == "w30"


def test_exit_hands_back_offset(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(100))
    store.upsert_offsets(doc, 1400, 0)
    store.upsert_estimated_height(doc, 2000)

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        coord = session.coordinator
        await coord.enter()
        assert coord.rsvp.cursor == 70
        await step_sleep.release(5)
        assert coord.rsvp.cursor == 75
        restored = coord.exit()
        return session, restored

    session, restored = asyncio.run(scenario())
    assert restored == 1500
    assert store.get(doc).vertical == 1500
    assert session.owner is Owner.CONTINUOUS
    pending = session.take_pending_offset()
    assert (pending.vertical, pending.reason) == (1500, "rsvp")
    assert session.take_pending_offset() is None


def test_empty_text_shows_notice_and_never_plays(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, "   \n\t  ")

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        coord = session.coordinator
        await coord.enter()
        during = coord.snapshot()
        await step_sleep.release()
        return coord, during

    coord, during = asyncio.run(scenario())
    assert during["state"] == "notice"
    assert "No readable text" in during["notice"]
    assert step_sleep.delays == [settings.empty_notice_seconds]
    assert coord.state is ViewState.CONTINUOUS
    assert coord.last_exit is ExitReason.EMPTY
    assert coord.rsvp is None


def test_rapid_toggle_leaves_offset_unchanged(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(50))
    store.upsert_offsets(doc, 300, 0)
    store.upsert_estimated_height(doc, 1000)

    async def scenario():
        manager, session = await open_session(store, settings, doc, step_sleep)
        await session.coordinator.toggle()
        assert session.coordinator.playing
        await session.coordinator.toggle()
        pending = session.take_pending_offset()
        manager.close()
        return pending

    assert asyncio.run(scenario()) is None
    assert store.get(doc).vertical == 300


def test_pause_and_resume_keep_exact_cursor(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(20))

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        coord = session.coordinator
        await coord.enter()
        seen = [coord.rsvp.word]
        for _ in range(3):
            await step_sleep.release()
            seen.append(coord.rsvp.word)

        coord.pause()
        await settle()
        assert coord.state is ViewState.RSVP_PAUSED
        assert step_sleep.pending == []
        await step_sleep.release()
        assert coord.rsvp.cursor == 3

        coord.resume()
        await settle()
        await step_sleep.release()
        seen.append(coord.rsvp.word)
        coord.exit()
        return seen

    assert asyncio.run(scenario()) == ["w0", "w1", "w2", "w3", "w4"]


def test_cancel_after_tick_came_due_is_unobservable(step_sleep):
    ticks = []

    async def scenario():
        timer = PacingTimer(lambda: 0.1, lambda: ticks.append(1) or True, step_sleep)
        timer.start()
        await settle()
        step_sleep.pending[0].set_result(None)
        timer.cancel()
        await settle()
        return timer.running

    assert asyncio.run(scenario()) is False
    assert ticks == []


def test_wpm_change_applies_to_next_tick(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(20))

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        coord = session.coordinator
        await coord.enter()
        await settle()
        coord.set_wpm(600)
        await step_sleep.release()
        cursor = coord.rsvp.cursor
        coord.exit()
        return cursor

    assert asyncio.run(scenario()) == 1
    assert step_sleep.delays[0] == pytest.approx(60 / 400)
    assert step_sleep.delays[1] == pytest.approx(60 / 600)


def test_set_wpm_is_clamped(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(5))

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        return session.coordinator.set_wpm(10), session.coordinator.set_wpm(99999)

    assert asyncio.run(scenario()) == (settings.min_wpm, settings.max_wpm)


def test_reaching_the_end_returns_to_continuous(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(3))
    store.upsert_estimated_height(doc, 600)

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        await session.coordinator.enter()
        await step_sleep.release(3)
        return session

    session = asyncio.run(scenario())
    assert session.coordinator.state is ViewState.CONTINUOUS
    assert session.coordinator.last_exit is ExitReason.COMPLETED
    assert store.get(doc).vertical == 600
    assert step_sleep.pending == []


def test_opening_another_document_cancels_playback(tmp_path, store, settings, step_sleep):
    first = make_doc(tmp_path, words(30), "first.txt")
    second = make_doc(tmp_path, words(30), "second.txt")

    async def scenario():
        manager, session = await open_session(store, settings, first, step_sleep)
        await session.coordinator.enter()
        await step_sleep.release(2)
        store.add(second, "second")
        await manager.open(second)
        await settle()
        return session

    old = asyncio.run(scenario())
    assert old.closed
    assert old.coordinator.state is ViewState.CONTINUOUS
    assert old.coordinator.last_exit is ExitReason.NAVIGATED_AWAY
    assert step_sleep.pending == []


def test_exit_during_extraction_discards_result(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(30))

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        coord = session.coordinator
        task = asyncio.create_task(coord.enter())
        await asyncio.sleep(0)
        assert coord.state is ViewState.TRANSITIONING_TO_RSVP
        coord.exit()
        await task
        return coord

    coord = asyncio.run(scenario())
    assert coord.state is ViewState.CONTINUOUS
    assert coord.rsvp is None
    assert step_sleep.delays == []


def test_scroll_reports_ignored_while_rsvp_owns(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(30))
    store.upsert_offsets(doc, 100, 0)

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        await session.coordinator.enter()
        session.scroll({"offset": 9999, "horizontal": 0})
        written = session._write_offsets(Owner.CONTINUOUS, 5, 5)
        offset = session.surface.offset
        session.coordinator.exit()
        return written, offset

    written, offset = asyncio.run(scenario())
    assert written is False
    assert offset == 100
    assert store.get(doc).vertical == 100


def test_backgrounding_during_rsvp_saves_cursor_progress(tmp_path, store, settings, step_sleep):
    doc = make_doc(tmp_path, words(10))
    store.upsert_estimated_height(doc, 1000)

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        await session.coordinator.enter()
        await step_sleep.release(5)
        session.background({})
        session.coordinator.exit()

    asyncio.run(scenario())
    assert store.get(doc).vertical == 500


def test_rsvp_after_render_failure_reads_stripped_source(tmp_path, store, settings, step_sleep):
    doc = make_doc(
        tmp_path,
        "<html><head><style>p{color:red}</style><script>var x=1;</script></head>"
        "<body><p>Hello there</p></body></html>",
        "page.html",
    )

    async def scenario():
        _, session = await open_session(store, settings, doc, step_sleep)
        await session.load_error("net::ERR_FAILED")
        await session.coordinator.enter()
        words_read = list(session.coordinator.rsvp.words)
        session.coordinator.exit()
        return words_read

    assert asyncio.run(scenario()) == ["Hello", "there"]
