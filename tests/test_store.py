"""Tests for the sqlite progress store."""

import sqlite3

import pytest

from docreader.store import DocumentRecord, ProgressStore, document_key


def test_get_missing_returns_none(store):
    assert store.get("/nope.html") is None


def test_create_on_write(store):
    store.upsert_offsets("/a.html", 120, 4)
    rec = store.get("/a.html")
    assert rec == DocumentRecord("/a.html", "", 120, 4, 1.0, None)


def test_upserts_touch_only_their_fields(store):
    store.upsert_offsets("/a.html", 120, 4)
    store.upsert_zoom("/a.html", 1.5)
    store.upsert_estimated_height("/a.html", 9000)
    store.upsert_offsets("/a.html", 130, 0)
    rec = store.get("/a.html")
    assert (rec.vertical, rec.horizontal, rec.zoom, rec.estimated_height) == (130, 0, 1.5, 9000)


def test_upserts_are_idempotent(store):
    for _ in range(3):
        store.upsert_offsets("/a.html", 10, 20)
    assert store.get("/a.html").vertical == 10


def test_negative_offsets_clamp_to_zero(store):
    store.upsert_offsets("/a.html", -40, -1)
    rec = store.get("/a.html")
    assert (rec.vertical, rec.horizontal) == (0, 0)


def test_zoom_must_be_positive(store):
    with pytest.raises(ValueError):
        store.upsert_zoom("/a.html", 0)


def test_remove_clears_all_reading_state(store):
    store.upsert_offsets("/a.html", 120, 4)
    store.upsert_zoom("/a.html", 2.0)
    store.upsert_estimated_height("/a.html", 5000)
    store.remove("/a.html")
    assert store.get("/a.html") is None

    conn = sqlite3.connect(store.filepath)
    try:
        count = conn.execute("SELECT COUNT(*) FROM reading_states").fetchone()[0]
    finally:
        conn.close()
    assert count == 0


def test_remove_without_record_is_noop(store):
    store.remove("/never.html")
    assert store.get("/never.html") is None


def test_add_and_list(store):
    store.add("/docs/b.html", "beta")
    store.add("/docs/a.txt", "Alpha")
    store.upsert_offsets("/docs/b.html", 50, 0)
    names = [r.display_name for r in store.all()]
    assert names == ["Alpha", "beta"]
    assert store.all()[1].vertical == 50


def test_add_twice_keeps_first_name(store):
    store.add("/docs/a.txt", "first")
    store.add("/docs/a.txt", "second")
    assert [r.display_name for r in store.all()] == ["first"]


def test_find_by_key(store):
    store.add("/docs/a.txt", "Alpha")
    assert store.find_by_key(document_key("/docs/a.txt")).display_name == "Alpha"
    assert store.find_by_key("0000000000") is None


def test_remove_document_drops_list_entry_and_state(store):
    store.add("/docs/a.txt", "Alpha")
    store.upsert_offsets("/docs/a.txt", 10, 0)
    store.remove_document("/docs/a.txt")
    assert store.get("/docs/a.txt") is None
    assert store.all() == []


def test_state_survives_reopen(tmp_path):
    path = str(tmp_path / "progress.db")
    ProgressStore(path).upsert_offsets("/a.html", 77, 3)
    assert ProgressStore(path).get("/a.html").vertical == 77


def test_display_offset_is_clamped_to_estimate():
    rec = DocumentRecord("/a", vertical=5000, estimated_height=4000)
    assert rec.display_offset == 4000
    assert rec.percent_read == 100


def test_percent_read_unknown_without_estimate():
    rec = DocumentRecord("/a", vertical=5000)
    assert rec.display_offset == 5000
    assert rec.percent_read is None


def test_percent_read():
    assert DocumentRecord("/a", vertical=250, estimated_height=1000).percent_read == 25
