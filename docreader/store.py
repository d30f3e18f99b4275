"""Durable reading state, keyed by document identity.

Backed by sqlite3 with one short-lived connection per call, so the store can be
used from Flask request threads and from the session loop alike.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sqlite3
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    identity TEXT PRIMARY KEY,
    key TEXT UNIQUE NOT NULL,
    display_name TEXT NOT NULL,
    added DATETIME DEFAULT (datetime('now','localtime'))
);

CREATE TABLE IF NOT EXISTS reading_states (
    identity TEXT PRIMARY KEY,
    vertical INTEGER NOT NULL DEFAULT 0,
    horizontal INTEGER NOT NULL DEFAULT 0,
    zoom REAL NOT NULL DEFAULT 1.0,
    estimated_height INTEGER
);
"""


def document_key(identity: str) -> str:
    return hashlib.sha1(identity.encode("utf-8")).hexdigest()[:10]


@dataclass(frozen=True)
class DocumentRecord:
    identity: str
    display_name: str = ""
    vertical: int = 0
    horizontal: int = 0
    zoom: float = 1.0
    estimated_height: Optional[int] = None

    @property
    def key(self) -> str:
        return document_key(self.identity)

    @property
    def display_offset(self) -> int:
        # Estimates can still grow, so the clamp is only applied for display.
        if self.estimated_height is None:
            return self.vertical
        return min(self.vertical, self.estimated_height)

    @property
    def percent_read(self) -> Optional[int]:
        if not self.estimated_height:
            return None
        pct = int(self.display_offset / self.estimated_height * 100)
        return max(0, min(100, pct))

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "identity": self.identity,
            "name": self.display_name,
            "vertical": self.vertical,
            "horizontal": self.horizontal,
            "zoom": self.zoom,
            "estimated_height": self.estimated_height,
            "percent_read": self.percent_read,
        }


class ProgressStore:
    def __init__(self, filepath: str):
        self.filepath = filepath
        parent = os.path.dirname(filepath)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.filepath)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # ----------------------------------------------------------------
    # per-document reading state
    # ----------------------------------------------------------------

    def get(self, identity: str) -> Optional[DocumentRecord]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT s.identity AS s_identity, d.display_name,
                       s.vertical, s.horizontal, s.zoom, s.estimated_height
                FROM (SELECT ? AS identity) q
                LEFT JOIN documents d ON d.identity = q.identity
                LEFT JOIN reading_states s ON s.identity = q.identity
                """,
                (identity,),
            ).fetchone()
        finally:
            conn.close()

        if row["display_name"] is None and row["s_identity"] is None:
            return None
        if row["s_identity"] is None:
            return DocumentRecord(identity=identity, display_name=row["display_name"])
        return DocumentRecord(
            identity=identity,
            display_name=row["display_name"] or "",
            vertical=row["vertical"],
            horizontal=row["horizontal"],
            zoom=row["zoom"],
            estimated_height=row["estimated_height"],
        )

    def upsert_offsets(self, identity: str, vertical: int, horizontal: int) -> None:
        self._upsert(
            identity,
            {"vertical": max(0, int(vertical)), "horizontal": max(0, int(horizontal))},
        )

    def upsert_zoom(self, identity: str, zoom: float) -> None:
        if zoom <= 0:
            raise ValueError(f"zoom must be positive, got {zoom!r}")
        self._upsert(identity, {"zoom": float(zoom)})

    def upsert_estimated_height(self, identity: str, height: int) -> None:
        self._upsert(identity, {"estimated_height": max(0, int(height))})

    def remove(self, identity: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM reading_states WHERE identity=?", (identity,))
            conn.commit()
        finally:
            conn.close()

    def _upsert(self, identity: str, values: dict) -> None:
        columns = ", ".join(values)
        placeholders = ", ".join(f":{c}" for c in values)
        updates = ", ".join(f"{c}=excluded.{c}" for c in values)
        conn = self._connect()
        try:
            conn.execute(
                f"""
                INSERT INTO reading_states (identity, {columns})
                VALUES (:identity, {placeholders})
                ON CONFLICT(identity) DO UPDATE SET {updates}
                """,
                {"identity": identity, **values},
            )
            conn.commit()
        finally:
            conn.close()

    # ----------------------------------------------------------------
    # document list
    # ----------------------------------------------------------------

    def add(self, identity: str, display_name: str) -> DocumentRecord:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT OR IGNORE INTO documents (identity, key, display_name) VALUES (?, ?, ?)",
                (identity, document_key(identity), display_name),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Added document %s (%s)", display_name, identity)
        return self.get(identity)

    def all(self) -> List[DocumentRecord]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT d.identity, d.display_name, s.vertical, s.horizontal,
                       s.zoom, s.estimated_height
                FROM documents d
                LEFT JOIN reading_states s ON s.identity = d.identity
                ORDER BY d.display_name COLLATE NOCASE, d.identity
                """
            ).fetchall()
        finally:
            conn.close()
        return [
            DocumentRecord(
                identity=r["identity"],
                display_name=r["display_name"],
                vertical=r["vertical"] or 0,
                horizontal=r["horizontal"] or 0,
                zoom=r["zoom"] if r["zoom"] is not None else 1.0,
                estimated_height=r["estimated_height"],
            )
            for r in rows
        ]

    def find_by_key(self, key: str) -> Optional[DocumentRecord]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT identity FROM documents WHERE key=?", (key,)).fetchone()
        finally:
            conn.close()
        return self.get(row["identity"]) if row else None

    def remove_document(self, identity: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM documents WHERE identity=?", (identity,))
                conn.execute("DELETE FROM reading_states WHERE identity=?", (identity,))
        finally:
            conn.close()
        logger.debug("Removed document %s", identity)
