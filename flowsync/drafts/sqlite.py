"""SQLite implementation of the draft repository."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .repository import KeyValueDraftStore


class SQLiteDraftStore(KeyValueDraftStore):
    """Persist drafts in a local SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS drafts (
                draft_key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                stored_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Key-value API
    async def _load(self, key: str) -> str | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT value FROM drafts WHERE draft_key = ?", key
        )
        return row["value"] if row else None

    async def _save(self, key: str, value: str) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO drafts (draft_key, value, stored_at) VALUES (?, ?, ?)
            ON CONFLICT(draft_key) DO UPDATE SET value = excluded.value, stored_at = excluded.stored_at
            """,
            key,
            value,
            datetime.now(timezone.utc).isoformat(),
        )

    async def _delete(self, key: str) -> None:
        await asyncio.to_thread(
            self._execute, "DELETE FROM drafts WHERE draft_key = ?", key
        )
