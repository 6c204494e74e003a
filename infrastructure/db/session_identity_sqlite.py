from __future__ import annotations

import sqlite3
from typing import Optional

from domain.repositories import SessionIdentityStore


class SqliteSessionIdentityStore(SessionIdentityStore):
    """
    SQLite-backed implementation of `SessionIdentityStore`.

    Stores the current session's profile ID under a fixed slot in a
    `session_identity` table. This file always lives on the local device,
    whichever profile store is active.
    """

    def __init__(self, db_path: str, slot: str = "default") -> None:
        self._db_path = db_path
        self._slot = slot
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS session_identity (
                    slot TEXT PRIMARY KEY,
                    profile_id TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get_current(self) -> Optional[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT profile_id FROM session_identity WHERE slot = ?",
                (self._slot,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return str(row[0])

    def set_current(self, profile_id: str) -> None:
        """Upsert the profile ID for this slot."""

        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO session_identity (slot, profile_id)
                VALUES (?, ?)
                ON CONFLICT (slot)
                DO UPDATE SET profile_id = excluded.profile_id
                """,
                (self._slot, profile_id),
            )
            conn.commit()

    def clear_current(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "DELETE FROM session_identity WHERE slot = ?",
                (self._slot,),
            )
            conn.commit()
