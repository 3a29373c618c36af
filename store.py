"""SQLite storage for users, login sessions and journal entries."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

from models import JournalEntry

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS sessions (
    token TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id),
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS journal_entries (
    id TEXT PRIMARY KEY,
    content TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS journal_entries_user ON journal_entries(user_id, created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _entry(row: sqlite3.Row) -> JournalEntry:
    return JournalEntry(
        id=row["id"],
        content=row["content"],
        user_id=row["user_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class DuplicateUserError(Exception):
    pass


class JournalStore:
    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._lock, self._conn:
            self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Users and sessions
    # ------------------------------------------------------------------

    def create_user(self, email: str, password_hash: str) -> str:
        user_id = str(uuid.uuid4())
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user_id, email, password_hash, _now()),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateUserError(email) from exc
        return user_id

    def find_user_by_email(self, email: str) -> Optional[dict]:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, email, password_hash FROM users WHERE email = ?", (email,)
            ).fetchone()
        return dict(row) if row else None

    def create_session(self, user_id: str, token: str) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?)",
                (token, user_id, _now()),
            )

    def user_for_token(self, token: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT user_id FROM sessions WHERE token = ?", (token,)
            ).fetchone()
        return row["user_id"] if row else None

    def delete_session(self, token: str) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM sessions WHERE token = ?", (token,))

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def create_entry(self, user_id: str, content: str) -> JournalEntry:
        entry_id = str(uuid.uuid4())
        stamp = _now()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO journal_entries (id, content, user_id, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (entry_id, content, user_id, stamp, stamp),
            )
        return JournalEntry(entry_id, content, user_id, stamp, stamp)

    def list_entries(self, user_id: str) -> list[JournalEntry]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM journal_entries WHERE user_id = ? "
                "ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [_entry(r) for r in rows]

    def get_entry(self, entry_id: str) -> Optional[JournalEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM journal_entries WHERE id = ?", (entry_id,)
            ).fetchone()
        return _entry(row) if row else None

    def update_entry(self, entry_id: str, content: str) -> Optional[JournalEntry]:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE journal_entries SET content = ?, updated_at = ? WHERE id = ?",
                (content, _now(), entry_id),
            )
        return self.get_entry(entry_id)
