"""SQLite storage adapter.

Implements the core PersistencePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 3600


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the PersistencePort contract."""

    def __init__(self, db_path: str, lock_ttl_seconds: float = DEFAULT_LOCK_TTL_SECONDS) -> None:
        self._db_path = db_path
        self._lock_ttl_seconds = lock_ttl_seconds
        self._lock_owners: dict[str, str] = {}

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - snapshots: one JSON document per user key
        - batch_locks: at most one running batch per user key
        """

        with self._connect() as conn:
            # snapshots holds the whole aggregate store of a user as one JSON
            # document; saves replace the previous document.
            # Fields:
            # - user_key: persistence key of the workspace (PRIMARY KEY)
            # - payload: JSON snapshot {units, requirements, matches, files, tasks}
            # - updated_at: timestamp of the last save
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS snapshots (
                    user_key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
                """
            )
            # batch_locks marks a batch in progress for a user key.
            # Fields:
            # - user_key: persistence key of the workspace (PRIMARY KEY)
            # - owner: random token of the holder, checked on release
            # - acquired_at: UTC ISO timestamp; rows older than the TTL are stale
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS batch_locks (
                    user_key TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    acquired_at TIMESTAMP NOT NULL
                )
                """
            )

    def load(self, user_key: str) -> Optional[dict[str, Any]]:
        """Return the stored snapshot for a user, if any."""

        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM snapshots WHERE user_key = ?",
                (user_key,),
            ).fetchone()
        return json.loads(row["payload"]) if row else None

    def save(self, user_key: str, snapshot: dict[str, Any]) -> None:
        """Upsert the snapshot for a user."""

        now = datetime.now(timezone.utc)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO snapshots (user_key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(user_key) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (user_key, json.dumps(snapshot, ensure_ascii=False, allow_nan=False), now.isoformat()),
            )

    def delete(self, user_key: str) -> int:
        """Delete a user's snapshot and return the number of rows removed."""

        with self._connect() as conn:
            cur = conn.execute("DELETE FROM snapshots WHERE user_key = ?", (user_key,))
            return cur.rowcount

    def list_users(self) -> set[str]:
        """Return all user keys that have a stored snapshot."""

        with self._connect() as conn:
            rows = conn.execute("SELECT user_key FROM snapshots").fetchall()
        return {row["user_key"] for row in rows}

    def acquire_lock(self, user_key: str) -> bool:
        """Take the batch lock for a user; False if another holder has it.

        A lock older than the TTL is treated as left behind by a crashed run
        and taken over.
        """

        now = datetime.now(timezone.utc)
        stale_before = (now - timedelta(seconds=self._lock_ttl_seconds)).isoformat(timespec="microseconds")
        owner = uuid.uuid4().hex
        with self._connect() as conn:
            stale = conn.execute(
                "DELETE FROM batch_locks WHERE user_key = ? AND acquired_at <= ?",
                (user_key, stale_before),
            )
            if stale.rowcount:
                LOGGER.warning("Took over a stale batch lock for %s", user_key)
            cur = conn.execute(
                "INSERT OR IGNORE INTO batch_locks (user_key, owner, acquired_at) VALUES (?, ?, ?)",
                (user_key, owner, now.isoformat(timespec="microseconds")),
            )
            acquired = cur.rowcount == 1
        if acquired:
            self._lock_owners[user_key] = owner
        return acquired

    def release_lock(self, user_key: str) -> None:
        """Release a lock taken by this instance; other holders are left alone."""

        owner = self._lock_owners.pop(user_key, None)
        if owner is None:
            return
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM batch_locks WHERE user_key = ? AND owner = ?",
                (user_key, owner),
            )
