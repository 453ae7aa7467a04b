"""JSON file storage adapter.

Keeps every user's snapshot in one JSON document keyed by user id. Batch locks
are exclusive lock files next to the document, one per user.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import time
import uuid
from pathlib import Path
from typing import Any, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 3600


class JsonFileStorage:
    """PersistencePort backed by a single JSON file."""

    def __init__(self, path: Path, lock_ttl_seconds: float = DEFAULT_LOCK_TTL_SECONDS) -> None:
        self._path = Path(path)
        self._lock_ttl_seconds = lock_ttl_seconds
        self._lock_owners: dict[str, str] = {}

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        with open(self._path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        # Write to a sibling temp file first so a crash never leaves half a document.
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, allow_nan=False, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def load(self, user_key: str) -> Optional[dict[str, Any]]:
        return self._read_all().get(user_key)

    def save(self, user_key: str, snapshot: dict[str, Any]) -> None:
        data = self._read_all()
        data[user_key] = snapshot
        self._write_all(data)

    def delete(self, user_key: str) -> int:
        """Remove a user's snapshot and return how many were removed (0 or 1)."""

        data = self._read_all()
        if user_key not in data:
            return 0
        del data[user_key]
        self._write_all(data)
        return 1

    def list_users(self) -> set[str]:
        return set(self._read_all())

    def _lock_path(self, user_key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", user_key)
        return self._path.with_name(f"{self._path.name}.{safe_key}.lock")

    def acquire_lock(self, user_key: str) -> bool:
        """Create the user's lock file; False if another holder has it.

        A lock file older than the TTL is treated as left behind by a crashed
        run and replaced.
        """

        lock_path = self._lock_path(user_key)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        owner = uuid.uuid4().hex
        for _ in range(2):
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                try:
                    age = time.time() - lock_path.stat().st_mtime
                except FileNotFoundError:
                    continue
                if age < self._lock_ttl_seconds:
                    return False
                LOGGER.warning("Took over a stale batch lock for %s", user_key)
                lock_path.unlink(missing_ok=True)
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(owner)
            self._lock_owners[user_key] = owner
            return True
        return False

    def release_lock(self, user_key: str) -> None:
        """Remove the lock file if this instance still owns it."""

        owner = self._lock_owners.pop(user_key, None)
        if owner is None:
            return
        lock_path = self._lock_path(user_key)
        try:
            current = lock_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        if current == owner:
            lock_path.unlink(missing_ok=True)
