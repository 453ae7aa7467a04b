"""Per-user workspace: the explicit context object for one session.

The workspace owns the aggregate store and talks to persistence through the
injected port. Persistence failures are logged and never block the caller.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from estatesync.core.chunker import build_tasks, split_text
from estatesync.core.config import DedupConfig, PipelineConfig
from estatesync.core.models import ChatFile, Platform
from estatesync.core.ports import PersistencePort
from estatesync.core.store import AggregateStore

LOGGER = logging.getLogger(__name__)


class Workspace:
    """Aggregate state of one user plus its persistence wiring."""

    def __init__(
        self,
        user_key: str,
        persistence: PersistencePort,
        pipeline_config: Optional[PipelineConfig] = None,
        dedup_config: Optional[DedupConfig] = None,
    ) -> None:
        self.user_key = user_key
        self._persistence = persistence
        self._pipeline = pipeline_config or PipelineConfig()
        self.store = AggregateStore(dedup_config)

    def load(self) -> bool:
        """Restore the persisted snapshot, if any.

        A failed load starts from an empty store.
        """

        try:
            data = self._persistence.load(self.user_key)
        except Exception:
            LOGGER.exception("Failed to load data for %s", self.user_key)
            return False
        if not data:
            return False
        self.store.restore(data)
        LOGGER.info(
            "Loaded %s files, %s tasks, %s units, %s requirements, %s matches",
            len(self.store.files),
            len(self.store.tasks),
            len(self.store.units),
            len(self.store.requirements),
            len(self.store.matches),
        )
        return True

    def save(self) -> bool:
        """Persist the whole store as one snapshot; failures are only logged."""

        try:
            self._persistence.save(self.user_key, self.store.snapshot())
        except Exception:
            LOGGER.exception("Failed to save data for %s", self.user_key)
            return False
        return True

    def upload(self, display_name: str, group_name: str, platform: Platform, text: str) -> ChatFile:
        """Register a chat file and create one pending task per chunk."""

        chunks = split_text(text, self._pipeline.chunk_size)
        chat_file = ChatFile(
            id=f"file-{uuid.uuid4().hex}",
            display_name=display_name,
            group_name=group_name,
            platform=platform,
            raw_content=text,
            task_count=len(chunks),
        )
        self.store.add_file(chat_file, build_tasks(chat_file, chunks))
        LOGGER.info("Uploaded %s (%s): %s tasks", display_name, platform.value, len(chunks))
        return chat_file

    def clear(self) -> bool:
        """Discard every file, task, entity and match for this user."""

        self.store.clear()
        try:
            self._persistence.delete(self.user_key)
        except Exception:
            LOGGER.exception("Failed to delete data for %s", self.user_key)
            return False
        return True

    def acquire_batch_lock(self) -> bool:
        """Take this user's batch lock in persistence; False if it is held.

        Once held, the persisted snapshot is reloaded so the batch starts from
        the latest saved state rather than from what was loaded earlier.
        """

        try:
            acquired = self._persistence.acquire_lock(self.user_key)
        except Exception:
            LOGGER.exception("Failed to acquire batch lock for %s", self.user_key)
            return False
        if acquired:
            self.load()
        return acquired

    def release_batch_lock(self) -> None:
        try:
            self._persistence.release_lock(self.user_key)
        except Exception:
            LOGGER.exception("Failed to release batch lock for %s", self.user_key)

    def batch_lock(self) -> WorkspaceBatchLock:
        return WorkspaceBatchLock(self)


class WorkspaceBatchLock:
    """BatchLock bound to one workspace."""

    def __init__(self, workspace: Workspace) -> None:
        self._workspace = workspace

    def acquire(self) -> bool:
        return self._workspace.acquire_batch_lock()

    def release(self) -> None:
        self._workspace.release_batch_lock()
