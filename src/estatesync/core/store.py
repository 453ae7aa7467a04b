"""Aggregate store: files, tasks, units, requirements and matches.

Every mutation is a synchronous method that reads the current state and
applies a single-record change or a pure append. Concurrent task completions
running on one event loop therefore commute; nothing writes back a copy of the
state captured before an await.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from estatesync.core.config import DedupConfig
from estatesync.core.dedup import EntityDeduplicator
from estatesync.core.errors import UnknownFileError
from estatesync.core.models import (
    ChatFile,
    EntityType,
    ExtractionTask,
    Match,
    PropertyEntity,
    TaskStatus,
)
from estatesync.core.task_state import RUNNABLE_STATUSES, normalize_for_reload, transition

LOGGER = logging.getLogger(__name__)


class AggregateStore:
    """In-memory durable state of one workspace."""

    def __init__(self, dedup_config: Optional[DedupConfig] = None) -> None:
        self._files: dict[str, ChatFile] = {}
        self._tasks: dict[str, ExtractionTask] = {}
        self._units: list[PropertyEntity] = []
        self._requirements: list[PropertyEntity] = []
        self._matches: list[Match] = []
        self._match_pairs: set[tuple[str, str]] = set()
        self._dedup = EntityDeduplicator(dedup_config or DedupConfig())

    # Read side -----------------------------------------------------------

    @property
    def files(self) -> list[ChatFile]:
        return list(self._files.values())

    @property
    def tasks(self) -> list[ExtractionTask]:
        return list(self._tasks.values())

    @property
    def units(self) -> list[PropertyEntity]:
        return list(self._units)

    @property
    def requirements(self) -> list[PropertyEntity]:
        return list(self._requirements)

    @property
    def matches(self) -> list[Match]:
        return list(self._matches)

    def get_task(self, task_id: str) -> ExtractionTask:
        return self._tasks[task_id]

    def get_file(self, file_id: str) -> ChatFile:
        return self._files[file_id]

    def tasks_for_file(self, file_id: str) -> list[ExtractionTask]:
        return sorted(
            (task for task in self._tasks.values() if task.file_id == file_id),
            key=lambda task: task.chunk_index,
        )

    def runnable_tasks(self) -> list[ExtractionTask]:
        """Return tasks in pending or error state, in insertion order."""

        return [task for task in self._tasks.values() if task.status in RUNNABLE_STATUSES]

    def has_match(self, unit_id: str, requirement_id: str) -> bool:
        return (unit_id, requirement_id) in self._match_pairs

    # Write side ----------------------------------------------------------

    def add_file(self, chat_file: ChatFile, tasks: Iterable[ExtractionTask]) -> None:
        """Register an uploaded file together with its chunk tasks."""

        tasks = list(tasks)
        for task in tasks:
            if task.file_id != chat_file.id:
                raise UnknownFileError(f"Task {task.id} references {task.file_id}, not {chat_file.id}")
        self._files[chat_file.id] = chat_file
        for task in tasks:
            self._tasks[task.id] = task

    def update_task(
        self,
        task_id: str,
        status: TaskStatus,
        progress: Optional[int] = None,
        error: Optional[str] = None,
    ) -> ExtractionTask:
        """Apply one validated state transition to one task record."""

        updated = transition(self._tasks[task_id], status, progress=progress, error=error)
        self._tasks[task_id] = updated
        return updated

    def append_entities(self, entities: Iterable[PropertyEntity]) -> tuple[int, int]:
        """Append extracted entities, partitioned by type.

        Returns the number of (units, requirements) added.
        """

        fresh = self._dedup.filter_new(entities) if self._dedup.enabled else list(entities)
        units = [entity for entity in fresh if entity.type is EntityType.UNIT]
        requirements = [entity for entity in fresh if entity.type is EntityType.REQUIREMENT]
        self._units.extend(units)
        self._requirements.extend(requirements)
        return len(units), len(requirements)

    def merge_matches(self, matches: Iterable[Match]) -> list[Match]:
        """Append matches whose (unit, requirement) pair is not already present."""

        added: list[Match] = []
        for match in matches:
            if match.pair in self._match_pairs:
                continue
            self._match_pairs.add(match.pair)
            self._matches.append(match)
            added.append(match)
        return added

    def clear(self) -> None:
        """Discard all data (the only way to remove entities or successful tasks)."""

        self._files.clear()
        self._tasks.clear()
        self._units.clear()
        self._requirements.clear()
        self._matches.clear()
        self._match_pairs.clear()
        self._dedup.reset()

    # Snapshots -----------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """Serialize the whole store as one JSON-compatible document."""

        return {
            "units": [entity.to_dict() for entity in self._units],
            "requirements": [entity.to_dict() for entity in self._requirements],
            "matches": [match.to_dict() for match in self._matches],
            "files": [chat_file.to_dict() for chat_file in self._files.values()],
            "tasks": [task.to_dict() for task in self._tasks.values()],
        }

    def restore(self, data: dict[str, Any]) -> None:
        """Replace the current state with a snapshot.

        Tasks caught in ``processing`` are reset to ``pending``; tasks whose file
        is missing from the snapshot are dropped.
        """

        self.clear()
        for raw in data.get("files") or []:
            chat_file = ChatFile.from_dict(raw)
            self._files[chat_file.id] = chat_file

        dropped = 0
        for raw in data.get("tasks") or []:
            task = normalize_for_reload(ExtractionTask.from_dict(raw))
            if task.file_id not in self._files:
                dropped += 1
                continue
            self._tasks[task.id] = task
        if dropped:
            LOGGER.warning("Dropped %s tasks referencing unknown files", dropped)

        self._units.extend(PropertyEntity.from_dict(raw) for raw in data.get("units") or [])
        self._requirements.extend(PropertyEntity.from_dict(raw) for raw in data.get("requirements") or [])
        self.merge_matches(Match.from_dict(raw) for raw in data.get("matches") or [])
        if self._dedup.enabled:
            self._dedup.seed(self._units)
            self._dedup.seed(self._requirements)
