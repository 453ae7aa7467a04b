"""Batch scheduler for extraction tasks.

A batch run enforces a strict order:
1) Snapshot every pending/error task as the work list
2) Split the work list into groups of at most ``concurrency`` tasks
3) Run each group concurrently and wait for the whole group to drain
4) Launch a background matching pass whenever cumulative progress crosses a
   multiple of ``match_interval``
5) Run one final matching pass once the work list is drained

This module is integration-agnostic. It only relies on ports for extraction
and on the Matcher for matching.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from estatesync.core.config import PipelineConfig
from estatesync.core.matcher import Matcher
from estatesync.core.models import ExtractionTask, TaskStatus
from estatesync.core.ports import BatchLock, ExtractionOracle
from estatesync.core.schema import coerce_entities
from estatesync.core.store import AggregateStore
from estatesync.core.task_state import PROGRESS_DISPATCHED, PROGRESS_RECEIVED, RUNNABLE_STATUSES
from estatesync.core.worker_pool import WorkerPool, iter_groups

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchReport:
    """Summary of one batch run."""

    total: int
    succeeded: int
    failed: int
    match_passes: int


class Scheduler:
    """Drives pending tasks to a terminal state under a concurrency ceiling."""

    def __init__(
        self,
        store: AggregateStore,
        extractor: ExtractionOracle,
        matcher: Matcher,
        config: Optional[PipelineConfig] = None,
        on_checkpoint: Optional[Callable[[], None]] = None,
        batch_lock: Optional[BatchLock] = None,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._matcher = matcher
        self._config = config or PipelineConfig()
        self._on_checkpoint = on_checkpoint
        self._batch_lock = batch_lock
        self._pool = WorkerPool(self._config.concurrency)
        self._background: set[asyncio.Task] = set()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    async def run_all(self) -> Optional[BatchReport]:
        """Process every pending/error task, then run the final matching pass.

        An intermediate matching pass is launched after each group that crosses
        a multiple of ``match_interval``, except the last group: the final pass
        runs right after it and covers the same data.

        Returns None without doing anything when a batch is already running,
        either on this scheduler or, through the batch lock, in another
        process sharing the same storage.
        """

        if self._running:
            LOGGER.info("Batch already running; ignoring run request")
            return None
        if self._batch_lock is not None and not self._batch_lock.acquire():
            LOGGER.info("Batch lock is held elsewhere; ignoring run request")
            return None

        self._running = True
        try:
            return await self._run_batch()
        finally:
            self._running = False
            if self._batch_lock is not None:
                self._batch_lock.release()

    async def _run_batch(self) -> BatchReport:
        # Tasks added after this point wait for the next batch.
        work_list = [task.id for task in self._store.runnable_tasks()]
        total = len(work_list)
        interval = self._config.match_interval
        LOGGER.info("Starting batch: %s tasks, concurrency %s", total, self._config.concurrency)

        processed = 0
        succeeded = 0
        failed = 0
        match_passes = 0

        for group in iter_groups(work_list, self._config.concurrency):
            results = await self._pool.run_group([partial(self._process, task_id) for task_id in group])
            for task_id, result in zip(group, results):
                if isinstance(result, BaseException):
                    LOGGER.error("Task %s crashed outside the task lifecycle: %r", task_id, result)
                    failed += 1
                elif result.status is TaskStatus.SUCCESS:
                    succeeded += 1
                elif result.status is TaskStatus.ERROR:
                    failed += 1

            previous = processed
            processed += len(group)
            LOGGER.info("Batch progress: %s/%s tasks", processed, total)

            # The last group is covered by the final pass below.
            if processed < total and processed // interval > previous // interval:
                self._launch_background_match()
                match_passes += 1

            self._checkpoint()

        await self._matcher.run()
        match_passes += 1

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        self._checkpoint()

        LOGGER.info("Batch complete: %s succeeded, %s failed", succeeded, failed)
        return BatchReport(total=total, succeeded=succeeded, failed=failed, match_passes=match_passes)

    async def run_task(self, task_id: str) -> ExtractionTask:
        """Run a single task on demand (manual retry).

        Successful and in-flight tasks are returned unchanged.
        """

        task = self._store.get_task(task_id)
        if task.status not in RUNNABLE_STATUSES:
            LOGGER.info("Task %s is %s; not running it again", task_id, task.status.value)
            return task
        result = await self._process(task_id)
        self._checkpoint()
        return result

    async def force_match(self) -> int:
        """Run a matching pass now, independently of any batch."""

        added = await self._matcher.run()
        self._checkpoint()
        return added

    async def _process(self, task_id: str) -> ExtractionTask:
        task = self._store.get_task(task_id)
        if task.status not in RUNNABLE_STATUSES:
            # Picked up by a manual run after the batch snapshot was taken.
            return task

        task = self._store.update_task(task_id, TaskStatus.PROCESSING, progress=PROGRESS_DISPATCHED)
        try:
            raw_entities = await self._extractor.extract(task.content, task.group_name, task.platform)
            self._store.update_task(task_id, TaskStatus.PROCESSING, progress=PROGRESS_RECEIVED)
            report = coerce_entities(raw_entities, task)
            units, requirements = self._store.append_entities(report.accepted)
        except asyncio.CancelledError:
            LOGGER.warning("Task %s cancelled", task_id)
            raise
        except Exception as exc:
            error_msg = str(exc) or type(exc).__name__
            LOGGER.warning("Task %s (chunk %s) failed: %s", task_id, task.chunk_index, error_msg)
            return self._store.update_task(task_id, TaskStatus.ERROR, error=error_msg)

        LOGGER.info(
            "Task %s (chunk %s) done: %s units, %s requirements",
            task_id,
            task.chunk_index,
            units,
            requirements,
        )
        return self._store.update_task(task_id, TaskStatus.SUCCESS)

    def _launch_background_match(self) -> None:
        background = asyncio.create_task(self._matcher.run())
        self._background.add(background)
        background.add_done_callback(self._background.discard)

    def _checkpoint(self) -> None:
        if self._on_checkpoint is not None:
            self._on_checkpoint()
