"""Task state machine (core domain).

Lifecycle::

    pending ──> processing ──> success
       ^            │
       │            └────────> error ──> processing (retry)

Progress checkpoints while processing are 0 (enqueued), 30 (request
dispatched), 80 (response received) and 100 (merged). ``error`` always carries
progress 0; ``success`` always carries 100 and is terminal.
"""

from __future__ import annotations

import dataclasses
from typing import Optional

from estatesync.core.errors import InvalidTransitionError
from estatesync.core.models import ExtractionTask, TaskStatus

PROGRESS_ENQUEUED = 0
PROGRESS_DISPATCHED = 30
PROGRESS_RECEIVED = 80
PROGRESS_DONE = 100

ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.PROCESSING, TaskStatus.SUCCESS, TaskStatus.ERROR}),
    TaskStatus.ERROR: frozenset({TaskStatus.PROCESSING, TaskStatus.PENDING}),
    TaskStatus.SUCCESS: frozenset(),
}

RUNNABLE_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.ERROR})


def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def transition(
    task: ExtractionTask,
    status: TaskStatus,
    progress: Optional[int] = None,
    error: Optional[str] = None,
) -> ExtractionTask:
    """Return a copy of task moved to status, validating the move.

    Progress defaults to the checkpoint implied by the target state. Within
    ``processing`` progress may only move forward.
    """

    if not can_transition(task.status, status):
        raise InvalidTransitionError(
            f"Task {task.id}: {task.status.value} -> {status.value} is not allowed"
        )

    if status is TaskStatus.SUCCESS:
        return dataclasses.replace(task, status=status, progress=PROGRESS_DONE, error=None)

    if status is TaskStatus.ERROR:
        return dataclasses.replace(
            task,
            status=status,
            progress=PROGRESS_ENQUEUED,
            error=error or "Unknown error",
        )

    if status is TaskStatus.PENDING:
        return dataclasses.replace(task, status=status, progress=PROGRESS_ENQUEUED, error=None)

    # processing
    if progress is None:
        progress = PROGRESS_DISPATCHED
    if not 0 <= progress <= PROGRESS_DONE:
        raise InvalidTransitionError(f"Task {task.id}: progress {progress} is out of range")
    if task.status is TaskStatus.PROCESSING and progress < task.progress:
        raise InvalidTransitionError(
            f"Task {task.id}: progress cannot go back from {task.progress} to {progress}"
        )
    return dataclasses.replace(task, status=status, progress=progress, error=None)


def normalize_for_reload(task: ExtractionTask) -> ExtractionTask:
    """Reset a task caught mid-flight at save time back to pending."""

    if task.status is not TaskStatus.PROCESSING:
        return task
    return dataclasses.replace(task, status=TaskStatus.PENDING, progress=PROGRESS_ENQUEUED, error=None)
