"""Positional text chunking and task generation (core domain)."""

from __future__ import annotations

import uuid
from typing import List

from estatesync.core.models import ChatFile, ExtractionTask, TaskStatus


def split_text(text: str, chunk_size: int) -> List[str]:
    """Split text into consecutive slices of at most chunk_size characters.

    Boundaries are purely positional, so joining the result reproduces the
    input exactly. Empty input yields no chunks.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[start : start + chunk_size] for start in range(0, len(text), chunk_size)]


def new_task_id() -> str:
    return f"task-{uuid.uuid4().hex}"


def build_tasks(chat_file: ChatFile, chunks: List[str]) -> List[ExtractionTask]:
    """Create one pending task per chunk, in chunk order."""

    return [
        ExtractionTask(
            id=new_task_id(),
            file_id=chat_file.id,
            chunk_index=index,
            status=TaskStatus.PENDING,
            progress=0,
            content=chunk,
            group_name=chat_file.group_name,
            platform=chat_file.platform,
        )
        for index, chunk in enumerate(chunks)
    ]
