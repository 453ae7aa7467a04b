from __future__ import annotations

import math

import pytest

from estatesync.core.chunker import build_tasks, split_text
from estatesync.core.models import ChatFile, Platform, TaskStatus


def _chat_file(text: str) -> ChatFile:
    return ChatFile(
        id="file-1",
        display_name="chat.txt",
        group_name="Marina Brokers",
        platform=Platform.WHATSAPP,
        raw_content=text,
        task_count=0,
    )


@pytest.mark.parametrize("length,size", [(6000, 2500), (2500, 2500), (1, 2500), (10, 3), (7, 1)])
def test_split_text_covers_input_exactly(length: int, size: int) -> None:
    text = "".join(chr(ord("a") + i % 26) for i in range(length))
    chunks = split_text(text, size)

    assert "".join(chunks) == text
    assert len(chunks) == math.ceil(length / size)
    assert all(0 < len(chunk) <= size for chunk in chunks)


def test_split_text_empty_input_has_no_chunks() -> None:
    assert split_text("", 100) == []


def test_split_text_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        split_text("hello", 0)


def test_split_text_ignores_message_boundaries() -> None:
    text = "[01/02/24] A: 2BR Marina 1.2M\n[01/02/24] B: need villa"
    chunks = split_text(text, 10)
    assert chunks[0] == "[01/02/24]"
    assert chunks[1] == " A: 2BR Ma"


def test_build_tasks_one_pending_task_per_chunk_in_order() -> None:
    text = "x" * 6000
    chat_file = _chat_file(text)
    tasks = build_tasks(chat_file, split_text(text, 2500))

    assert [task.chunk_index for task in tasks] == [0, 1, 2]
    assert all(task.file_id == "file-1" for task in tasks)
    assert all(task.status is TaskStatus.PENDING and task.progress == 0 for task in tasks)
    assert all(task.group_name == "Marina Brokers" for task in tasks)
    assert len({task.id for task in tasks}) == 3
    assert [len(task.content) for task in tasks] == [2500, 2500, 1000]
