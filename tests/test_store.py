from __future__ import annotations

import pytest

from estatesync.core.chunker import build_tasks, split_text
from estatesync.core.config import DedupConfig
from estatesync.core.errors import UnknownFileError
from estatesync.core.models import (
    ChatFile,
    EntityType,
    ExtractionTask,
    Match,
    Platform,
    PropertyEntity,
    TaskStatus,
)
from estatesync.core.store import AggregateStore


def _entity(entity_id: str, entity_type: EntityType, raw_text: str = "", group: str = "g") -> PropertyEntity:
    return PropertyEntity(
        id=entity_id,
        type=entity_type,
        property_type="Apartment",
        community="Marina",
        price=1_000_000,
        size="2BR",
        contact="+971500000000",
        raw_text=raw_text or f"text for {entity_id}",
        group_name=group,
        timestamp="",
        platform=Platform.WHATSAPP,
    )


def _store_with_file(text: str = "abcdef", chunk_size: int = 2) -> tuple[AggregateStore, ChatFile]:
    store = AggregateStore()
    chat_file = ChatFile(
        id="file-1",
        display_name="chat.txt",
        group_name="g",
        platform=Platform.WHATSAPP,
        raw_content=text,
        task_count=len(split_text(text, chunk_size)),
    )
    store.add_file(chat_file, build_tasks(chat_file, split_text(text, chunk_size)))
    return store, chat_file


def test_add_file_rejects_tasks_for_other_files() -> None:
    store, chat_file = _store_with_file()
    other = ExtractionTask(
        id="task-x",
        file_id="file-404",
        chunk_index=0,
        status=TaskStatus.PENDING,
        progress=0,
        content="x",
        group_name="g",
        platform=Platform.WHATSAPP,
    )
    with pytest.raises(UnknownFileError):
        store.add_file(chat_file, [other])


def test_update_task_touches_only_one_record() -> None:
    store, _ = _store_with_file()
    first, second, third = store.tasks

    store.update_task(first.id, TaskStatus.PROCESSING)
    store.update_task(first.id, TaskStatus.ERROR, error="boom")

    assert store.get_task(first.id).status is TaskStatus.ERROR
    assert store.get_task(second.id) == second
    assert store.get_task(third.id) == third


def test_runnable_tasks_are_pending_or_error() -> None:
    store, _ = _store_with_file()
    first, second, third = store.tasks
    store.update_task(first.id, TaskStatus.PROCESSING)
    store.update_task(first.id, TaskStatus.SUCCESS)
    store.update_task(second.id, TaskStatus.PROCESSING)
    store.update_task(second.id, TaskStatus.ERROR, error="boom")

    assert [task.id for task in store.runnable_tasks()] == [second.id, third.id]


def test_append_entities_partitions_by_type() -> None:
    store = AggregateStore()
    added = store.append_entities(
        [
            _entity("unit-1", EntityType.UNIT),
            _entity("req-1", EntityType.REQUIREMENT),
            _entity("unit-2", EntityType.UNIT),
        ]
    )
    assert added == (2, 1)
    assert [unit.id for unit in store.units] == ["unit-1", "unit-2"]
    assert [req.id for req in store.requirements] == ["req-1"]


def test_append_order_does_not_change_final_sets() -> None:
    t1 = [_entity("unit-1", EntityType.UNIT), _entity("req-1", EntityType.REQUIREMENT)]
    t2 = [_entity("unit-2", EntityType.UNIT), _entity("req-2", EntityType.REQUIREMENT)]

    forward = AggregateStore()
    forward.append_entities(t1)
    forward.append_entities(t2)

    backward = AggregateStore()
    backward.append_entities(t2)
    backward.append_entities(t1)

    assert set(forward.units) == set(backward.units)
    assert set(forward.requirements) == set(backward.requirements)


def test_entities_are_not_deduplicated_by_default() -> None:
    store = AggregateStore()
    store.append_entities([_entity("unit-1", EntityType.UNIT, "same"), _entity("unit-2", EntityType.UNIT, "same")])
    assert len(store.units) == 2


def test_global_dedup_policy_drops_repeated_snippets() -> None:
    store = AggregateStore(DedupConfig(mode="global"))
    store.append_entities([_entity("unit-1", EntityType.UNIT, "2BR  Marina 1.2M", group="a")])
    store.append_entities([_entity("unit-2", EntityType.UNIT, "2br marina 1.2m", group="b")])
    assert [unit.id for unit in store.units] == ["unit-1"]


def test_merge_matches_is_unique_per_pair() -> None:
    store = AggregateStore()
    added = store.merge_matches(
        [
            Match("unit-1", "req-1", 8, "good"),
            Match("unit-1", "req-1", 3, "duplicate inside one response"),
            Match("unit-2", "req-1", 5, "ok"),
        ]
    )
    assert len(added) == 2

    again = store.merge_matches([Match("unit-1", "req-1", 10, "new score is ignored")])
    assert again == []
    assert [match.score for match in store.matches] == [8, 5]


def test_snapshot_restore_resets_in_flight_tasks() -> None:
    store, _ = _store_with_file()
    first, second, _third = store.tasks
    store.update_task(first.id, TaskStatus.PROCESSING, progress=80)
    store.update_task(second.id, TaskStatus.PROCESSING)
    store.update_task(second.id, TaskStatus.SUCCESS)
    store.append_entities([_entity("unit-1", EntityType.UNIT), _entity("req-1", EntityType.REQUIREMENT)])
    store.merge_matches([Match("unit-1", "req-1", 9, "fits")])

    restored = AggregateStore()
    restored.restore(store.snapshot())

    assert restored.get_task(first.id).status is TaskStatus.PENDING
    assert restored.get_task(first.id).progress == 0
    assert restored.get_task(second.id).status is TaskStatus.SUCCESS
    assert restored.units == store.units
    assert restored.requirements == store.requirements
    assert restored.has_match("unit-1", "req-1")


def test_restore_drops_tasks_without_file() -> None:
    store, _ = _store_with_file()
    snapshot = store.snapshot()
    snapshot["files"] = []

    restored = AggregateStore()
    restored.restore(snapshot)
    assert restored.tasks == []


def test_clear_discards_everything() -> None:
    store, _ = _store_with_file()
    store.append_entities([_entity("unit-1", EntityType.UNIT)])
    store.merge_matches([Match("unit-1", "req-1", 9, "fits")])
    store.clear()

    assert store.snapshot() == {"units": [], "requirements": [], "matches": [], "files": [], "tasks": []}
