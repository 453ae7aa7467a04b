from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from estatesync.adapters.openai_oracle import OpenAIOracle
from estatesync.core.errors import OracleError
from estatesync.core.models import EntityType, Platform, PropertyEntity


class FakeCompletions:
    def __init__(self, content: Optional[str]) -> None:
        self.content = content
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.content is None:
            return SimpleNamespace(choices=[])
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _oracle(content: Optional[str]) -> tuple[OpenAIOracle, FakeCompletions]:
    completions = FakeCompletions(content)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIOracle(client, timeout_seconds=30), completions


def _entity(entity_id: str, entity_type: EntityType) -> PropertyEntity:
    return PropertyEntity(
        id=entity_id,
        type=entity_type,
        property_type="Villa",
        community="Arabian Ranches",
        price=4_000_000,
        size="4BR",
        contact="+971500000000",
        raw_text="secret raw text",
        group_name="g",
        timestamp="",
        platform=Platform.WHATSAPP,
    )


def test_extract_returns_entities_and_requests_json_mode() -> None:
    oracle, completions = _oracle(json.dumps({"entities": [{"type": "UNIT"}]}))

    entities = asyncio.run(oracle.extract("Villa for sale", "Ranches Group", Platform.TELEGRAM))

    assert entities == [{"type": "UNIT"}]
    call = completions.calls[0]
    assert call["model"] == "gpt-4o-mini"
    assert call["response_format"] == {"type": "json_object"}
    assert call["timeout"] == 30
    user_message = call["messages"][1]["content"]
    assert "Ranches Group" in user_message
    assert "TELEGRAM" in user_message
    assert "Villa for sale" in user_message


def test_match_sends_only_matching_fields() -> None:
    oracle, completions = _oracle(json.dumps({"matches": []}))

    matches = asyncio.run(
        oracle.match([_entity("unit-1", EntityType.UNIT)], [_entity("requirement-1", EntityType.REQUIREMENT)])
    )

    assert matches == []
    call = completions.calls[0]
    assert call["model"] == "gpt-4o"
    user_message = call["messages"][1]["content"]
    assert "unit-1" in user_message and "requirement-1" in user_message
    assert "secret raw text" not in user_message


@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "not json at all",
        json.dumps(["entities"]),
        json.dumps({"entities": "none"}),
        json.dumps({"result": []}),
    ],
)
def test_extract_rejects_unusable_output(content: Optional[str]) -> None:
    oracle, _ = _oracle(content)
    with pytest.raises(OracleError):
        asyncio.run(oracle.extract("text", "group", Platform.WHATSAPP))


def test_match_without_matches_array_raises() -> None:
    oracle, _ = _oracle(json.dumps({"entities": []}))
    with pytest.raises(OracleError):
        asyncio.run(oracle.match([], []))
