from __future__ import annotations

from typing import Optional

import pytest

from estatesync.adapters.formatting import contact_link, format_match, format_price, format_task
from estatesync.core.models import EntityType, ExtractionTask, Match, Platform, PropertyEntity, TaskStatus
from estatesync.core.queries import ResolvedMatch


def _entity(
    *,
    platform: Platform,
    contact: str,
    username: Optional[str] = None,
    entity_type: EntityType = EntityType.UNIT,
) -> PropertyEntity:
    return PropertyEntity(
        id=f"{entity_type.value.lower()}-1",
        type=entity_type,
        property_type="Apartment",
        community="Dubai Marina",
        price=1_200_000,
        size="2BR",
        contact=contact,
        raw_text="2BR Marina 1.2M",
        group_name="Marina Brokers",
        timestamp="",
        platform=platform,
        username=username,
    )


def test_whatsapp_link_uses_digits_and_prefilled_text() -> None:
    link = contact_link(_entity(platform=Platform.WHATSAPP, contact="+971 50 123 4567"))
    assert link.startswith("https://wa.me/971501234567?text=")
    assert "Dubai%20Marina" in link


def test_telegram_link_prefers_username() -> None:
    entity = _entity(platform=Platform.TELEGRAM, contact="+971501234567", username="marina_broker")
    assert contact_link(entity) == "https://t.me/marina_broker"


def test_telegram_link_falls_back_to_contact() -> None:
    assert contact_link(_entity(platform=Platform.TELEGRAM, contact="@sara")) == "https://t.me/sara"
    assert contact_link(_entity(platform=Platform.TELEGRAM, contact="https://t.me/sara")) == "https://t.me/sara"


@pytest.mark.parametrize(
    "price,expected",
    [(0, "TBA"), (850_000, "850,000"), (1_200_000, "1.20M"), (3_000_000, "3M")],
)
def test_format_price(price: float, expected: str) -> None:
    assert format_price(price) == expected


def test_format_match_text_and_markdown() -> None:
    unit = _entity(platform=Platform.WHATSAPP, contact="+971501234567")
    requirement = _entity(platform=Platform.WHATSAPP, contact="+971509999999", entity_type=EntityType.REQUIREMENT)
    resolved = ResolvedMatch(
        match=Match(unit_id=unit.id, requirement_id=requirement.id, score=8, reasoning="same_community"),
        unit=unit,
        requirement=requirement,
    )

    text = format_match(resolved)
    assert text.startswith("Score: 8/10")
    assert "https://wa.me/971501234567" in text

    markdown = format_match(resolved, mode="markdown")
    assert "**Score:** 8/10" in markdown
    assert "same\\_community" in markdown

    with pytest.raises(ValueError):
        format_match(resolved, mode="html")


def test_format_task_shows_error() -> None:
    task = ExtractionTask(
        id="task-1",
        file_id="file-1",
        chunk_index=2,
        status=TaskStatus.ERROR,
        progress=0,
        content="...",
        group_name="Marina Brokers",
        platform=Platform.WHATSAPP,
        error="quota exceeded",
    )
    line = format_task(task)
    assert "error" in line
    assert line.endswith("! quota exceeded")
