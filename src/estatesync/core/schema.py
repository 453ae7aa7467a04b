"""Boundary validation for oracle output.

Extraction and matching results come from a language model, so field presence
and types are not trusted. Records are coerced toward the schemas below,
validated with jsonschema, and quarantined (dropped and counted) when they
still do not fit.
"""

from __future__ import annotations

import logging
import math
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from jsonschema import ValidationError, validate

from estatesync.core.models import EntityType, ExtractionTask, Match, PropertyEntity

LOGGER = logging.getLogger(__name__)

ENTITY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {"type": "string", "enum": [t.value for t in EntityType]},
        "propertyType": {"type": "string"},
        "community": {"type": "string"},
        "price": {"type": "number", "minimum": 0},
        "size": {"type": "string"},
        "contact": {"type": "string"},
        "rawText": {"type": "string", "minLength": 1},
        "timestamp": {"type": "string"},
        "username": {"type": ["string", "null"]},
    },
    "required": ["type", "propertyType", "community", "price", "contact", "rawText"],
}

MATCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "unitId": {"type": "string", "minLength": 1},
        "requirementId": {"type": "string", "minLength": 1},
        "score": {"type": "number", "minimum": 1, "maximum": 10},
        "reasoning": {"type": "string"},
    },
    "required": ["unitId", "requirementId", "score", "reasoning"],
}

_STRING_FIELDS = ("propertyType", "community", "size", "contact", "rawText", "timestamp")
_PRICE_SUFFIXES = {"k": 1_000, "m": 1_000_000, "mn": 1_000_000, "b": 1_000_000_000, "bn": 1_000_000_000}
_PRICE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(k|mn|m|bn|b)?\b", re.IGNORECASE)


@dataclass
class CoercionReport:
    """Outcome of validating one oracle response."""

    accepted: list = field(default_factory=list)
    rejected: int = 0


def parse_price(value: Any) -> float:
    """Coerce a price or budget to a number; 0 means unknown ("TBA")."""

    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) and value > 0 else 0
    if not isinstance(value, str):
        return 0

    cleaned = value.replace(",", "").strip()
    found = _PRICE_PATTERN.search(cleaned)
    if not found:
        return 0
    amount = float(found.group(1))
    suffix = (found.group(2) or "").lower()
    amount *= _PRICE_SUFFIXES.get(suffix, 1)
    return int(amount) if amount.is_integer() else amount


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _entity_records(raw: Any) -> list:
    if isinstance(raw, dict):
        raw = raw.get("entities", [])
    if not isinstance(raw, list):
        return []
    return raw


def coerce_entity(record: Any, task: ExtractionTask) -> Optional[PropertyEntity]:
    """Build a PropertyEntity from one raw oracle record, or None to quarantine it."""

    if not isinstance(record, dict):
        return None

    candidate: dict[str, Any] = {key: _as_text(record.get(key)) for key in _STRING_FIELDS}
    candidate["type"] = _as_text(record.get("type")).upper()
    candidate["price"] = parse_price(record.get("price"))
    candidate["username"] = _as_text(record.get("username")).lstrip("@") or None

    try:
        validate(instance=candidate, schema=ENTITY_SCHEMA)
    except ValidationError as exc:
        LOGGER.debug("Quarantined entity from task %s: %s", task.id, exc.message)
        return None

    entity_type = EntityType(candidate["type"])
    return PropertyEntity(
        id=f"{entity_type.value.lower()}-{uuid.uuid4().hex}",
        type=entity_type,
        property_type=candidate["propertyType"],
        community=candidate["community"],
        price=candidate["price"],
        size=candidate["size"],
        contact=candidate["contact"],
        raw_text=candidate["rawText"],
        group_name=task.group_name,
        timestamp=candidate["timestamp"],
        platform=task.platform,
        username=candidate["username"],
    )


def coerce_entities(raw: Any, task: ExtractionTask) -> CoercionReport:
    """Validate an extraction response; group name and platform come from the task."""

    report = CoercionReport()
    for record in _entity_records(raw):
        entity = coerce_entity(record, task)
        if entity is None:
            report.rejected += 1
            continue
        report.accepted.append(entity)
    if report.rejected:
        LOGGER.warning("Task %s: quarantined %s malformed entities", task.id, report.rejected)
    return report


def coerce_matches(
    raw: Any,
    unit_ids: Iterable[str],
    requirement_ids: Iterable[str],
) -> CoercionReport:
    """Validate a matching response against the ids that were submitted."""

    if isinstance(raw, dict):
        raw = raw.get("matches", [])
    records = raw if isinstance(raw, list) else []

    known_units = set(unit_ids)
    known_requirements = set(requirement_ids)
    report = CoercionReport()
    for record in records:
        if not isinstance(record, dict):
            report.rejected += 1
            continue
        candidate = dict(record)
        if isinstance(candidate.get("score"), str):
            try:
                candidate["score"] = float(candidate["score"])
            except ValueError:
                pass
        if candidate.get("reasoning") is None:
            candidate["reasoning"] = ""
        try:
            validate(instance=candidate, schema=MATCH_SCHEMA)
        except ValidationError as exc:
            LOGGER.debug("Quarantined match: %s", exc.message)
            report.rejected += 1
            continue
        # NaN compares false against both bounds, so the schema lets it through.
        if not math.isfinite(candidate["score"]):
            LOGGER.debug("Quarantined match: non-finite score %r", candidate["score"])
            report.rejected += 1
            continue
        if candidate["unitId"] not in known_units or candidate["requirementId"] not in known_requirements:
            report.rejected += 1
            continue
        report.accepted.append(
            Match(
                unit_id=candidate["unitId"],
                requirement_id=candidate["requirementId"],
                score=candidate["score"],
                reasoning=candidate["reasoning"],
            )
        )
    if report.rejected:
        LOGGER.warning("Quarantined %s malformed matches", report.rejected)
    return report
