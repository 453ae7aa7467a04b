"""Entity deduplication helpers (core domain).

Deduplication is an opt-in merge policy: with mode "off" every extracted entity
is kept, which is the default pipeline behavior.
"""

from __future__ import annotations

import hashlib
import re
from typing import Iterable, Optional

from estatesync.core.config import DedupConfig
from estatesync.core.models import PropertyEntity

DEDUP_MODES = ("off", "per_group", "global")


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_fingerprint(text: str) -> str:
    """Normalize text for deterministic fingerprinting."""

    return _collapse_whitespace(text).lower()


def compute_fingerprint(entity: PropertyEntity, mode: str) -> Optional[str]:
    """Return a fingerprint hash of the entity's source snippet, based on dedup mode."""

    if mode == "off":
        return None

    normalized_text = normalize_for_fingerprint(entity.raw_text)
    if not normalized_text:
        return None

    if mode == "global":
        payload = f"{entity.type.value}\n{normalized_text}"
    elif mode == "per_group":
        payload = f"{entity.type.value}\n{entity.group_name}\n{normalized_text}"
    else:
        raise ValueError(f"Unsupported dedup mode: {mode}")

    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class EntityDeduplicator:
    """Tracks fingerprints of entities already merged into the store."""

    def __init__(self, config: DedupConfig) -> None:
        if config.mode not in DEDUP_MODES:
            raise ValueError(f"Unsupported dedup mode: {config.mode}")
        self._mode = config.mode
        self._seen: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self._mode != "off"

    def seed(self, entities: Iterable[PropertyEntity]) -> None:
        """Record fingerprints for entities that are already stored."""

        for entity in entities:
            fingerprint = compute_fingerprint(entity, self._mode)
            if fingerprint:
                self._seen.add(fingerprint)

    def filter_new(self, entities: Iterable[PropertyEntity]) -> list[PropertyEntity]:
        """Return entities whose fingerprint has not been seen, and mark them seen."""

        kept: list[PropertyEntity] = []
        for entity in entities:
            fingerprint = compute_fingerprint(entity, self._mode)
            if fingerprint is None:
                kept.append(entity)
                continue
            if fingerprint in self._seen:
                continue
            self._seen.add(fingerprint)
            kept.append(entity)
        return kept

    def reset(self) -> None:
        self._seen.clear()
