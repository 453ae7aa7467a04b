"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for persistence and the extraction/matching
service so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from estatesync.core.models import Platform, PropertyEntity


class PersistencePort(Protocol):
    """Load/save one JSON-compatible snapshot per user key.

    The batch lock is shared by every process using the same storage, so only
    one batch runs per user key at a time.
    """

    def load(self, user_key: str) -> Optional[dict[str, Any]]:
        ...

    def save(self, user_key: str, snapshot: dict[str, Any]) -> None:
        ...

    def delete(self, user_key: str) -> int:
        ...

    def list_users(self) -> set[str]:
        ...

    def acquire_lock(self, user_key: str) -> bool:
        ...

    def release_lock(self, user_key: str) -> None:
        ...


class BatchLock(Protocol):
    """Exclusive right to run a batch; acquire returns False when it is held."""

    def acquire(self) -> bool:
        ...

    def release(self) -> None:
        ...


class ExtractionOracle(Protocol):
    """Turns one chunk of chat text into raw entity records."""

    async def extract(self, chunk_text: str, group_name: str, platform: Platform) -> list[dict[str, Any]]:
        ...


class MatchingOracle(Protocol):
    """Scores unit/requirement pairs and returns raw match records."""

    async def match(
        self,
        units: list[PropertyEntity],
        requirements: list[PropertyEntity],
    ) -> list[dict[str, Any]]:
        ...
