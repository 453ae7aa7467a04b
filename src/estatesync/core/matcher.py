"""Matching pass over the accumulated units and requirements."""

from __future__ import annotations

import logging
from typing import Optional

from estatesync.core.config import MatchingConfig
from estatesync.core.ports import MatchingOracle
from estatesync.core.schema import coerce_matches
from estatesync.core.store import AggregateStore

LOGGER = logging.getLogger(__name__)


class Matcher:
    """Requests scored links from the matching service and merges new pairs.

    The merge step computes the existing pair set at the moment of merging, so
    overlapping passes (scheduled and forced) are idempotent regardless of how
    they interleave.
    """

    def __init__(
        self,
        store: AggregateStore,
        oracle: MatchingOracle,
        config: Optional[MatchingConfig] = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._config = config or MatchingConfig()

    async def run(self) -> int:
        """Run one matching pass and return the number of matches added.

        Failures are logged and leave the Match collection unchanged; the next
        scheduled or forced pass retries.
        """

        units = self._store.units[-self._config.max_units :]
        requirements = self._store.requirements[-self._config.max_requirements :]
        if not units or not requirements:
            LOGGER.debug("Skipping matching: %s units, %s requirements", len(units), len(requirements))
            return 0

        LOGGER.info("Matching %s units against %s requirements", len(units), len(requirements))
        try:
            raw_matches = await self._oracle.match(units, requirements)
        except Exception:
            LOGGER.exception("Matching pass failed")
            return 0

        report = coerce_matches(
            raw_matches,
            unit_ids=(unit.id for unit in units),
            requirement_ids=(requirement.id for requirement in requirements),
        )
        added = self._store.merge_matches(report.accepted)
        LOGGER.info("Matching pass added %s new matches (%s returned)", len(added), len(report.accepted))
        return len(added)
