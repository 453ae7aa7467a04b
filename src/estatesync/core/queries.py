"""Read-side helpers over the aggregate store (search, ranking, stats)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from estatesync.core.models import Match, PropertyEntity, TaskStatus
from estatesync.core.store import AggregateStore

HIGH_POTENTIAL_SCORE = 7


@dataclass(frozen=True)
class ResolvedMatch:
    """A match joined with the unit and requirement it links."""

    match: Match
    unit: PropertyEntity
    requirement: PropertyEntity


@dataclass(frozen=True)
class DashboardStats:
    units: int
    requirements: int
    matches: int
    high_potential_matches: int
    tasks_total: int
    tasks_done: int
    tasks_failed: int

    @property
    def completion_percent(self) -> int:
        if not self.tasks_total:
            return 0
        return round(self.tasks_done * 100 / self.tasks_total)


def search_entities(entities: Iterable[PropertyEntity], query: str) -> List[PropertyEntity]:
    """Case-insensitive filter on community and property type."""

    needle = query.strip().lower()
    if not needle:
        return list(entities)
    return [
        entity
        for entity in entities
        if needle in entity.community.lower() or needle in entity.property_type.lower()
    ]


def ranked_matches(store: AggregateStore, min_score: float = 0) -> List[ResolvedMatch]:
    """Matches sorted by score (highest first), skipping dangling references."""

    units = {unit.id: unit for unit in store.units}
    requirements = {requirement.id: requirement for requirement in store.requirements}
    resolved = [
        ResolvedMatch(match=match, unit=units[match.unit_id], requirement=requirements[match.requirement_id])
        for match in store.matches
        if match.score >= min_score and match.unit_id in units and match.requirement_id in requirements
    ]
    resolved.sort(key=lambda item: item.match.score, reverse=True)
    return resolved


def dashboard_stats(store: AggregateStore) -> DashboardStats:
    tasks = store.tasks
    matches = store.matches
    return DashboardStats(
        units=len(store.units),
        requirements=len(store.requirements),
        matches=len(matches),
        high_potential_matches=sum(1 for match in matches if match.score >= HIGH_POTENTIAL_SCORE),
        tasks_total=len(tasks),
        tasks_done=sum(1 for task in tasks if task.status is TaskStatus.SUCCESS),
        tasks_failed=sum(1 for task in tasks if task.status is TaskStatus.ERROR),
    )
