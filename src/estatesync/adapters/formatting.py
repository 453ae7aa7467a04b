"""Shared output formatting helpers.

Keeping formatting here prevents drift between CLI views and keeps entity,
match and task rendering consistent regardless of output mode.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from estatesync.core.models import ExtractionTask, Platform, PropertyEntity
from estatesync.core.queries import DashboardStats, ResolvedMatch

DIVIDER = "──────────────"


def contact_link(entity: PropertyEntity) -> str:
    """Return a deep link to reach the poster on the entity's platform."""

    if entity.platform is Platform.TELEGRAM:
        username = entity.username or entity.contact.replace("@", "").strip()
        if "t.me" in username:
            return username
        return f"https://t.me/{username}"

    phone = re.sub(r"\D", "", entity.contact)
    text = quote(
        f"Hi, I'm interested in your property: {entity.community} "
        f"({entity.property_type}). Is it still available?"
    )
    return f"https://wa.me/{phone}?text={text}"


def format_price(price: float) -> str:
    if not price:
        return "TBA"
    if price >= 1_000_000:
        return f"{price / 1_000_000:.2f}M".replace(".00M", "M")
    return f"{price:,.0f}"


def format_entity(entity: PropertyEntity) -> str:
    """One-line summary of a unit or requirement."""

    size = f" {entity.size}" if entity.size else ""
    return (
        f"{entity.property_type or '?'}{size} in {entity.community or '?'}"
        f" | {format_price(entity.price)}"
        f" | {entity.contact or '-'}"
        f" | {entity.group_name} ({entity.platform.value.lower()})"
    )


def format_task(task: ExtractionTask) -> str:
    line = f"{task.id}  #{task.chunk_index:<3} {task.status.value:<10} {task.progress:>3}%  {task.group_name}"
    if task.error:
        line += f"  ! {task.error}"
    return line


def _format_text(resolved: ResolvedMatch) -> str:
    match = resolved.match
    lines = [
        f"Score: {match.score:g}/10",
        f"Unit:        {format_entity(resolved.unit)}",
        f"Requirement: {format_entity(resolved.requirement)}",
        f"Why: {match.reasoning}",
        f"Contact unit: {contact_link(resolved.unit)}",
        DIVIDER,
    ]
    return "\n".join(lines)


def _format_markdown(resolved: ResolvedMatch) -> str:
    def escape_md(value: str) -> str:
        for ch in r"*[`_":
            value = value.replace(ch, f"\\{ch}")
        return value

    match = resolved.match
    lines = [
        f"**Score:** {match.score:g}/10",
        f"**Unit:** {escape_md(format_entity(resolved.unit))}",
        f"**Requirement:** {escape_md(format_entity(resolved.requirement))}",
        "",
        "**Why:**",
        escape_md(match.reasoning),
        "",
        f"**Contact unit:** {contact_link(resolved.unit)}",
        DIVIDER,
    ]
    return "\n".join(lines)


def format_match(resolved: ResolvedMatch, mode: str = "text") -> str:
    """Return the match formatted for the requested mode."""

    if mode == "text":
        return _format_text(resolved)
    if mode == "markdown":
        return _format_markdown(resolved)
    raise ValueError(f"Unsupported match format: {mode}")


def format_stats(stats: DashboardStats) -> str:
    return "\n".join(
        [
            f"Available units:         {stats.units}",
            f"Client requirements:     {stats.requirements}",
            f"Matches:                 {stats.matches}",
            f"High potential matches:  {stats.high_potential_matches}",
            f"Tasks:                   {stats.tasks_done}/{stats.tasks_total} done"
            f" ({stats.completion_percent}%), {stats.tasks_failed} failed",
        ]
    )
