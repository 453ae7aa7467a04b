"""Chat export parsing adapter.

Turns WhatsApp ``.txt`` and Telegram ``.json`` exports into plain text plus the
group name and platform the core needs, keeping export-format details out of
the pipeline.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

from estatesync.core.errors import ChatExportError
from estatesync.core.models import Platform

WHATSAPP_PREFIX = re.compile(r"^whatsapp chat\s*(?:with|-)\s*", re.IGNORECASE)


@dataclass(frozen=True)
class ChatExport:
    """Normalized content of one uploaded export."""

    display_name: str
    group_name: str
    platform: Platform
    text: str


def whatsapp_group_name(filename: str) -> str:
    """Derive a group name from a WhatsApp export file name."""

    stem = Path(filename).stem
    name = WHATSAPP_PREFIX.sub("", stem).strip()
    return name or stem


def _flatten_telegram_text(text: Any) -> str:
    # Telegram stores formatted messages as a list of strings and entity dicts.
    if isinstance(text, str):
        return text
    if isinstance(text, list):
        parts = []
        for part in text:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict):
                parts.append(str(part.get("text", "")))
        return "".join(parts)
    return ""


def linearize_telegram(messages: list[Any]) -> str:
    """Render message entries as ``[date] from: text`` lines.

    Only entries of type "message" with non-empty text are kept.
    """

    lines = []
    for message in messages:
        if not isinstance(message, dict) or message.get("type") != "message":
            continue
        text = _flatten_telegram_text(message.get("text"))
        if not text.strip():
            continue
        sender = message.get("from") or "Unknown"
        lines.append(f"[{message.get('date', '')}] {sender}: {text}")
    return "\n".join(lines)


def parse_telegram_export(filename: str, raw: str) -> ChatExport:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ChatExportError(f"{filename}: invalid Telegram JSON ({exc.msg})") from exc

    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise ChatExportError(f"{filename}: Telegram export must contain a 'messages' array")

    group_name = str(data.get("name") or Path(filename).stem)
    return ChatExport(
        display_name=Path(filename).name,
        group_name=group_name,
        platform=Platform.TELEGRAM,
        text=linearize_telegram(data["messages"]),
    )


def parse_whatsapp_export(filename: str, raw: str) -> ChatExport:
    return ChatExport(
        display_name=Path(filename).name,
        group_name=whatsapp_group_name(filename),
        platform=Platform.WHATSAPP,
        text=raw,
    )


def parse_export(filename: str, raw: Union[str, bytes]) -> ChatExport:
    """Parse an export based on its file extension."""

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ChatExportError(f"{filename}: file is not valid UTF-8") from exc

    suffix = Path(filename).suffix.lower()
    if suffix == ".json":
        return parse_telegram_export(filename, raw)
    if suffix == ".txt":
        return parse_whatsapp_export(filename, raw)
    raise ChatExportError(f"{filename}: unsupported export format '{suffix}'")


def read_export(path: Path) -> ChatExport:
    """Read and parse an export file from disk."""

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ChatExportError(f"{path}: {exc.strerror or exc}") from exc
    return parse_export(path.name, raw)
