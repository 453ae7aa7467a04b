"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. Records serialize to the camelCase
JSON layout used by persisted snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Platform(str, Enum):
    WHATSAPP = "WHATSAPP"
    TELEGRAM = "TELEGRAM"


class EntityType(str, Enum):
    UNIT = "UNIT"
    REQUIREMENT = "REQUIREMENT"


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ChatFile:
    """An uploaded chat export. Tasks reference it by id."""

    id: str
    display_name: str
    group_name: str
    platform: Platform
    raw_content: str
    task_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "groupName": self.group_name,
            "platform": self.platform.value,
            "rawContent": self.raw_content,
            "taskCount": self.task_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatFile":
        return cls(
            id=data["id"],
            display_name=data.get("displayName") or data.get("name", ""),
            group_name=data.get("groupName", ""),
            platform=Platform(data.get("platform", Platform.WHATSAPP.value)),
            raw_content=data.get("rawContent", ""),
            task_count=int(data.get("taskCount", data.get("tasksCount", 0))),
        )


@dataclass(frozen=True)
class ExtractionTask:
    """Execution record for one chunk of one chat file.

    Instances are immutable; state changes produce a new record through
    ``core.task_state.transition``.
    """

    id: str
    file_id: str
    chunk_index: int
    status: TaskStatus
    progress: int
    content: str
    group_name: str
    platform: Platform
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "fileId": self.file_id,
            "chunkIndex": self.chunk_index,
            "status": self.status.value,
            "progress": self.progress,
            "content": self.content,
            "groupName": self.group_name,
            "platform": self.platform.value,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExtractionTask":
        return cls(
            id=data["id"],
            file_id=data["fileId"],
            chunk_index=int(data.get("chunkIndex", 0)),
            status=TaskStatus(data.get("status", TaskStatus.PENDING.value)),
            progress=int(data.get("progress", 0)),
            content=data.get("content", ""),
            group_name=data.get("groupName", ""),
            platform=Platform(data.get("platform", Platform.WHATSAPP.value)),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class PropertyEntity:
    """A unit (listing) or requirement (client need) extracted from chat text."""

    id: str
    type: EntityType
    property_type: str
    community: str
    price: float
    size: str
    contact: str
    raw_text: str
    group_name: str
    timestamp: str
    platform: Platform
    username: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "propertyType": self.property_type,
            "community": self.community,
            "price": self.price,
            "size": self.size,
            "contact": self.contact,
            "rawText": self.raw_text,
            "groupName": self.group_name,
            "timestamp": self.timestamp,
            "platform": self.platform.value,
        }
        if self.username:
            data["username"] = self.username
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PropertyEntity":
        return cls(
            id=data["id"],
            type=EntityType(data["type"]),
            property_type=data.get("propertyType", ""),
            community=data.get("community", ""),
            price=data.get("price", 0) or 0,
            size=data.get("size", ""),
            contact=data.get("contact", ""),
            raw_text=data.get("rawText", ""),
            group_name=data.get("groupName", ""),
            timestamp=data.get("timestamp", "") or "",
            platform=Platform(data.get("platform", Platform.WHATSAPP.value)),
            username=data.get("username"),
        )


@dataclass(frozen=True)
class Match:
    """A scored pairing between one unit and one requirement."""

    unit_id: str
    requirement_id: str
    score: float
    reasoning: str

    @property
    def pair(self) -> tuple[str, str]:
        return self.unit_id, self.requirement_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "unitId": self.unit_id,
            "requirementId": self.requirement_id,
            "score": self.score,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Match":
        return cls(
            unit_id=data["unitId"],
            requirement_id=data["requirementId"],
            score=data.get("score", 0),
            reasoning=data.get("reasoning", ""),
        )
