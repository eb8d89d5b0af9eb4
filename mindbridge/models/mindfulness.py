"""Mindfulness data models.

Pure data structures with no business logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any


class EntryType(Enum):
    """Kinds of mindfulness entries."""
    JOURNAL = "journal"
    GRATITUDE = "gratitude"
    STRENGTH = "strength"


# Fields a client may set on create/update
WRITABLE_FIELDS = ("type", "content", "mood", "category", "is_private", "tags")


@dataclass
class MindfulnessEntry:
    """A journal, gratitude or strength entry owned by one user."""
    id: str
    user_id: str
    type: EntryType
    content: str
    mood: str | None = None
    category: str | None = None
    is_private: bool = True
    tags: list[str] = dataclass_field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type.value,
            "content": self.content,
            "mood": self.mood,
            "category": self.category,
            "is_private": self.is_private,
            "tags": self.tags,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MindfulnessEntry":
        is_private = data.get("is_private")
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("user_id", "")),
            type=EntryType(data.get("type")),
            content=data.get("content") or "",
            mood=data.get("mood"),
            category=data.get("category"),
            is_private=True if is_private is None else bool(is_private),
            tags=list(data.get("tags") or []),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class MindfulnessStreak:
    """Per-user count of consecutive days with mindfulness activity."""
    user_id: str
    mindfulness: int = 0
    last_mindfulness_date: str | None = None
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "mindfulness": self.mindfulness,
            "last_mindfulness_date": self.last_mindfulness_date,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MindfulnessStreak":
        return cls(
            user_id=str(data.get("user_id", "")),
            mindfulness=int(data.get("mindfulness") or 0),
            last_mindfulness_date=data.get("last_mindfulness_date"),
            last_updated=data.get("last_updated"),
        )
