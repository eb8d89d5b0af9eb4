"""Mindfulness Service - Journal, gratitude and strength entries, plus streaks.

This module handles:
- CRUD on the caller's entries (always scoped to the caller's user id)
- The daily mindfulness streak
- Bulk import of entries a client kept offline before signing in

Interface Contract:
- list_entries / get_entry / create_entry / update_entry / delete_entry
- record_activity(user_id, activity_type, today) -> dict
- import_entries(user_id, payload) -> dict
- All methods raise MindfulnessServiceError with an HTTP status on rejection
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any

from mindbridge.models import EntryType, MindfulnessEntry, MindfulnessStreak
from mindbridge.models.mindfulness import WRITABLE_FIELDS
from mindbridge.services.errors import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_JOURNAL_MOOD = "😊"
DEFAULT_GRATITUDE_CATEGORY = "general"


class MindfulnessServiceError(ServiceError):
    """Raised when a mindfulness operation is rejected."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_type(value: Any) -> EntryType:
    try:
        return EntryType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in EntryType)
        raise MindfulnessServiceError(f"Entry type must be one of: {allowed}") from None


class MindfulnessService:
    """Service for mindfulness entries and streaks."""

    def __init__(self, store):
        self.store = store

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self, user_id: str, entry_type: str | None = None) -> list[dict[str, Any]]:
        if entry_type:
            entry_type = _parse_type(entry_type).value
        return self.store.list_entries(user_id, entry_type)

    def get_entry(self, user_id: str, entry_id: str) -> dict[str, Any]:
        row = self.store.get_entry(entry_id, user_id)
        if row is None:
            raise MindfulnessServiceError("Entry not found", status=404)
        return row

    def create_entry(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        entry = self._new_entry(user_id, data)
        return self.store.insert_entries([entry.to_dict()])[0]

    def update_entry(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        entry_id = data.get("id")
        if not entry_id:
            raise MindfulnessServiceError("Entry ID is required")

        changes = {key: data[key] for key in WRITABLE_FIELDS if key in data}
        if "type" in changes:
            changes["type"] = _parse_type(changes["type"]).value
        if "content" in changes and not str(changes["content"] or "").strip():
            raise MindfulnessServiceError("Content cannot be empty")
        changes["updated_at"] = _now_iso()

        row = self.store.update_entry(entry_id, user_id, changes)
        if row is None:
            raise MindfulnessServiceError("Entry not found", status=404)
        return row

    def delete_entry(self, user_id: str, entry_id: str | None) -> None:
        if not entry_id:
            raise MindfulnessServiceError("Entry ID is required")
        if not self.store.delete_entry(entry_id, user_id):
            raise MindfulnessServiceError("Entry not found", status=404)

    def import_entries(self, user_id: str, payload: dict[str, Any]) -> dict[str, int]:
        """Import entries a client held offline, grouped by kind."""
        defaults = {
            EntryType.JOURNAL: {"mood": DEFAULT_JOURNAL_MOOD},
            EntryType.GRATITUDE: {"category": DEFAULT_GRATITUDE_CATEGORY},
            EntryType.STRENGTH: {},
        }
        rows = []
        counts = {}
        for entry_type, fallback in defaults.items():
            items = payload.get(entry_type.value) or []
            if not isinstance(items, list):
                raise MindfulnessServiceError(f"'{entry_type.value}' must be a list")
            imported = 0
            for item in items:
                if not isinstance(item, dict) or not str(item.get("content") or "").strip():
                    continue
                data = {**fallback, **{k: v for k, v in item.items() if v is not None}}
                data["type"] = entry_type.value
                data.setdefault("is_private", True)
                rows.append(self._new_entry(user_id, data).to_dict())
                imported += 1
            counts[entry_type.value] = imported

        self.store.insert_entries(rows)
        logger.info("Imported %d mindfulness entries for %s", len(rows), user_id)
        return counts

    @staticmethod
    def _new_entry(user_id: str, data: dict[str, Any]) -> MindfulnessEntry:
        if not isinstance(data, dict):
            raise MindfulnessServiceError("Entry payload must be an object")
        content = str(data.get("content") or "").strip()
        if not content:
            raise MindfulnessServiceError("Content is required")
        now = _now_iso()
        is_private = data.get("is_private")
        return MindfulnessEntry(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=_parse_type(data.get("type")),
            content=content,
            mood=data.get("mood"),
            category=data.get("category"),
            is_private=True if is_private is None else bool(is_private),
            tags=list(data.get("tags") or []),
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Streaks
    # ------------------------------------------------------------------

    def record_activity(
        self,
        user_id: str,
        activity_type: str | None,
        today: date | None = None,
    ) -> dict[str, Any]:
        """Count today's activity towards the streak.

        Repeated calls on the same day leave the counter unchanged. A call the
        day after the last activity extends the streak; a longer gap restarts
        it at 1.
        """
        if not activity_type:
            raise MindfulnessServiceError("Activity type is required")

        today = today or datetime.now(timezone.utc).date()
        today_str = today.isoformat()
        existing = self.store.get_streak(user_id)

        if existing is None:
            streak = MindfulnessStreak(
                user_id=user_id,
                mindfulness=1,
                last_mindfulness_date=today_str,
                last_updated=_now_iso(),
            )
            row = self.store.insert_streak(streak.to_dict())
            return {"message": "Streak created", "data": row, "streakIncremented": True}

        streak = MindfulnessStreak.from_dict(existing)
        incremented = streak.last_mindfulness_date != today_str
        if incremented:
            yesterday = (today - timedelta(days=1)).isoformat()
            if streak.last_mindfulness_date == yesterday:
                streak.mindfulness += 1
            else:
                streak.mindfulness = 1
            streak.last_mindfulness_date = today_str
        streak.last_updated = _now_iso()

        row = self.store.update_streak(user_id, {
            "mindfulness": streak.mindfulness,
            "last_mindfulness_date": streak.last_mindfulness_date,
            "last_updated": streak.last_updated,
        })
        return {"message": "Streak updated", "data": row, "streakIncremented": incremented}
