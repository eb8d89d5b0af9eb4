"""Support request data models."""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any


class RequestStatus(Enum):
    """Lifecycle states of a support request."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


ACTIVE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.ACCEPTED})
TERMINAL_STATUSES = frozenset({
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
    RequestStatus.COMPLETED,
})

# Which transitions exist at all; who may trigger them is checked by the service
ALLOWED_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.ACCEPTED,
        RequestStatus.REJECTED,
        RequestStatus.CANCELLED,
    }),
    RequestStatus.ACCEPTED: frozenset({RequestStatus.COMPLETED}),
    RequestStatus.REJECTED: frozenset(),
    RequestStatus.CANCELLED: frozenset(),
    RequestStatus.COMPLETED: frozenset(),
}


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


@dataclass
class PartyInfo:
    """Profile snippet embedded in a support request."""
    name: str | None = None
    avatar_url: str | None = None
    support_preferences: list[str] = dataclass_field(default_factory=list)
    location: str | None = None
    journey_note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "avatar_url": self.avatar_url,
            "support_preferences": self.support_preferences,
            "location": self.location,
            "journey_note": self.journey_note,
        }


@dataclass
class SupportRequest:
    """A connection invitation from sender to receiver."""
    id: str
    sender_id: str
    receiver_id: str
    message: str = ""
    status: RequestStatus = RequestStatus.PENDING
    is_anonymous: bool = False
    created_at: str | None = None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "message": self.message,
            "status": self.status.value,
            "is_anonymous": self.is_anonymous,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SupportRequest":
        return cls(
            id=str(data.get("id", "")),
            sender_id=str(data.get("sender_id", "")),
            receiver_id=str(data.get("receiver_id", "")),
            message=data.get("message") or "",
            status=RequestStatus(data.get("status") or "pending"),
            is_anonymous=bool(data.get("is_anonymous")),
            created_at=data.get("created_at"),
        )
