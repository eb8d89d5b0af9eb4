"""Peer view models.

Pure data structures returned to the UI. Field names on the wire are
camelCase, so each model serializes through `to_dict`.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any

DEFAULT_NAME = "Anonymous User"
DEFAULT_AVATAR = "👤"
DEFAULT_LOCATION = "Unknown"
DEFAULT_RATING = 4.5
DEFAULT_PEER_NAME = "Peer"


@dataclass
class PeerMatch:
    """A candidate peer with its computed match score."""
    id: str
    name: str = DEFAULT_NAME
    avatar: str = DEFAULT_AVATAR
    match_score: int = 0
    support_preferences: list[str] = dataclass_field(default_factory=list)
    support_type: str = ""
    location: str = DEFAULT_LOCATION
    is_active: bool = False
    rating: float = DEFAULT_RATING
    total_ratings: int = 0
    certified_mentor: bool = False
    people_supported: int = 0
    journey_note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "matchScore": self.match_score,
            "supportPreferences": self.support_preferences,
            "supportType": self.support_type,
            "location": self.location,
            "isActive": self.is_active,
            "rating": self.rating,
            "totalRatings": self.total_ratings,
            "certifiedMentor": self.certified_mentor,
            "peopleSupported": self.people_supported,
        }
        if self.journey_note:
            data["journeyNote"] = self.journey_note
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PeerMatch":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or DEFAULT_NAME,
            avatar=data.get("avatar") or DEFAULT_AVATAR,
            match_score=int(data.get("matchScore") or 0),
            support_preferences=list(data.get("supportPreferences") or []),
            support_type=data.get("supportType") or "",
            location=data.get("location") or DEFAULT_LOCATION,
            is_active=bool(data.get("isActive")),
            rating=float(data.get("rating") or DEFAULT_RATING),
            total_ratings=int(data.get("totalRatings") or 0),
            certified_mentor=bool(data.get("certifiedMentor")),
            people_supported=int(data.get("peopleSupported") or 0),
            journey_note=data.get("journeyNote"),
        )


@dataclass
class ChatPeer:
    """Header card shown above a chat thread."""
    id: str
    name: str = DEFAULT_NAME
    avatar: str = DEFAULT_AVATAR
    support_type: str = "support-giver"
    experience_areas: list[str] = dataclass_field(default_factory=list)
    location: str = DEFAULT_LOCATION
    is_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "supportType": self.support_type,
            "experienceAreas": self.experience_areas,
            "location": self.location,
            "isActive": self.is_active,
        }


@dataclass
class ChatMessage:
    """A chat message as seen by one participant."""
    id: str
    sender: str
    message: str
    timestamp: str | None = None
    is_anonymous: bool = False
    is_read: bool = False
    sender_id: str | None = None
    receiver_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sender": self.sender,
            "message": self.message,
            "timestamp": self.timestamp,
            "isAnonymous": self.is_anonymous,
            "isRead": self.is_read,
            "senderId": self.sender_id,
            "receiverId": self.receiver_id,
        }
