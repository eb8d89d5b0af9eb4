"""Row -> view model transformers.

Pure functions over raw store rows. A missing field always becomes a default
value; nothing here raises on a short row.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from config import ACTIVE_WINDOW_SECONDS
from mindbridge.matching import calculate_match_score
from mindbridge.models import ChatMessage, ChatPeer, PeerMatch, Profile
from mindbridge.models.peer import (
    DEFAULT_AVATAR,
    DEFAULT_LOCATION,
    DEFAULT_NAME,
    DEFAULT_PEER_NAME,
    DEFAULT_RATING,
)
from mindbridge.models.support_request import PartyInfo


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_recently_active(last_active_at: Any, now: datetime | None = None) -> bool:
    seen = _parse_timestamp(last_active_at)
    if seen is None:
        return False
    now = now or datetime.now(timezone.utc)
    return (now - seen).total_seconds() < ACTIVE_WINDOW_SECONDS


def profile_to_peer(
    row: dict[str, Any],
    viewer_row: dict[str, Any] | None,
    now: datetime | None = None,
) -> PeerMatch:
    profile = Profile.from_dict(row)
    viewer = Profile.from_dict(viewer_row) if viewer_row else None
    return PeerMatch(
        id=profile.id,
        name=profile.name or DEFAULT_NAME,
        avatar=profile.avatar_url or DEFAULT_AVATAR,
        match_score=calculate_match_score(viewer, profile),
        support_preferences=profile.support_preferences,
        support_type=profile.support_type or "",
        location=profile.location or DEFAULT_LOCATION,
        is_active=is_recently_active(profile.last_active_at, now),
        rating=profile.rating if profile.rating is not None else DEFAULT_RATING,
        total_ratings=profile.total_ratings,
        certified_mentor=profile.certified_mentor,
        people_supported=profile.people_supported,
        journey_note=profile.journey_note or None,
    )


def profiles_to_matches(
    rows: list[dict[str, Any]],
    viewer_row: dict[str, Any] | None,
    now: datetime | None = None,
) -> list[PeerMatch]:
    """Transform rows to peers, best match first."""
    peers = [profile_to_peer(row, viewer_row, now) for row in rows or []]
    return sorted(peers, key=lambda p: -p.match_score)


def profile_to_chat_peer(row: dict[str, Any] | None, now: datetime | None = None) -> ChatPeer | None:
    if not row:
        return None
    profile = Profile.from_dict(row)
    return ChatPeer(
        id=profile.id,
        name=profile.name or DEFAULT_NAME,
        avatar=profile.avatar_url or DEFAULT_AVATAR,
        support_type=profile.support_type or "support-giver",
        experience_areas=profile.support_preferences,
        location=profile.location or DEFAULT_LOCATION,
        is_active=is_recently_active(profile.last_active_at, now),
    )


def chat_sender_label(row: dict[str, Any], user_id: str, peer_row: dict[str, Any] | None) -> str:
    """'you', 'system', or the peer's display name."""
    sender_id = row.get("sender_id")
    if not sender_id:
        return "system"
    if sender_id == user_id:
        return "you"
    return (peer_row or {}).get("name") or DEFAULT_PEER_NAME


def format_chat_message(row: dict[str, Any], user_id: str, peer_row: dict[str, Any] | None) -> ChatMessage:
    return ChatMessage(
        id=str(row.get("id", "")),
        sender=chat_sender_label(row, user_id, peer_row),
        message=row.get("message") or "",
        timestamp=row.get("created_at"),
        is_anonymous=bool(row.get("is_anonymous")),
        is_read=bool(row.get("is_read")),
        sender_id=row.get("sender_id"),
        receiver_id=row.get("receiver_id"),
    )


def format_chat_messages(
    rows: list[dict[str, Any]] | None,
    user_id: str,
    peer_row: dict[str, Any] | None,
) -> list[ChatMessage]:
    return [format_chat_message(row, user_id, peer_row) for row in rows or []]


def _party(row: dict[str, Any], embedded_key: str, prefix: str) -> PartyInfo:
    # Embedded joins arrive as nested objects, views as prefixed columns
    embedded = row.get(embedded_key)
    if isinstance(embedded, dict):
        source = embedded
    else:
        source = {
            key: row.get(f"{prefix}_{key}")
            for key in ("name", "avatar_url", "support_preferences", "location", "journey_note")
        }
    prefs = source.get("support_preferences")
    return PartyInfo(
        name=source.get("name"),
        avatar_url=source.get("avatar_url"),
        support_preferences=list(prefs) if isinstance(prefs, list) else [],
        location=source.get("location"),
        journey_note=source.get("journey_note"),
    )


def format_support_request(row: dict[str, Any], user_id: str | None) -> dict[str, Any]:
    sender = _party(row, "sender", "sender")
    receiver = _party(row, "receiver", "receiver")
    return {
        "id": row.get("id"),
        "created_at": row.get("created_at"),
        "sender_id": row.get("sender_id"),
        "receiver_id": row.get("receiver_id"),
        "message": row.get("message") or "",
        "status": row.get("status") or "pending",
        "is_anonymous": bool(row.get("is_anonymous")),
        "sender": sender.to_dict(),
        "isSender": row.get("sender_id") == user_id,
        "receiver_name": receiver.name,
    }


def format_support_requests(rows: list[dict[str, Any]] | None, user_id: str | None) -> list[dict[str, Any]]:
    return [format_support_request(row, user_id) for row in rows or []]
