"""Data models - Pure data structures with no business logic."""

from .profile import Profile, app_profile_to_row
from .peer import ChatMessage, ChatPeer, PeerMatch
from .support_request import RequestStatus, SupportRequest, can_transition
from .mindfulness import EntryType, MindfulnessEntry, MindfulnessStreak

__all__ = [
    "Profile",
    "app_profile_to_row",
    "PeerMatch",
    "ChatPeer",
    "ChatMessage",
    "RequestStatus",
    "SupportRequest",
    "can_transition",
    "EntryType",
    "MindfulnessEntry",
    "MindfulnessStreak",
]
