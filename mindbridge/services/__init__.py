"""Service layer - Business logic modules.

Each service takes its store (and, for the companion, its LLM service) as a
constructor argument so it can be tested with in-memory fakes.
"""

from .errors import ServiceError
from .supabase_store import SupabaseStore, StoreError
from .llm_service import LLMService
from .companion_service import CompanionService
from .profile_service import ProfileService
from .peer_service import PeerQuery, PeerService
from .request_service import SupportRequestService
from .chat_service import ChatService
from .mindfulness_service import MindfulnessService

__all__ = [
    "ServiceError",
    "SupabaseStore",
    "StoreError",
    "LLMService",
    "CompanionService",
    "ProfileService",
    "PeerQuery",
    "PeerService",
    "SupportRequestService",
    "ChatService",
    "MindfulnessService",
]
