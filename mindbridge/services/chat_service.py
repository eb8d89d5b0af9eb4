"""Chat Service - Peer-to-peer messages between connected users.

Messages may only be sent once an accepted support request exists between the
two users. Deleting a thread removes every message between the pair and
completes their accepted request.
"""

from __future__ import annotations

import logging
from typing import Any

from mindbridge.services.errors import ServiceError
from mindbridge.services.request_service import SupportRequestService, is_valid_id
from mindbridge.transformers import format_chat_message, format_chat_messages, profile_to_chat_peer

logger = logging.getLogger(__name__)


class ChatServiceError(ServiceError):
    """Raised when a chat operation is rejected."""


class ChatService:
    """Service for peer chat threads."""

    def __init__(self, store, requests: SupportRequestService | None = None):
        self.store = store
        self.requests = requests or SupportRequestService(store)

    def get_thread(self, user_id: str, peer_id: str | None) -> dict[str, Any]:
        """Messages with a peer, oldest first, plus the peer's card.

        Unread messages addressed to `user_id` are marked read.
        """
        if not peer_id:
            raise ChatServiceError("Peer ID is required")
        if not is_valid_id(peer_id):
            raise ChatServiceError("Invalid peer ID")

        rows = self.store.list_chat_messages(user_id, peer_id)
        logger.info("Found %d messages between %s and %s", len(rows), user_id, peer_id)

        peer_row = self.store.get_profile(peer_id)
        if peer_row is None:
            logger.info("Peer profile %s not found", peer_id)

        unread = [
            row["id"] for row in rows
            if row.get("receiver_id") == user_id and not row.get("is_read")
        ]
        if unread:
            self.store.mark_messages_read(unread)

        peer = profile_to_chat_peer(peer_row)
        return {
            "messages": [m.to_dict() for m in format_chat_messages(rows, user_id, peer_row)],
            "peer": peer.to_dict() if peer else None,
        }

    def send(
        self,
        user_id: str,
        receiver_id: str | None,
        message: str | None,
        *,
        is_anonymous: bool = False,
    ) -> dict[str, Any]:
        if not receiver_id or not message:
            raise ChatServiceError("Receiver ID and message are required")
        if not is_valid_id(receiver_id):
            raise ChatServiceError("Invalid receiver ID")
        if not self.requests.has_accepted_request(user_id, receiver_id):
            raise ChatServiceError(
                "You can only message peers who have accepted a support request with you",
                status=403,
            )

        row = self.store.insert_chat_message({
            "sender_id": user_id,
            "receiver_id": receiver_id,
            "message": message,
            "is_anonymous": bool(is_anonymous),
            "is_read": False,
        })
        return format_chat_message(row, user_id, None).to_dict()

    def delete_thread(self, user_id: str, peer_id: str | None) -> dict[str, int]:
        if not peer_id:
            raise ChatServiceError("Peer ID is required")
        if not is_valid_id(peer_id):
            raise ChatServiceError("Invalid peer ID")

        deleted = self.store.delete_chat_messages(user_id, peer_id)
        if not deleted:
            logger.warning("No chat messages found to delete between %s and %s", user_id, peer_id)

        completed = self.requests.complete_accepted(user_id, peer_id)
        return {"deleted": len(deleted), "completed": completed}
