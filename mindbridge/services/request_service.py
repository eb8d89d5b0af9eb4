"""Support Request Service - The connection-request lifecycle.

States: pending -> accepted | rejected | cancelled, accepted -> completed.

Who may move a request:
- accept / reject: the receiver, while the request is pending
- cancel: the sender, while the request is pending
- complete: either participant, by deleting the chat (see ChatService)

At most one active (pending or accepted) request may exist per unordered pair
of users. The service checks before inserting, and the database's partial
unique index (see schema.sql) rejects the insert if two writers race past
that check.

Interface Contract:
- list_requests(user_id, direction, status) -> list[dict]
- create(sender_id, receiver_id, message, is_anonymous) -> dict
- respond(user_id, request_id, status) -> dict
- cancel(user_id, request_id) -> dict
- All methods raise SupportRequestError with an HTTP status on rejection
"""

from __future__ import annotations

import logging
import re
from typing import Any

from mindbridge.models import RequestStatus, SupportRequest, can_transition
from mindbridge.models.support_request import ACTIVE_STATUSES
from mindbridge.services.errors import ServiceError
from mindbridge.services.supabase_store import (
    RLS_VIOLATION_CODE,
    DuplicateActiveRequestError,
    StoreError,
    StoreNotFoundError,
)
from mindbridge.transformers import format_support_request, format_support_requests

logger = logging.getLogger(__name__)

PENDING_EXISTS_MESSAGE = "There is already a pending request between you and this user"
ALREADY_CONNECTED_MESSAGE = "You are already connected with this user"

RESPONSE_STATUSES = (RequestStatus.ACCEPTED, RequestStatus.REJECTED)
DIRECTIONS = ("all", "sent", "received")
ACTIVE_STATUS_VALUES = tuple(sorted(s.value for s in ACTIVE_STATUSES))

# Supabase ids are UUIDs; anything outside this alphabet could alter a PostgREST filter
ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


class SupportRequestError(ServiceError):
    """Raised when a support request operation is rejected."""


class SupportRequestService:
    """Service for creating and moving support requests."""

    def __init__(self, store):
        self.store = store

    def list_requests(self, user_id: str, *, direction: str = "all", status: str | None = None) -> list[dict[str, Any]]:
        if direction not in DIRECTIONS:
            direction = "all"
        if status:
            self._parse_status(status)
        rows = self.store.list_support_requests(user_id, direction=direction, status=status)
        return format_support_requests(rows, user_id)

    def create(
        self,
        sender_id: str,
        receiver_id: str | None,
        message: str | None,
        *,
        is_anonymous: bool = False,
    ) -> dict[str, Any]:
        if not receiver_id or not message:
            raise SupportRequestError("Receiver ID and message are required")
        if not is_valid_id(receiver_id):
            raise SupportRequestError("Invalid receiver ID")
        if receiver_id == sender_id:
            raise SupportRequestError("You cannot send a support request to yourself")
        if self.store.get_profile(receiver_id) is None:
            raise SupportRequestError("Receiver not found")

        self._ensure_no_active_request(sender_id, receiver_id)

        logger.info("Creating support request %s -> %s", sender_id, receiver_id)
        try:
            row = self.store.insert_support_request({
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "message": message,
                "status": RequestStatus.PENDING.value,
                "is_anonymous": bool(is_anonymous),
            })
        except DuplicateActiveRequestError as e:
            # Lost the race against a concurrent request for the same pair
            raise SupportRequestError(PENDING_EXISTS_MESSAGE) from e
        except StoreError as e:
            if e.code == RLS_VIOLATION_CODE:
                raise SupportRequestError(
                    "Authentication error: Row-level security policy violation. "
                    "Please try again or log out and log back in.",
                    status=403,
                ) from e
            raise

        full = self.store.get_support_request(row["id"]) or row
        return format_support_request(full, sender_id)

    def respond(self, user_id: str, request_id: str | None, status: str | None) -> dict[str, Any]:
        """Accept or reject a pending request addressed to `user_id`."""
        if not request_id or not status:
            raise SupportRequestError("Request ID and status are required")
        target = self._parse_status(status)
        if target not in RESPONSE_STATUSES:
            raise SupportRequestError("Status must be 'accepted' or 'rejected'")

        request = self._load(request_id)
        if request.receiver_id != user_id:
            raise SupportRequestError("You can only update requests sent to you", status=403)
        self._ensure_transition(request, target)

        return self._move(request, target)

    def cancel(self, user_id: str, request_id: str | None) -> dict[str, Any]:
        """Cancel a pending request sent by `user_id`."""
        if not request_id:
            raise SupportRequestError("Request ID is required")

        request = self._load(request_id)
        if request.sender_id != user_id:
            raise SupportRequestError("You can only cancel requests you sent", status=403)
        if request.status != RequestStatus.PENDING:
            raise SupportRequestError("Only pending requests can be cancelled")

        return self._move(request, RequestStatus.CANCELLED)

    def has_accepted_request(self, a: str, b: str) -> bool:
        return bool(self.store.find_requests_between(a, b, (RequestStatus.ACCEPTED.value,)))

    def complete_accepted(self, a: str, b: str) -> int:
        """Move accepted requests between a pair to completed."""
        accepted = self.store.find_requests_between(a, b, (RequestStatus.ACCEPTED.value,))
        completed = 0
        for row in accepted:
            try:
                self.store.update_support_request(
                    row["id"],
                    {"status": RequestStatus.COMPLETED.value},
                    expected_status=RequestStatus.ACCEPTED.value,
                )
            except StoreNotFoundError:
                logger.info("Request %s changed before it could be completed", row["id"])
                continue
            completed += 1
        return completed

    def _ensure_no_active_request(self, a: str, b: str) -> None:
        active = self.store.find_requests_between(a, b, ACTIVE_STATUS_VALUES)
        if not active:
            return
        statuses = {row.get("status") for row in active}
        if RequestStatus.ACCEPTED.value in statuses:
            raise SupportRequestError(ALREADY_CONNECTED_MESSAGE)
        raise SupportRequestError(PENDING_EXISTS_MESSAGE)

    def _move(self, request: SupportRequest, target: RequestStatus) -> dict[str, Any]:
        """Write `target` only if the row still has the status `request` was loaded with."""
        try:
            return self.store.update_support_request(
                request.id,
                {"status": target.value},
                expected_status=request.status.value,
            )
        except StoreNotFoundError:
            raise SupportRequestError(f"Request is no longer {request.status.value}") from None

    def _load(self, request_id: str) -> SupportRequest:
        row = self.store.get_support_request(request_id)
        if row is None:
            raise SupportRequestError("Support request not found", status=404)
        return SupportRequest.from_dict(row)

    @staticmethod
    def _parse_status(status: str) -> RequestStatus:
        try:
            return RequestStatus(status)
        except ValueError:
            raise SupportRequestError(f"Unknown status: {status}") from None

    @staticmethod
    def _ensure_transition(request: SupportRequest, target: RequestStatus) -> None:
        if not can_transition(request.status, target):
            raise SupportRequestError(
                f"Cannot change a {request.status.value} request to {target.value}"
            )
