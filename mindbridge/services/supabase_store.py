"""Supabase Store - The only module that talks to the hosted database.

This module wraps two Supabase HTTP APIs:
- PostgREST (`/rest/v1`) for table reads and writes
- GoTrue (`/auth/v1`) for sign-up, sign-in and token validation

Every data call carries the caller's access token, so the project's
row-level-security policies decide what each user can see and change.

Interface Contract:
- Reads return plain dict rows (or None when a single row is missing)
- All methods raise StoreError (or a subclass) on failure
- Callers never build PostgREST filter strings themselves
"""

from __future__ import annotations

import logging
import re
from typing import Any

import requests

from config import SUPABASE_ANON_KEY, SUPABASE_TIMEOUT, SUPABASE_URL

logger = logging.getLogger(__name__)

# PostgREST code for "single row requested, zero rows returned"
NO_ROWS_CODE = "PGRST116"
UNIQUE_VIOLATION_CODE = "23505"
RLS_VIOLATION_CODE = "42501"

# Ids spliced into or=(...) filters must not carry PostgREST syntax
SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")

REQUEST_PARTY_COLUMNS = "name,avatar_url,support_preferences,location,journey_note"
SUPPORT_REQUEST_SELECT = (
    "id,created_at,sender_id,receiver_id,message,status,is_anonymous,"
    f"sender:profiles!sender_id({REQUEST_PARTY_COLUMNS}),"
    f"receiver:profiles!receiver_id({REQUEST_PARTY_COLUMNS})"
)


class StoreError(Exception):
    """Raised when a store call fails."""

    def __init__(self, message: str, *, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.status = status


class StoreNotFoundError(StoreError):
    """Raised when a single row was requested and none exists."""


class DuplicateActiveRequestError(StoreError):
    """Raised when the active-request uniqueness constraint rejects an insert."""


class AuthError(StoreError):
    """Raised when a token or credential is rejected."""


def _pair_filter(a: str, b: str) -> str:
    for user_id in (a, b):
        if not isinstance(user_id, str) or not SAFE_ID.match(user_id):
            raise StoreError(f"Invalid user id: {user_id!r}")
    return f"(and(sender_id.eq.{a},receiver_id.eq.{b}),and(sender_id.eq.{b},receiver_id.eq.{a}))"


class SupabaseStore:
    """PostgREST/GoTrue gateway scoped to one caller's access token."""

    def __init__(
        self,
        access_token: str | None = None,
        *,
        base_url: str = SUPABASE_URL,
        anon_key: str = SUPABASE_ANON_KEY,
        timeout: float = SUPABASE_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": anon_key,
            "Authorization": f"Bearer {access_token or anon_key}",
            "Content-Type": "application/json",
        })

    # ------------------------------------------------------------------
    # Low-level HTTP
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreError(f"Supabase request failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response: requests.Response) -> StoreError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        code = body.get("code") or body.get("error_code")
        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.text
            or f"HTTP {response.status_code}"
        )
        if code == NO_ROWS_CODE:
            return StoreNotFoundError(message, code=code, status=response.status_code)
        if code == UNIQUE_VIOLATION_CODE:
            return DuplicateActiveRequestError(message, code=code, status=response.status_code)
        if response.status_code in (401, 403) and code != RLS_VIOLATION_CODE:
            return AuthError(message, code=code, status=response.status_code)
        return StoreError(message, code=str(code) if code else None, status=response.status_code)

    def _select(
        self,
        table: str,
        params: dict[str, str],
        *,
        single: bool = False,
    ) -> Any:
        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        return self._request("GET", f"/rest/v1/{table}", params=params, headers=headers)

    def _select_one(self, table: str, params: dict[str, str]) -> dict[str, Any] | None:
        try:
            return self._select(table, params, single=True)
        except StoreNotFoundError:
            return None

    def _insert(self, table: str, row: dict[str, Any] | list[dict[str, Any]], *, upsert: bool = False) -> list[dict[str, Any]]:
        prefer = "return=representation"
        if upsert:
            prefer = "resolution=merge-duplicates," + prefer
        return self._request(
            "POST", f"/rest/v1/{table}", json=row, headers={"Prefer": prefer}
        ) or []

    def _update(self, table: str, params: dict[str, str], changes: dict[str, Any]) -> list[dict[str, Any]]:
        return self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=changes,
            headers={"Prefer": "return=representation"},
        ) or []

    def _delete(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        return self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=params,
            headers={"Prefer": "return=representation"},
        ) or []

    # ------------------------------------------------------------------
    # Auth (GoTrue)
    # ------------------------------------------------------------------

    def get_user(self, access_token: str) -> dict[str, Any]:
        """Validate a token and return the GoTrue user."""
        try:
            user = self._request(
                "GET",
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except StoreError as e:
            raise AuthError(f"Invalid token: {e}", code=e.code, status=e.status) from e
        if not user or not user.get("id"):
            raise AuthError("Invalid token: no user")
        return user

    def sign_up(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/auth/v1/signup", json={"email": email, "password": password}) or {}

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        try:
            return self._request(
                "POST",
                "/auth/v1/token",
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            ) or {}
        except StoreError as e:
            raise AuthError(str(e), code=e.code, status=e.status) from e

    def exchange_code(self, code: str, code_verifier: str | None = None) -> dict[str, Any]:
        """Exchange an OAuth/magic-link code for a session."""
        return self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier or ""},
        ) or {}

    def sign_out(self, access_token: str) -> None:
        self._request(
            "POST",
            "/auth/v1/logout",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        return self._select_one("profiles", {"select": "*", "id": f"eq.{user_id}"})

    def list_profiles(
        self,
        *,
        exclude_id: str | None = None,
        support_type: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*"}
        if exclude_id:
            params["id"] = f"neq.{exclude_id}"
        if support_type:
            params["support_type"] = f"eq.{support_type}"
        return self._select("profiles", params) or []

    def insert_profile(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._insert("profiles", row)
        return rows[0] if rows else row

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        rows = self._update("profiles", {"id": f"eq.{user_id}"}, changes)
        return rows[0] if rows else None

    def upsert_profile(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._insert("profiles", row, upsert=True)
        return rows[0] if rows else row

    # ------------------------------------------------------------------
    # Support requests
    # ------------------------------------------------------------------

    def list_support_requests(
        self,
        user_id: str,
        *,
        direction: str = "all",
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": SUPPORT_REQUEST_SELECT, "order": "created_at.desc"}
        if direction == "sent":
            params["sender_id"] = f"eq.{user_id}"
        elif direction == "received":
            params["receiver_id"] = f"eq.{user_id}"
        else:
            params["or"] = f"(sender_id.eq.{user_id},receiver_id.eq.{user_id})"
        if status:
            params["status"] = f"eq.{status}"
        return self._select("support_requests", params) or []

    def get_support_request(self, request_id: str) -> dict[str, Any] | None:
        return self._select_one(
            "support_requests",
            {"select": SUPPORT_REQUEST_SELECT, "id": f"eq.{request_id}"},
        )

    def find_requests_between(
        self,
        a: str,
        b: str,
        statuses: list[str] | tuple[str, ...],
    ) -> list[dict[str, Any]]:
        params = {
            "select": "id,sender_id,receiver_id,status",
            "or": _pair_filter(a, b),
            "status": f"in.({','.join(statuses)})",
        }
        return self._select("support_requests", params) or []

    def insert_support_request(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._insert("support_requests", row)
        if not rows:
            raise StoreError("Failed to create support request")
        return rows[0]

    def update_support_request(
        self,
        request_id: str,
        changes: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> dict[str, Any]:
        """Patch a request; with `expected_status` the row only changes if it still has that status."""
        params = {"id": f"eq.{request_id}"}
        if expected_status:
            params["status"] = f"eq.{expected_status}"
        rows = self._update("support_requests", params, changes)
        if not rows:
            raise StoreNotFoundError("Support request not found", code=NO_ROWS_CODE)
        return rows[0]

    # ------------------------------------------------------------------
    # Peer chats
    # ------------------------------------------------------------------

    def list_chat_messages(self, a: str, b: str) -> list[dict[str, Any]]:
        params = {"select": "*", "or": _pair_filter(a, b), "order": "created_at.asc"}
        return self._select("peer_support_chats", params) or []

    def mark_messages_read(self, message_ids: list[str]) -> None:
        if not message_ids:
            return
        self._update(
            "peer_support_chats",
            {"id": f"in.({','.join(message_ids)})"},
            {"is_read": True},
        )

    def insert_chat_message(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._insert("peer_support_chats", row)
        if not rows:
            raise StoreError("Failed to send message")
        return rows[0]

    def delete_chat_messages(self, a: str, b: str) -> list[dict[str, Any]]:
        return self._delete("peer_support_chats", {"or": _pair_filter(a, b)})

    # ------------------------------------------------------------------
    # Mindfulness
    # ------------------------------------------------------------------

    def list_entries(self, user_id: str, entry_type: str | None = None) -> list[dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{user_id}", "order": "created_at.desc"}
        if entry_type:
            params["type"] = f"eq.{entry_type}"
        return self._select("mindfulness_entries", params) or []

    def get_entry(self, entry_id: str, user_id: str) -> dict[str, Any] | None:
        return self._select_one(
            "mindfulness_entries",
            {"select": "*", "id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"},
        )

    def insert_entries(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not rows:
            return []
        return self._insert("mindfulness_entries", rows)

    def update_entry(self, entry_id: str, user_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        rows = self._update(
            "mindfulness_entries",
            {"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"},
            changes,
        )
        return rows[0] if rows else None

    def delete_entry(self, entry_id: str, user_id: str) -> bool:
        rows = self._delete(
            "mindfulness_entries",
            {"id": f"eq.{entry_id}", "user_id": f"eq.{user_id}"},
        )
        return bool(rows)

    def get_streak(self, user_id: str) -> dict[str, Any] | None:
        return self._select_one("mindfulness_streaks", {"select": "*", "user_id": f"eq.{user_id}"})

    def insert_streak(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._insert("mindfulness_streaks", row)
        return rows[0] if rows else row

    def update_streak(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        rows = self._update("mindfulness_streaks", {"user_id": f"eq.{user_id}"}, changes)
        return rows[0] if rows else changes
