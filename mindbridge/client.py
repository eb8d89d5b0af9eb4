"""HTTP client for the MindBridge API, with a small entity cache.

The cache keeps the last server copy of each entity, keyed by (kind, id).
A successful fetch always replaces the cached copy and mutations drop the
entries they touch. When a read fails because the API is unreachable or
answers 5xx, the last cached copy is returned instead, so an offline client
can still show the profile, peers, requests, threads and journal.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from config import MINDBRIDGE_API_URL

logger = logging.getLogger(__name__)

PROFILE = "profile"
PEERS = "peers"
REQUESTS = "requests"
CHAT = "chat"
ENTRIES = "entries"


class APIError(Exception):
    """Raised when the API answers with an error."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class EntityCache:
    """Last-known server copies, keyed by (kind, id)."""

    def __init__(self):
        self._entries: dict[tuple[str, str], Any] = {}

    def get(self, kind: str, key: str = "") -> Any:
        return self._entries.get((kind, key))

    def put(self, kind: str, key: str, value: Any) -> None:
        self._entries[(kind, key)] = value

    def invalidate(self, kind: str, key: str | None = None) -> None:
        """Drop one entry, or every entry of `kind` when `key` is None."""
        if key is not None:
            self._entries.pop((kind, key), None)
            return
        for cached in [k for k in self._entries if k[0] == kind]:
            del self._entries[cached]

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, item: tuple[str, str]) -> bool:
        return item in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class MindBridgeClient:
    """Thin wrapper over the JSON API."""

    def __init__(
        self,
        base_url: str = MINDBRIDGE_API_URL,
        *,
        access_token: str | None = None,
        timeout: float = 15,
        session: requests.Session | None = None,
        cache: EntityCache | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else EntityCache()
        self.user_id: str | None = None
        if access_token:
            self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def _call(self, method: str, path: str, *, params=None, json=None) -> Any:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise APIError(f"Request to {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None
        if response.status_code >= 400:
            message = body.get("error") if isinstance(body, dict) else None
            raise APIError(message or f"HTTP {response.status_code}", status=response.status_code)
        return body

    def _fetch(self, kind: str, key: str, path: str, params=None) -> Any:
        """GET `path`, caching the result under (kind, key) and falling back to it when offline."""
        try:
            value = self._call("GET", path, params=params)
        except APIError as e:
            cached = self.cache.get(kind, key)
            offline = e.status is None or e.status >= 500
            if cached is None or not offline:
                raise
            logger.warning("Fetching %s failed (%s); using cached copy", path, e)
            return cached
        self.cache.put(kind, key, value)
        return value

    # Auth ---------------------------------------------------------------

    def login(self, email: str, password: str) -> dict[str, Any]:
        result = self._call("POST", "/api/auth/login", json={"email": email, "password": password})
        self.user_id = (result.get("user") or {}).get("id")
        self.cache.clear()
        return result

    def logout(self) -> None:
        self._call("POST", "/api/auth/logout")
        self.user_id = None
        self.cache.clear()

    # Profile ------------------------------------------------------------

    def get_profile(self) -> dict[str, Any] | None:
        return self._fetch(PROFILE, self.user_id or "", "/api/profile")

    def save_profile(self, data: dict[str, Any]) -> dict[str, Any]:
        saved = self._call("POST", "/api/profile", json=data)
        self.cache.invalidate(PROFILE)
        self.cache.invalidate(PEERS)
        return saved

    # Peers and requests -------------------------------------------------

    def list_peers(
        self,
        *,
        support_type: str | None = None,
        support_preferences: list[str] | None = None,
        active_only: bool | None = None,
        sort_by: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {}
        if support_type:
            params["supportType"] = support_type
        if support_preferences:
            params["supportPreferences"] = json.dumps(support_preferences)
        if active_only is not None:
            params["activeOnly"] = "true" if active_only else "false"
        if sort_by:
            params["sortBy"] = sort_by
        result = self._fetch(PEERS, json.dumps(params, sort_keys=True), "/api/peer-support", params)
        return result.get("peers", [])

    def list_requests(self, direction: str = "all", status: str | None = None) -> list[dict[str, Any]]:
        params = {"type": direction}
        if status:
            params["status"] = status
        result = self._fetch(REQUESTS, f"{direction}:{status or ''}", "/api/peer-support/requests", params)
        return result.get("requests", [])

    def send_request(self, receiver_id: str, message: str, *, is_anonymous: bool = False) -> dict[str, Any]:
        result = self._call(
            "POST",
            "/api/peer-support/requests",
            json={"receiver_id": receiver_id, "message": message, "is_anonymous": is_anonymous},
        )
        self.cache.invalidate(REQUESTS)
        return result["request"]

    def respond_to_request(self, request_id: str, status: str) -> dict[str, Any]:
        result = self._call("PATCH", "/api/peer-support/requests", json={"id": request_id, "status": status})
        self.cache.invalidate(REQUESTS)
        return result["request"]

    def cancel_request(self, request_id: str) -> dict[str, Any]:
        result = self._call("DELETE", f"/api/peer-support/requests/{request_id}")
        self.cache.invalidate(REQUESTS)
        return result["request"]

    # Chats --------------------------------------------------------------

    def get_chat(self, peer_id: str) -> dict[str, Any]:
        return self._fetch(CHAT, peer_id, "/api/peer-support/chats", {"peer_id": peer_id})

    def send_message(self, receiver_id: str, message: str, *, is_anonymous: bool = False) -> dict[str, Any]:
        result = self._call(
            "POST",
            "/api/peer-support/chats",
            json={"receiver_id": receiver_id, "message": message, "is_anonymous": is_anonymous},
        )
        self.cache.invalidate(CHAT, receiver_id)
        return result["chat"]

    def delete_chat(self, peer_id: str) -> None:
        self._call("DELETE", "/api/peer-support/chats", params={"peer_id": peer_id})
        self.cache.invalidate(CHAT, peer_id)
        self.cache.invalidate(REQUESTS)

    # Mindfulness --------------------------------------------------------

    def list_entries(self, entry_type: str | None = None) -> list[dict[str, Any]]:
        params = {"type": entry_type} if entry_type else None
        return self._fetch(ENTRIES, entry_type or "", "/api/mindfulness", params)

    def create_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        created = self._call("POST", "/api/mindfulness", json=entry)
        self.cache.invalidate(ENTRIES)
        return created

    def update_entry(self, entry: dict[str, Any]) -> dict[str, Any]:
        updated = self._call("PUT", "/api/mindfulness", json=entry)
        self.cache.invalidate(ENTRIES)
        return updated

    def delete_entry(self, entry_id: str) -> None:
        self._call("DELETE", "/api/mindfulness", params={"id": entry_id})
        self.cache.invalidate(ENTRIES)

    def record_streak(self, activity_type: str = "mindfulness") -> dict[str, Any]:
        return self._call("POST", "/api/mindfulness/streak", json={"activityType": activity_type})

    def migrate_entries(self, payload: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
        result = self._call("POST", "/api/mindfulness/migrate", json=payload)
        self.cache.invalidate(ENTRIES)
        return result

    # Companion ----------------------------------------------------------

    def ask_companion(self, messages: list[dict[str, str]]) -> dict[str, Any]:
        return self._call("POST", "/api/chat", json={"messages": messages})
