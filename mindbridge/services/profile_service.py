"""Profile Service - User profile reads, writes and bootstrap.

This module handles:
- Fetching the caller's profile in the app (camelCase) shape
- Upserting the profile from onboarding / settings forms
- Making sure a minimal profile row exists after sign-in callbacks

Interface Contract:
- get(user_id) -> dict
- save(user_id, data) -> dict
- ensure_exists(user_id) -> bool (True when a row was created)
- All methods raise ProfileServiceError on failure
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from mindbridge.models import Profile, app_profile_to_row
from mindbridge.services.errors import ServiceError
from mindbridge.services.supabase_store import StoreError

logger = logging.getLogger(__name__)


class ProfileServiceError(ServiceError):
    """Raised when a profile operation fails."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProfileService:
    """Service for the caller's own profile."""

    def __init__(self, store):
        self.store = store

    def get(self, user_id: str) -> dict[str, Any]:
        row = self.store.get_profile(user_id)
        if row is None:
            raise ProfileServiceError("Profile not found", status=404)
        return Profile.from_dict(row).to_app_dict()

    def save(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Upsert the profile from a camelCase app payload."""
        if not isinstance(data, dict):
            raise ProfileServiceError("Profile payload must be an object")
        row = app_profile_to_row(data, user_id)
        saved = self.store.upsert_profile(row)
        return Profile.from_dict(saved).to_app_dict()

    def ensure_exists(self, user_id: str) -> bool:
        """Create a minimal profile row unless one already exists."""
        if self.store.get_profile(user_id) is not None:
            logger.info("Profile %s already exists, skipping creation", user_id)
            return False

        now = _now_iso()
        try:
            self.store.insert_profile({
                "id": user_id,
                "created_at": now,
                "updated_at": now,
                "completed_setup": False,
            })
            logger.info("Created minimal profile for %s", user_id)
            return True
        except StoreError as e:
            # A database trigger may have created the row in the meantime
            logger.warning("Profile insert failed for %s (%s); updating instead", user_id, e)
            self.store.update_profile(user_id, {"updated_at": now, "completed_setup": False})
            return False

    def touch(self, user_id: str) -> None:
        """Record activity so peers see the user as active."""
        try:
            self.store.update_profile(user_id, {"last_active_at": _now_iso()})
        except StoreError as e:
            logger.warning("Could not update last_active_at for %s: %s", user_id, e)
