"""Peer Service - Candidate peer discovery and ranking.

Fetches candidate profiles, scores them against the viewer, applies the
requested filters and ordering, and shapes the result for the peer list.
When the store is unreachable the list falls back to sample peers so the
page still renders.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from mindbridge.matching import filter_peers, sort_peers
from mindbridge.models import PeerMatch
from mindbridge.preferences import SUPPORT_GIVER, SUPPORT_SEEKER
from mindbridge.services.supabase_store import StoreError
from mindbridge.transformers import profiles_to_matches

logger = logging.getLogger(__name__)

SUPPORT_TYPE_ALIASES = {
    "support-giver": SUPPORT_GIVER,
    "give": SUPPORT_GIVER,
    "support-seeker": SUPPORT_SEEKER,
    "need": SUPPORT_SEEKER,
}

SAMPLE_PEERS = [
    PeerMatch(
        id="sample-1",
        name="Sarah Johnson",
        avatar="👩",
        match_score=95,
        support_preferences=["Anxiety", "Career Change", "Academic Stress"],
        support_type=SUPPORT_GIVER,
        location="New York",
        is_active=True,
        rating=4.8,
        total_ratings=24,
        certified_mentor=True,
        people_supported=42,
        journey_note="Overcame anxiety through mindfulness and career transition. Happy to share my techniques.",
    ),
]


@dataclass
class PeerQuery:
    """Filters accepted by the peer list."""
    support_type: str | None = None
    support_preferences: list[str] | None = None
    active_only: bool | None = None
    sort_by: str | None = None

    @classmethod
    def from_args(cls, args) -> "PeerQuery":
        """Build from request query args (a Mapping with `.get`)."""
        preferences = None
        raw_prefs = args.get("supportPreferences")
        if raw_prefs:
            try:
                parsed = json.loads(raw_prefs)
            except ValueError:
                logger.warning("Ignoring malformed supportPreferences parameter: %r", raw_prefs)
                parsed = None
            if isinstance(parsed, list):
                preferences = parsed

        raw_active = args.get("activeOnly")
        active_only = None if not raw_active else raw_active == "true"

        return cls(
            support_type=SUPPORT_TYPE_ALIASES.get(args.get("supportType") or ""),
            support_preferences=preferences,
            active_only=active_only,
            sort_by=args.get("sortBy") or None,
        )


class PeerService:
    """Service for listing candidate peers."""

    def __init__(self, store):
        self.store = store

    def list_peers(
        self,
        viewer_id: str | None,
        query: PeerQuery,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        try:
            viewer_row = self.store.get_profile(viewer_id) if viewer_id else None
            rows = self.store.list_profiles(exclude_id=viewer_id, support_type=query.support_type)
        except StoreError as e:
            logger.error("Error fetching peers from database: %s", e)
            return [peer.to_dict() for peer in SAMPLE_PEERS]

        logger.info("Found %d candidate profiles", len(rows))
        peers = profiles_to_matches(rows, viewer_row, now)
        peers = filter_peers(
            peers,
            active_only=query.active_only,
            support_preferences=query.support_preferences,
        )
        if query.sort_by:
            peers = sort_peers(peers, query.sort_by)

        logger.info("Returning %d peers after filtering and sorting", len(peers))
        return [peer.to_dict() for peer in peers]
