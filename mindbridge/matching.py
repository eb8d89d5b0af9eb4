"""Peer match scoring, filtering and sorting."""

from __future__ import annotations

from typing import Iterable, Literal

from mindbridge.models import PeerMatch, Profile
from mindbridge.preferences import normalize_preferences, preferences_overlap

SortKey = Literal["match", "rating", "peopleSupported", "availability"]

BASELINE_SCORE = 50
PREFERENCE_WEIGHT = 30
LOCATION_BONUS = 15
AVAILABILITY_BONUS = 10


def preference_overlap_ratio(viewer_prefs: Iterable[str], candidate_prefs: Iterable[str]) -> float:
    """Fraction of candidate preferences that overlap any viewer preference.

    Both sides are normalized here, so callers may pass raw tags.
    """
    viewer = normalize_preferences(list(viewer_prefs))
    candidate = normalize_preferences(list(candidate_prefs))
    if not viewer or not candidate:
        return 0.0
    matched = sum(
        1 for pref in candidate
        if any(preferences_overlap(pref, mine) for mine in viewer)
    )
    return matched / len(candidate)


def calculate_match_score(viewer: Profile | None, candidate: Profile | None) -> int:
    """Compatibility score between a viewer and a candidate peer, 0-100."""
    if viewer is None or candidate is None:
        return BASELINE_SCORE

    score = BASELINE_SCORE + PREFERENCE_WEIGHT * preference_overlap_ratio(
        viewer.support_preferences, candidate.support_preferences
    )
    if viewer.location and viewer.location == candidate.location:
        score += LOCATION_BONUS
    if viewer.availability and viewer.availability == candidate.availability:
        score += AVAILABILITY_BONUS

    return max(0, min(int(round(score)), 100))


def filter_peers(
    peers: list[PeerMatch],
    *,
    active_only: bool | None = None,
    support_type: str | None = None,
    support_preferences: list[str] | None = None,
) -> list[PeerMatch]:
    """Apply the optional predicates; each None argument is a no-op."""
    result = list(peers)

    if active_only is not None:
        result = [peer for peer in result if peer.is_active == active_only]

    if support_type:
        result = [peer for peer in result if peer.support_type == support_type]

    wanted = normalize_preferences(support_preferences)
    if wanted:
        result = [
            peer for peer in result
            if any(
                preferences_overlap(pref, want)
                for pref in normalize_preferences(peer.support_preferences)
                for want in wanted
            )
        ]

    return result


def sort_peers(peers: list[PeerMatch], sort_by: str = "match") -> list[PeerMatch]:
    """Return a new list ordered by `sort_by`. Ties keep their input order."""
    if sort_by == "rating":
        return sorted(peers, key=lambda p: -p.rating)
    if sort_by == "peopleSupported":
        return sorted(peers, key=lambda p: -(p.people_supported or 0))
    if sort_by == "availability":
        return sorted(peers, key=lambda p: (not p.is_active, -p.match_score))
    return sorted(peers, key=lambda p: -p.match_score)
