"""MindBridge peer-support backend package."""

from .matching import calculate_match_score, filter_peers, sort_peers
from .preferences import normalize_preferences, preferences_overlap

__all__ = [
    "calculate_match_score",
    "filter_peers",
    "sort_peers",
    "normalize_preferences",
    "preferences_overlap",
]
