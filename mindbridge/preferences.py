"""Support-preference normalization.

User-entered and stored preference tags are compared for overlap, so both
sides are reduced to the same canonical vocabulary first.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

# Variant -> representative term
PREFERENCE_SYNONYMS: dict[str, str] = {
    "anxious": "anxiety",
    "anxiety issues": "anxiety",
    "anxiety disorder": "anxiety",
    "social anxiety": "anxiety",
    "panic attacks": "anxiety",
    "depressed": "depression",
    "low mood": "depression",
    "stressed": "stress",
    "stress management": "stress",
    "lonely": "loneliness",
    "isolation": "loneliness",
    "breakup": "heartbreak",
    "break up": "heartbreak",
    "relationships": "relationship issues",
    "relationship problems": "relationship issues",
    "academic stress": "academic pressure",
    "exam stress": "academic pressure",
    "career change": "career challenges",
    "health and wellness": "health & wellness",
    "work life balance": "work-life balance",
    "worklife balance": "work-life balance",
    "parenting": "parenthood",
}

SUPPORT_SEEKER = "support-seeker"
SUPPORT_GIVER = "support-giver"

_UI_TO_DB_SUPPORT_TYPE = {
    "I need support": SUPPORT_SEEKER,
    "I want to provide support": SUPPORT_GIVER,
}
_DB_TO_UI_SUPPORT_TYPE = {v: k for k, v in _UI_TO_DB_SUPPORT_TYPE.items()}

_WHITESPACE = re.compile(r"\s+")


def normalize_preference(value: str) -> str:
    """Canonicalize a single tag."""
    cleaned = _WHITESPACE.sub(" ", value.strip().lower())
    return PREFERENCE_SYNONYMS.get(cleaned, cleaned)


def normalize_preferences(values: Iterable[Any] | None) -> list[str]:
    """Canonicalize a list of tags.

    Non-strings and blank entries are dropped. First-appearance order is kept
    and duplicates created by synonym collapsing are removed.
    """
    if not values:
        return []
    normalized: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str) or not value.strip():
            continue
        term = normalize_preference(value)
        if term not in seen:
            seen.add(term)
            normalized.append(term)
    return normalized


def preferences_overlap(a: str, b: str) -> bool:
    """Bidirectional substring containment between two normalized tags."""
    return a in b or b in a


def map_support_type_to_database(ui_type: str) -> str:
    return _UI_TO_DB_SUPPORT_TYPE.get(ui_type, ui_type)


def map_support_type_to_ui(db_type: str) -> str:
    return _DB_TO_UI_SUPPORT_TYPE.get(db_type, db_type)
