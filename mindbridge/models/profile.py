"""Profile data models.

`Profile` mirrors a row of the `profiles` table. Rows coming back from the
store are partial and full of nulls, so `from_dict` fills every field with a
named default instead of trusting the row shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timezone
from typing import Any

# Fields counted by the profile completion percentage
COMPLETION_FIELDS = (
    "name",
    "dob",
    "location",
    "gender",
    "workplace",
    "job_title",
    "education",
    "religious_beliefs",
    "communication_style",
    "availability",
)

# camelCase app field -> profiles column
_APP_TO_ROW = {
    "name": "name",
    "dateOfBirth": "dob",
    "location": "location",
    "gender": "gender",
    "workplace": "workplace",
    "jobTitle": "job_title",
    "education": "education",
    "religiousBeliefs": "religious_beliefs",
    "communicationPreferences": "communication_style",
    "availability": "availability",
    "supportType": "support_type",
    "supportPreferences": "support_preferences",
    "supportSeeker": "support_seeker",
    "supportGiver": "support_giver",
    "journeyNote": "journey_note",
    "completedSetup": "completed_setup",
    "guidelinesAccepted": "guidelines_accepted",
    "avatarUrl": "avatar_url",
}


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


@dataclass
class Profile:
    """A user's profile row."""
    id: str
    name: str | None = None
    location: str | None = None
    availability: str | None = None
    support_type: str | None = None
    support_preferences: list[str] = dataclass_field(default_factory=list)
    journey_note: str | None = None
    completed_setup: bool = False
    guidelines_accepted: bool = False
    support_seeker: bool = False
    support_giver: bool = False
    dob: str | None = None
    gender: str | None = None
    workplace: str | None = None
    job_title: str | None = None
    education: str | None = None
    religious_beliefs: str | None = None
    communication_style: str | None = None
    avatar_url: str | None = None
    last_active_at: str | None = None
    rating: float | None = None
    total_ratings: int = 0
    certified_mentor: bool = False
    people_supported: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a `profiles` row."""
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "availability": self.availability,
            "support_type": self.support_type,
            "support_preferences": self.support_preferences,
            "journey_note": self.journey_note,
            "completed_setup": self.completed_setup,
            "guidelines_accepted": self.guidelines_accepted,
            "support_seeker": self.support_seeker,
            "support_giver": self.support_giver,
            "dob": self.dob,
            "gender": self.gender,
            "workplace": self.workplace,
            "job_title": self.job_title,
            "education": self.education,
            "religious_beliefs": self.religious_beliefs,
            "communication_style": self.communication_style,
            "avatar_url": self.avatar_url,
            "last_active_at": self.last_active_at,
            "rating": self.rating,
            "total_ratings": self.total_ratings,
            "certified_mentor": self.certified_mentor,
            "people_supported": self.people_supported,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Profile":
        """Create from a (possibly partial) row."""
        data = data or {}
        rating = data.get("rating")
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name"),
            location=data.get("location"),
            availability=data.get("availability"),
            support_type=data.get("support_type"),
            support_preferences=_str_list(data.get("support_preferences")),
            journey_note=data.get("journey_note"),
            completed_setup=bool(data.get("completed_setup")),
            guidelines_accepted=bool(data.get("guidelines_accepted")),
            support_seeker=bool(data.get("support_seeker")),
            support_giver=bool(data.get("support_giver")),
            dob=data.get("dob"),
            gender=data.get("gender"),
            workplace=data.get("workplace"),
            job_title=data.get("job_title"),
            education=data.get("education"),
            religious_beliefs=data.get("religious_beliefs"),
            communication_style=data.get("communication_style"),
            avatar_url=data.get("avatar_url"),
            last_active_at=data.get("last_active_at"),
            rating=float(rating) if isinstance(rating, (int, float)) else None,
            total_ratings=int(data.get("total_ratings") or 0),
            certified_mentor=bool(data.get("certified_mentor")),
            people_supported=int(data.get("people_supported") or 0),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    @property
    def completion_percentage(self) -> int:
        filled = sum(1 for name in COMPLETION_FIELDS if getattr(self, name))
        return round(filled / len(COMPLETION_FIELDS) * 100)

    def to_app_dict(self) -> dict[str, Any]:
        """Convert to the camelCase profile consumed by the UI."""
        return {
            "name": self.name or "",
            "dateOfBirth": self.dob or "",
            "location": self.location or "",
            "gender": self.gender or "",
            "workplace": self.workplace or "",
            "jobTitle": self.job_title or "",
            "education": self.education or "",
            "religiousBeliefs": self.religious_beliefs or "",
            "communicationPreferences": self.communication_style or "",
            "availability": self.availability or "",
            "completedSetup": self.completed_setup,
            "profileCompletionPercentage": self.completion_percentage,
            "journey": self.support_preferences[0] if self.support_preferences else "",
            "supportPreferences": self.support_preferences,
            "supportGiver": self.support_giver,
            "supportSeeker": self.support_seeker,
            "supportType": self.support_type or "",
            "journeyNote": self.journey_note or "",
            "avatarUrl": self.avatar_url or "",
            "certifications": {"status": "none"},
        }


def app_profile_to_row(data: dict[str, Any], user_id: str) -> dict[str, Any]:
    """Map a camelCase app profile onto `profiles` columns.

    Only keys present in `data` are written. Blank strings become nulls.
    """
    row: dict[str, Any] = {"id": user_id}
    for app_key, column in _APP_TO_ROW.items():
        if app_key not in data:
            continue
        value = data[app_key]
        if isinstance(value, str) and not value.strip():
            value = None
        row[column] = value
    if "supportPreferences" in data:
        row["support_preferences"] = _str_list(data.get("supportPreferences"))
    row["updated_at"] = datetime.now(timezone.utc).isoformat()
    return row
