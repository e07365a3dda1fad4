"""
IdeaFlow
Event model — the published form of an approved idea.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ideaflow.store.base import VERSION_KEY
from ideaflow.utils.helpers import normalize_timestamp, to_iso

EVENTS_COLLECTION = "events"


@dataclass
class Event:
    id: str
    name: str
    date: datetime
    university: str
    description: str = ""
    location: str = ""
    category: str = ""
    max_participants: int | None = None
    google_forms_link: str = ""
    idea_id: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    participant_count: int = 0
    version: int = 0

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "date": to_iso(self.date),
            "university": self.university,
            "description": self.description,
            "location": self.location,
            "category": self.category,
            "max_participants": self.max_participants,
            "google_forms_link": self.google_forms_link,
            "idea_id": self.idea_id,
            "created_by": self.created_by,
            "created_at": to_iso(self.created_at),
            "participant_count": self.participant_count,
        }

    @classmethod
    def from_document(cls, doc: dict) -> Event:
        max_participants = doc.get("max_participants")
        return cls(
            id=doc["id"],
            name=doc.get("name") or "",
            date=normalize_timestamp(doc.get("date")),
            university=doc.get("university") or "",
            description=doc.get("description") or "",
            location=doc.get("location") or "",
            category=doc.get("category") or "",
            max_participants=int(max_participants) if max_participants is not None else None,
            google_forms_link=doc.get("google_forms_link") or "",
            idea_id=doc.get("idea_id"),
            created_by=doc.get("created_by"),
            created_at=normalize_timestamp(doc.get("created_at")),
            participant_count=int(doc.get("participant_count") or 0),
            version=int(doc.get(VERSION_KEY) or 0),
        )

    def to_dict(self) -> dict:
        data = self.to_document()
        data["version"] = self.version
        return data
