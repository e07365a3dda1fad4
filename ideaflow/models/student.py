"""
IdeaFlow
Passport program models.

Models:
    - Student: passport holder, keyed by passport number.
    - Participation: one student's attendance of one event.

``Student.tier`` is derived from ``total_events`` and stored only so lists
can be filtered by tier; PassportService rewrites both together.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ideaflow.passport.tiers import Tier
from ideaflow.store.base import VERSION_KEY
from ideaflow.utils.helpers import normalize_timestamp, to_iso

STUDENTS_COLLECTION = "students"
PARTICIPATIONS_COLLECTION = "participations"

DEFAULT_PARTICIPATION_TYPE = "Attended"

# Fields an admin may edit directly; tier/total_events only change through
# participation and tier-override operations.
EDITABLE_STUDENT_FIELDS = frozenset({"full_name", "email", "university", "program", "status"})


@dataclass
class Student:
    passport_number: str
    full_name: str
    email: str
    university: str
    program: str
    tier: Tier = Tier.EXPLORER
    total_events: int = 0
    status: str = "active"
    approved_by: str | None = None
    created_at: datetime | None = None
    version: int = 0

    def to_document(self) -> dict:
        return {
            "passport_number": self.passport_number,
            "full_name": self.full_name,
            "email": self.email,
            "university": self.university,
            "program": self.program,
            "tier": self.tier.value,
            "total_events": self.total_events,
            "status": self.status,
            "approved_by": self.approved_by,
            "created_at": to_iso(self.created_at),
        }

    @classmethod
    def from_document(cls, doc: dict) -> Student:
        return cls(
            passport_number=doc["passport_number"],
            full_name=doc.get("full_name") or "",
            email=doc.get("email") or "",
            university=doc.get("university") or "",
            program=doc.get("program") or "",
            tier=Tier(doc.get("tier") or Tier.EXPLORER.value),
            total_events=int(doc.get("total_events") or 0),
            status=doc.get("status") or "active",
            approved_by=doc.get("approved_by"),
            created_at=normalize_timestamp(doc.get("created_at")),
            version=int(doc.get(VERSION_KEY) or 0),
        )

    def to_dict(self) -> dict:
        data = self.to_document()
        data["version"] = self.version
        return data


@dataclass
class Participation:
    student_id: str
    event_id: str
    participation_type: str = DEFAULT_PARTICIPATION_TYPE
    notes: str = ""
    added_at: datetime | None = None

    @property
    def id(self) -> str:
        return participation_id(self.student_id, self.event_id)

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "event_id": self.event_id,
            "participation_type": self.participation_type,
            "notes": self.notes,
            "added_at": to_iso(self.added_at),
        }

    @classmethod
    def from_document(cls, doc: dict) -> Participation:
        return cls(
            student_id=doc["student_id"],
            event_id=doc["event_id"],
            participation_type=doc.get("participation_type") or DEFAULT_PARTICIPATION_TYPE,
            notes=doc.get("notes") or "",
            added_at=normalize_timestamp(doc.get("added_at")),
        )

    def to_dict(self) -> dict:
        return self.to_document()


def participation_id(student_id: str, event_id: str) -> str:
    """One participation per (student, event): the key encodes the pair."""
    return f"{student_id}__{event_id}"
