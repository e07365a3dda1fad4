"""
IdeaFlow
Idea domain model.

Models:
    - StatusHistoryEntry: one immutable audit-trail row.
    - Idea: a submitted event idea and its pipeline position.

Ideas live in the ``ideas`` collection of the document store. The intake
fields are fixed at submission; only PipelineService mutates the pipeline
fields, and ``status_history`` is append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

from ideaflow.core.exceptions import ValidationError
from ideaflow.pipeline.registry import Stage
from ideaflow.store.base import VERSION_KEY
from ideaflow.utils.helpers import clean_str, normalize_timestamp, to_iso

IDEAS_COLLECTION = "ideas"

REQUIRES_APPROVAL_UNSURE = "unsure"

# Intake fields required by the submission form
REQUIRED_INTAKE_FIELDS = (
    "submitted_by",
    "university",
    "title",
    "type",
    "target_audience",
    "goal",
    "description",
    "estimated_attendees",
    "requires_approval",
)
OPTIONAL_INTAKE_FIELDS = ("suggested_speakers", "resources_needed", "notes")


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: Stage
    unit: str | None
    timestamp: datetime
    actor: str
    notes: str = ""

    def to_document(self) -> dict:
        return {
            "status": self.status.value,
            "unit": self.unit,
            "timestamp": to_iso(self.timestamp),
            "actor": self.actor,
            "notes": self.notes,
        }

    @classmethod
    def from_document(cls, doc: dict) -> StatusHistoryEntry:
        return cls(
            status=Stage(doc["status"]),
            unit=doc.get("unit"),
            timestamp=normalize_timestamp(doc.get("timestamp")),
            actor=doc.get("actor") or "System",
            notes=doc.get("notes") or "",
        )


@dataclass
class Idea:
    id: str
    university: str
    title: str
    type: str
    target_audience: str
    goal: str
    description: str
    estimated_attendees: int
    requires_approval: bool | str
    submitted_by: str
    current_status: Stage
    current_unit: str | None
    status_history: list[StatusHistoryEntry] = field(default_factory=list)
    suggested_speakers: str | None = None
    resources_needed: str | None = None
    notes: str | None = None
    ancillary_link: str = ""
    return_reason: str | None = None
    rejection_reason: str | None = None
    event_data: dict | None = None
    published_at: datetime | None = None
    event_id: str | None = None
    submitted_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def is_terminal(self) -> bool:
        return self.current_status in (Stage.REJECTED, Stage.COMPLETED)

    @property
    def last_entry(self) -> StatusHistoryEntry | None:
        return self.status_history[-1] if self.status_history else None

    def with_transition(
        self,
        *,
        status: Stage,
        unit: str | None,
        entry_unit: str | None,
        actor: str,
        notes: str,
        at: datetime,
        **changes,
    ) -> Idea:
        """Return a copy moved to ``status``/``unit`` with one history entry appended.

        ``entry_unit`` is the unit recorded on the history row; the status and
        the history tail always change together.
        """
        entry = StatusHistoryEntry(status=status, unit=entry_unit, timestamp=at, actor=actor, notes=notes)
        return replace(
            self,
            current_status=status,
            current_unit=unit,
            status_history=[*self.status_history, entry],
            updated_at=at,
            **changes,
        )

    # ── Serialisation ────────────────────────────────────────────────────

    def to_document(self) -> dict:
        """Serialise for the document store (ISO timestamps, wire enums)."""
        return {
            "id": self.id,
            "university": self.university,
            "title": self.title,
            "type": self.type,
            "target_audience": self.target_audience,
            "goal": self.goal,
            "description": self.description,
            "estimated_attendees": self.estimated_attendees,
            "requires_approval": self.requires_approval,
            "suggested_speakers": self.suggested_speakers,
            "resources_needed": self.resources_needed,
            "notes": self.notes,
            "submitted_by": self.submitted_by,
            "current_status": self.current_status.value,
            "current_unit": self.current_unit,
            "ancillary_link": self.ancillary_link,
            "status_history": [e.to_document() for e in self.status_history],
            "return_reason": self.return_reason,
            "rejection_reason": self.rejection_reason,
            "event_data": self.event_data,
            "published_at": to_iso(self.published_at),
            "event_id": self.event_id,
            "submitted_at": to_iso(self.submitted_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: dict) -> Idea:
        return cls(
            id=doc["id"],
            university=doc.get("university") or "",
            title=doc.get("title") or "",
            type=doc.get("type") or "",
            target_audience=doc.get("target_audience") or "",
            goal=doc.get("goal") or "",
            description=doc.get("description") or "",
            estimated_attendees=int(doc.get("estimated_attendees") or 0),
            requires_approval=doc.get("requires_approval", True),
            suggested_speakers=doc.get("suggested_speakers"),
            resources_needed=doc.get("resources_needed"),
            notes=doc.get("notes"),
            submitted_by=doc.get("submitted_by") or "",
            current_status=Stage(doc["current_status"]),
            current_unit=doc.get("current_unit"),
            ancillary_link=doc.get("ancillary_link") or "",
            status_history=[StatusHistoryEntry.from_document(e) for e in doc.get("status_history") or []],
            return_reason=doc.get("return_reason"),
            rejection_reason=doc.get("rejection_reason"),
            event_data=doc.get("event_data"),
            published_at=normalize_timestamp(doc.get("published_at")),
            event_id=doc.get("event_id"),
            submitted_at=normalize_timestamp(doc.get("submitted_at")),
            updated_at=normalize_timestamp(doc.get("updated_at")),
            version=int(doc.get(VERSION_KEY) or 0),
        )

    def to_dict(self) -> dict:
        """API representation."""
        data = self.to_document()
        data["version"] = self.version
        return data

    def __repr__(self) -> str:
        return f"<Idea {self.id} {self.current_status.value} @{self.current_unit}>"


# ── Intake validation ────────────────────────────────────────────────────────


def coerce_requires_approval(value) -> bool | str | None:
    """Normalise the requires-approval answer to True, False or "unsure"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        if lowered == REQUIRES_APPROVAL_UNSURE:
            return REQUIRES_APPROVAL_UNSURE
    return None


def validate_draft(draft: dict) -> dict:
    """Check a submission draft and return the cleaned intake fields.

    Raises:
        ValidationError listing every missing or malformed field.
    """
    draft = draft or {}
    errors: dict[str, str] = {}
    cleaned: dict = {}

    for name in REQUIRED_INTAKE_FIELDS:
        if name in ("estimated_attendees", "requires_approval"):
            continue
        value = clean_str(draft.get(name))
        if value is None:
            errors[name] = "required"
        cleaned[name] = value

    attendees = draft.get("estimated_attendees")
    if attendees is None or attendees == "" or isinstance(attendees, bool):
        errors["estimated_attendees"] = "required"
    else:
        try:
            cleaned["estimated_attendees"] = int(attendees)
        except (TypeError, ValueError):
            errors["estimated_attendees"] = "must be a whole number"
        else:
            if cleaned["estimated_attendees"] <= 0:
                errors["estimated_attendees"] = "must be greater than 0"

    if draft.get("requires_approval") is None:
        errors["requires_approval"] = "required"
    else:
        requires = coerce_requires_approval(draft.get("requires_approval"))
        if requires is None:
            errors["requires_approval"] = "must be true, false or 'unsure'"
        cleaned["requires_approval"] = requires

    for name in OPTIONAL_INTAKE_FIELDS:
        cleaned[name] = clean_str(draft.get(name))

    if errors:
        missing = ", ".join(sorted(errors))
        raise ValidationError(f"Invalid idea submission: {missing}", details=errors)
    return cleaned
