"""
Event service — the Events collection collaborator.

PipelineService calls ``create_event`` when Systems publishes an idea;
PassportService adjusts ``participant_count`` as students are (un)registered.
"""

from __future__ import annotations

import logging
import uuid

from ideaflow.core.exceptions import NotFoundError, StaleWriteError, ValidationError
from ideaflow.models.event import EVENTS_COLLECTION, Event
from ideaflow.store.base import DocumentStore
from ideaflow.utils.helpers import clean_str, normalize_timestamp, utcnow

logger = logging.getLogger(__name__)

# Publish form fields; ``date`` is the only mandatory one.
EVENT_DETAIL_FIELDS = (
    "name",
    "description",
    "date",
    "location",
    "category",
    "max_participants",
    "google_forms_link",
)


def new_event_id() -> str:
    return f"EVT-{uuid.uuid4().hex[:12].upper()}"


def validate_event_details(details: dict | None, *, default_name: str = "") -> dict:
    """Clean the publish form. Raises ValidationError on a missing/bad date."""
    details = details or {}
    errors: dict[str, str] = {}

    try:
        date = normalize_timestamp(details.get("date"))
    except ValueError:
        date = None
        errors["date"] = "must be an ISO-8601 date"
    else:
        if date is None:
            errors["date"] = "required"

    max_participants = details.get("max_participants")
    if max_participants in (None, ""):
        max_participants = None
    else:
        try:
            max_participants = int(max_participants)
        except (TypeError, ValueError):
            errors["max_participants"] = "must be a whole number"
        else:
            if max_participants <= 0:
                errors["max_participants"] = "must be greater than 0"

    if errors:
        raise ValidationError("Invalid event details", details=errors)

    return {
        "name": clean_str(details.get("name")) or default_name,
        "description": clean_str(details.get("description")) or "",
        "date": date,
        "location": clean_str(details.get("location")) or "",
        "category": clean_str(details.get("category")) or "",
        "max_participants": max_participants,
        "google_forms_link": clean_str(details.get("google_forms_link")) or "",
    }


class EventService:
    """Create and read events; keep participant counts in step with participations."""

    def __init__(self, store: DocumentStore, clock=utcnow, write_retries: int = 3) -> None:
        self.store = store
        self.clock = clock
        self.write_retries = max(1, write_retries)

    def create_event(self, details: dict, *, university: str, created_by: str | None = None,
                     idea_id: str | None = None, event_id: str | None = None) -> Event:
        cleaned = validate_event_details(details)
        event = Event(
            id=event_id or new_event_id(),
            university=university,
            idea_id=idea_id,
            created_by=created_by,
            created_at=self.clock(),
            participant_count=0,
            **cleaned,
        )
        event.version = self.store.put(EVENTS_COLLECTION, event.id, event.to_document(), expected_version=0)
        logger.info(
            "Event created",
            extra={"event_id": event.id, "idea_id": idea_id, "university": university},
        )
        return event

    def get_event(self, event_id: str) -> Event:
        doc = self.store.get(EVENTS_COLLECTION, event_id)
        if doc is None:
            raise NotFoundError("Event", event_id)
        return Event.from_document(doc)

    def list_events(self, university: str | None = None) -> list[Event]:
        """Events, most recent date first."""
        filters = {"university": university} if university else None
        events = [Event.from_document(d) for d in self.store.list(EVENTS_COLLECTION, filters)]
        return sorted(events, key=lambda e: (e.date is not None, e.date), reverse=True)

    def adjust_participants(self, event_id: str, delta: int) -> Event:
        """Add ``delta`` to the participant count (never below zero)."""
        attempt = 0
        while True:
            attempt += 1
            event = self.get_event(event_id)
            event.participant_count = max(0, event.participant_count + delta)
            try:
                event.version = self.store.put(
                    EVENTS_COLLECTION, event.id, event.to_document(), expected_version=event.version
                )
                return event
            except StaleWriteError:
                if attempt >= self.write_retries:
                    raise
                logger.warning("Retrying participant count update", extra={"event_id": event_id})
