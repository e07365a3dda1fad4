"""
Passport Service — student enrollment, event participation, tiers.

Every change to a student's event count rewrites ``total_events`` and the
derived ``tier`` in the same compare-and-swap write, so the two never drift.
``override_tier`` is the one exception: an admin may pin a tier until the
next participation change recomputes it.
"""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable

from email_validator import EmailNotValidError, validate_email

from ideaflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    StaleWriteError,
    StoreError,
    ValidationError,
)
from ideaflow.models.student import (
    DEFAULT_PARTICIPATION_TYPE,
    EDITABLE_STUDENT_FIELDS,
    PARTICIPATIONS_COLLECTION,
    STUDENTS_COLLECTION,
    Participation,
    Student,
    participation_id,
)
from ideaflow.passport.tiers import TierProgress, coerce_tier, tier_for_event_count, tier_progress
from ideaflow.services.event_service import EventService
from ideaflow.store.base import DocumentStore
from ideaflow.utils.helpers import clean_str, utcnow

logger = logging.getLogger(__name__)

PASSPORT_NUMBER_RE = re.compile(r"^MXP-\d{4}-\d{4}$")
STUDENT_STATUSES = frozenset({"active", "inactive"})

# Four random digits per year: keep drawing until a free number turns up.
_PASSPORT_NUMBER_ATTEMPTS = 20


def generate_passport_number(year: int) -> str:
    return f"MXP-{year}-{1000 + secrets.randbelow(9000)}"


def _normalize_email(email) -> str:
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"}) from e


class PassportService:
    """Students and their participations over a DocumentStore."""

    def __init__(
        self,
        store: DocumentStore,
        events: EventService,
        clock: Callable = utcnow,
        write_retries: int = 3,
    ) -> None:
        self.store = store
        self.events = events
        self.clock = clock
        self.write_retries = max(1, write_retries)

    # ═══════════════════════════════════════════════════════════════
    # Students
    # ═══════════════════════════════════════════════════════════════

    def enroll_student(
        self,
        full_name: str,
        email: str,
        university: str,
        program: str,
        approved_by: str | None = None,
    ) -> Student:
        """Create a student at application approval and issue a passport number."""
        errors = {}
        full_name = clean_str(full_name)
        university = clean_str(university)
        program = clean_str(program)
        if not full_name:
            errors["full_name"] = "required"
        if not university:
            errors["university"] = "required"
        if not program:
            errors["program"] = "required"
        if errors:
            raise ValidationError("Invalid student enrollment", details=errors)
        email = _normalize_email(email)

        if self.store.list(STUDENTS_COLLECTION, {"email": email}):
            raise ConflictError("Student", "email", email)

        now = self.clock()
        for _ in range(_PASSPORT_NUMBER_ATTEMPTS):
            student = Student(
                passport_number=generate_passport_number(now.year),
                full_name=full_name,
                email=email,
                university=university,
                program=program,
                tier=tier_for_event_count(0),
                total_events=0,
                approved_by=approved_by,
                created_at=now,
            )
            try:
                student.version = self.store.put(
                    STUDENTS_COLLECTION, student.passport_number, student.to_document(), expected_version=0
                )
            except StaleWriteError:
                continue
            logger.info(
                "Student enrolled",
                extra={"passport_number": student.passport_number, "university": university,
                       "actor": approved_by},
            )
            return student

        raise ConflictError("Student", "passport_number", f"MXP-{now.year}-*")

    def get_student(self, passport_number: str) -> Student:
        if not PASSPORT_NUMBER_RE.match(passport_number or ""):
            raise ValidationError(
                f"Invalid passport number '{passport_number}'. Expected MXP-YYYY-XXXX",
                details={"passport_number": "invalid"},
            )
        doc = self.store.get(STUDENTS_COLLECTION, passport_number)
        if doc is None:
            raise NotFoundError("Student", passport_number)
        return Student.from_document(doc)

    def list_students(self, university: str | None = None, tier=None) -> list[Student]:
        filters = {}
        if university:
            filters["university"] = university
        if tier:
            filters["tier"] = coerce_tier(tier).value
        students = [Student.from_document(d) for d in self.store.list(STUDENTS_COLLECTION, filters)]
        return sorted(students, key=lambda s: (s.full_name.lower(), s.passport_number))

    def update_student(self, passport_number: str, updates: dict) -> Student:
        """Edit profile fields. Tier and event count are not editable here."""
        updates = updates or {}
        unknown = sorted(set(updates) - EDITABLE_STUDENT_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields not editable: {', '.join(unknown)}",
                details={name: "not editable" for name in unknown},
            )

        cleaned = {}
        for name, value in updates.items():
            if name == "email":
                cleaned[name] = _normalize_email(value)
                continue
            text = clean_str(value)
            if text is None:
                raise ValidationError(f"{name} cannot be empty", details={name: "required"})
            if name == "status" and text not in STUDENT_STATUSES:
                raise ValidationError(f"Invalid status '{text}'", details={"status": "invalid"})
            cleaned[name] = text

        if "email" in cleaned:
            owners = self.store.list(STUDENTS_COLLECTION, {"email": cleaned["email"]})
            if any(d["passport_number"] != passport_number for d in owners):
                raise ConflictError("Student", "email", cleaned["email"])

        def change(student: Student) -> None:
            for name, value in cleaned.items():
                setattr(student, name, value)

        student = self._update_student(passport_number, change)
        logger.info("Student updated", extra={"passport_number": passport_number})
        return student

    def override_tier(self, passport_number: str, tier) -> Student:
        """Pin a tier manually; the next count change recomputes it."""
        tier = coerce_tier(tier)

        def change(student: Student) -> None:
            student.tier = tier

        student = self._update_student(passport_number, change)
        logger.info(
            "Student tier overridden",
            extra={"passport_number": passport_number, "status": tier.value},
        )
        return student

    def delete_student(self, passport_number: str) -> int:
        """Delete a student and every participation they hold.

        Returns the number of participations removed.
        """
        self.get_student(passport_number)

        participations = self._participations_for(passport_number)
        for participation in participations:
            self.store.delete(PARTICIPATIONS_COLLECTION, participation.id)
            self._adjust_event(participation.event_id, -1)
        self.store.delete(STUDENTS_COLLECTION, passport_number)

        logger.info(
            "Student deleted",
            extra={"passport_number": passport_number, "participations": len(participations)},
        )
        return len(participations)

    # ═══════════════════════════════════════════════════════════════
    # Participation
    # ═══════════════════════════════════════════════════════════════

    def add_participation(
        self,
        passport_number: str,
        event_id: str,
        participation_type: str = DEFAULT_PARTICIPATION_TYPE,
        notes: str = "",
    ) -> Participation:
        """Register a student for an event; bumps total_events and re-derives the tier."""
        self.get_student(passport_number)
        self.events.get_event(event_id)

        participation = Participation(
            student_id=passport_number,
            event_id=event_id,
            participation_type=clean_str(participation_type) or DEFAULT_PARTICIPATION_TYPE,
            notes=clean_str(notes) or "",
            added_at=self.clock(),
        )
        try:
            self.store.put(PARTICIPATIONS_COLLECTION, participation.id, participation.to_document(),
                           expected_version=0)
        except StaleWriteError as exc:
            raise ConflictError("Participation", "event_id", event_id) from exc

        try:
            student = self._update_student(passport_number, self._count_change(+1))
        except (StoreError, NotFoundError):
            self.store.delete(PARTICIPATIONS_COLLECTION, participation.id)
            logger.warning("Participation add undone, student count not updated",
                           extra={"passport_number": passport_number, "event_id": event_id})
            raise
        self._adjust_event(event_id, +1)
        logger.info(
            "Participation added",
            extra={"passport_number": passport_number, "event_id": event_id,
                   "status": student.tier.value},
        )
        return participation

    def remove_participation(self, passport_number: str, event_id: str) -> Student:
        """Unregister a student from an event; decrements total_events and re-derives the tier."""
        pid = participation_id(passport_number, event_id)
        doc = self.store.get(PARTICIPATIONS_COLLECTION, pid)
        if doc is None:
            raise NotFoundError("Participation", pid)

        self.store.delete(PARTICIPATIONS_COLLECTION, pid)
        try:
            student = self._update_student(passport_number, self._count_change(-1))
        except (StoreError, NotFoundError):
            self.store.put(PARTICIPATIONS_COLLECTION, pid, doc, expected_version=0)
            logger.warning("Participation removal undone, student count not updated",
                           extra={"passport_number": passport_number, "event_id": event_id})
            raise
        self._adjust_event(event_id, -1)
        logger.info(
            "Participation removed",
            extra={"passport_number": passport_number, "event_id": event_id,
                   "status": student.tier.value},
        )
        return student

    def student_events(self, passport_number: str) -> list[dict]:
        """Participations joined with their events, newest participation first."""
        self.get_student(passport_number)
        rows = []
        for participation in self._participations_for(passport_number):
            try:
                event = self.events.get_event(participation.event_id).to_dict()
            except NotFoundError:
                event = None
            rows.append({**participation.to_dict(), "event": event})
        rows.sort(key=lambda r: r["added_at"] or "", reverse=True)
        return rows

    def student_progress(self, passport_number: str) -> TierProgress | None:
        student = self.get_student(passport_number)
        return tier_progress(student.tier, student.total_events)

    # ── Internals ────────────────────────────────────────────────────────

    def _participations_for(self, passport_number: str) -> list[Participation]:
        docs = self.store.list(PARTICIPATIONS_COLLECTION, {"student_id": passport_number})
        return [Participation.from_document(d) for d in docs]

    @staticmethod
    def _count_change(delta: int) -> Callable[[Student], None]:
        def change(student: Student) -> None:
            student.total_events = max(0, student.total_events + delta)
            student.tier = tier_for_event_count(student.total_events)

        return change

    def _update_student(self, passport_number: str, change: Callable[[Student], None]) -> Student:
        """Reload, mutate and compare-and-swap a student, retrying stale writes."""
        attempt = 0
        while True:
            attempt += 1
            student = self.get_student(passport_number)
            change(student)
            try:
                student.version = self.store.put(
                    STUDENTS_COLLECTION, passport_number, student.to_document(), expected_version=student.version
                )
                return student
            except StaleWriteError:
                if attempt >= self.write_retries:
                    raise
                logger.warning("Stale student write, retrying", extra={"passport_number": passport_number})

    def _adjust_event(self, event_id: str, delta: int) -> None:
        try:
            self.events.adjust_participants(event_id, delta)
        except NotFoundError:
            logger.warning("Participation references a missing event", extra={"event_id": event_id})
