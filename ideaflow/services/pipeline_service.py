"""
Pipeline operations service — the only writer of Idea documents.

    submit ─► approve ─► ... ─► publish ─► start_verification ─► approve ─► completed
                 │  ▲
          return │  │ approve (from the returned-to unit's stage)
                 ▼  │
               returned          reject ─► rejected (terminal, from any held stage)

Every operation is one read-modify-write of a single idea document:

    1. load the idea                       NotFoundError
    2. refuse terminal / unheld ideas      InvalidTransitionError
    3. check the session's membership      PermissionDenied
    4. check the unit's capability         PermissionDenied
    5. check the input                     ValidationError
    6. compute the transition              InvalidTransitionError
    7. compare-and-swap write + history append

A stale write (another session changed the idea between 1 and 7) reloads and
re-runs every check, up to ``write_retries`` attempts. A failed operation
never writes.

Acting unit: the unit holding the idea (``current_unit``). ``membership`` is
the session's UnitMembership; None means a trusted internal caller.
"""

from __future__ import annotations

import logging
import re
import secrets
from collections.abc import Callable
from dataclasses import replace
from urllib.parse import urlparse

from ideaflow.core.actor import UnitMembership
from ideaflow.core.exceptions import (
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDenied,
    StaleWriteError,
    StoreError,
    ValidationError,
)
from ideaflow.models.idea import IDEAS_COLLECTION, Idea, StatusHistoryEntry, validate_draft
from ideaflow.pipeline.registry import (
    ENTRY_UNIT_ID,
    Stage,
    UNITS,
    permissions_for_unit,
    unit_id_for_stage,
)
from ideaflow.pipeline.transitions import effective_stage, next_stage, previous_stage, requires_external
from ideaflow.services.event_service import EventService, new_event_id, validate_event_details
from ideaflow.store.base import DocumentStore
from ideaflow.utils.helpers import to_iso, utcnow

logger = logging.getLogger(__name__)

SYSTEMS_UNIT_ID = "systems"
PASSPORT_UNIT_ID = "passport"

_UNIVERSITY_CODE = re.compile(r"[^A-Z0-9]+")


def generate_idea_id(university: str, now) -> str:
    """``IDEA-<UNIVERSITY>-<digits>``: millisecond clock plus three random digits."""
    code = _UNIVERSITY_CODE.sub("", university.upper()) or "UNI"
    return f"IDEA-{code}-{int(now.timestamp() * 1000)}{secrets.randbelow(1000):03d}"


def validate_ancillary_link(link) -> str:
    """Return the cleaned link: "" (clears it) or an http(s) URL."""
    if link is None:
        return ""
    if not isinstance(link, str):
        raise ValidationError("Ancillary link must be a string", details={"ancillary_link": "invalid"})
    text = link.strip()
    if not text:
        return ""
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            "Ancillary link must be an http(s) URL",
            details={"ancillary_link": "invalid"},
        )
    return text


def _require_reason(reason, action: str) -> str:
    text = reason.strip() if isinstance(reason, str) else ""
    if not text:
        raise ValidationError(f"A reason is required to {action} an idea", details={"reason": "required"})
    return text


class PipelineService:
    """Idea lifecycle operations over a DocumentStore.

    Args:
        store: Persistence collaborator holding the ``ideas`` collection.
        events: Collaborator that records the Event created at publish.
        clock: Returns the current aware UTC datetime.
        write_retries: Attempts per operation when a compare-and-swap loses.
    """

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

    # ── Reads ────────────────────────────────────────────────────────────

    def get_idea(self, idea_id: str) -> Idea:
        doc = self.store.get(IDEAS_COLLECTION, idea_id)
        if doc is None:
            raise NotFoundError("Idea", idea_id)
        return Idea.from_document(doc)

    def list_ideas(self, university: str | None = None) -> list[Idea]:
        filters = {"university": university} if university else None
        return [Idea.from_document(d) for d in self.store.list(IDEAS_COLLECTION, filters)]

    # ── Submission ───────────────────────────────────────────────────────

    def submit(self, draft: dict) -> Idea:
        """Create an idea at ``submitted``, held by the entry (academic) unit.

        Raises:
            ValidationError: a required intake field is missing or malformed.
        """
        fields = validate_draft(draft)
        link = validate_ancillary_link((draft or {}).get("ancillary_link"))

        attempt = 0
        while True:
            attempt += 1
            now = self.clock()
            idea = Idea(
                id=generate_idea_id(fields["university"], now),
                current_status=Stage.SUBMITTED,
                current_unit=ENTRY_UNIT_ID,
                status_history=[
                    StatusHistoryEntry(
                        status=Stage.SUBMITTED,
                        unit=ENTRY_UNIT_ID,
                        timestamp=now,
                        actor=fields["submitted_by"],
                        notes="Idea submitted",
                    )
                ],
                ancillary_link=link,
                submitted_at=now,
                updated_at=now,
                **fields,
            )
            try:
                idea.version = self.store.put(IDEAS_COLLECTION, idea.id, idea.to_document(), expected_version=0)
            except StaleWriteError:
                # Id collision: draw a new id.
                if attempt >= self.write_retries:
                    raise
                continue
            break

        logger.info(
            "Idea submitted",
            extra={
                "idea_id": idea.id,
                "university": idea.university,
                "unit": ENTRY_UNIT_ID,
                "actor": idea.submitted_by,
            },
        )
        return idea

    # ── Transitions ──────────────────────────────────────────────────────

    def approve(
        self,
        idea_id: str,
        notes: str = "",
        actor_name: str = "System",
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Move the idea one stage forward.

        External approvals is skipped only when ``requires_approval`` is
        explicitly False. Approving past the last stage completes the idea. A
        returned idea moves forward from the stage of the unit holding it.
        """

        def transition(idea: Idea) -> Idea:
            unit_id = self._acting_unit(idea, "approve", membership)
            perms = permissions_for_unit(unit_id)
            if not perms.can_approve:
                raise PermissionDenied(unit_id, "approve")
            if perms.requires_ancillary_link and not idea.ancillary_link.strip():
                raise ValidationError(
                    f"{UNITS[unit_id].display_name} requires an ancillary link before approval",
                    details={"ancillary_link": "required"},
                )

            position = effective_stage(idea.current_status, idea.current_unit)
            if position is None:
                raise InvalidTransitionError(idea.id, "approve", idea.current_status.value,
                                             "idea has no pipeline position")
            target = next_stage(position, requires_external(idea.requires_approval))
            if target is None:
                target, new_unit = Stage.COMPLETED, None
            else:
                new_unit = unit_id_for_stage(target)

            return idea.with_transition(
                status=target,
                unit=new_unit,
                entry_unit=new_unit or unit_id,
                actor=actor_name,
                notes=(notes or "").strip(),
                at=self.clock(),
            )

        return self._apply(idea_id, "approve", transition, actor_name)

    def return_idea(
        self,
        idea_id: str,
        reason: str,
        actor_name: str = "System",
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Send the idea back to the unit owning the previous stage.

        Not possible from ``submitted`` or ``academic-review``.
        """
        reason = _require_reason(reason, "return")

        def transition(idea: Idea) -> Idea:
            unit_id = self._acting_unit(idea, "return", membership)
            if not permissions_for_unit(unit_id).can_return:
                raise PermissionDenied(unit_id, "return")

            position = effective_stage(idea.current_status, idea.current_unit)
            previous = previous_stage(position)
            if previous is None:
                raise InvalidTransitionError(idea.id, "return", idea.current_status.value,
                                             "nothing upstream to return to")
            destination = unit_id_for_stage(previous)

            return idea.with_transition(
                status=Stage.RETURNED,
                unit=destination,
                entry_unit=destination,
                actor=actor_name,
                notes=reason,
                at=self.clock(),
                return_reason=reason,
            )

        return self._apply(idea_id, "return", transition, actor_name)

    def reject(
        self,
        idea_id: str,
        reason: str,
        actor_name: str = "System",
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Reject permanently. The idea stays at the rejecting unit."""
        reason = _require_reason(reason, "reject")

        def transition(idea: Idea) -> Idea:
            unit_id = self._acting_unit(idea, "reject", membership)
            if not permissions_for_unit(unit_id).can_reject:
                raise PermissionDenied(unit_id, "reject")

            return idea.with_transition(
                status=Stage.REJECTED,
                unit=unit_id,
                entry_unit=unit_id,
                actor=actor_name,
                notes=reason,
                at=self.clock(),
                rejection_reason=reason,
            )

        return self._apply(idea_id, "reject", transition, actor_name)

    def publish(
        self,
        idea_id: str,
        event_details: dict,
        actor_name: str = "Systems Unit",
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Systems → Published, creating the Event record.

        The Event is written after the idea, under the id stored on the idea,
        so a lost compare-and-swap never leaves an orphan event behind. If the
        Event write fails, the idea is put back in the systems stage and the
        store error propagates; the caller may retry the publish.
        """
        event_id = new_event_id()
        published: dict = {}

        def transition(idea: Idea) -> Idea:
            published["before"] = idea
            unit_id = self._acting_unit(idea, "publish", membership)
            if not permissions_for_unit(unit_id).can_publish:
                raise PermissionDenied(unit_id, "publish")
            if idea.current_status != Stage.SYSTEMS or unit_id != SYSTEMS_UNIT_ID:
                raise InvalidTransitionError(idea.id, "publish", idea.current_status.value,
                                             "only ideas in the systems stage can be published")

            details = validate_event_details(event_details, default_name=idea.title)
            published["details"] = details
            now = self.clock()
            return idea.with_transition(
                status=Stage.PUBLISHED,
                unit=None,
                entry_unit=unit_id,
                actor=actor_name,
                notes="Event published",
                at=now,
                event_data={**details, "date": to_iso(details["date"])},
                published_at=now,
                event_id=event_id,
            )

        idea = self._apply(idea_id, "publish", transition, actor_name)
        try:
            self.events.create_event(
                published["details"],
                university=idea.university,
                created_by=actor_name,
                idea_id=idea.id,
                event_id=event_id,
            )
        except StoreError:
            self._restore(published["before"], idea, "publish")
            raise
        return idea

    def start_verification(
        self,
        idea_id: str,
        actor_name: str = "Passport Unit",
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Published → passport verification, held by the passport unit."""

        def transition(idea: Idea) -> Idea:
            if idea.current_status != Stage.PUBLISHED:
                raise InvalidTransitionError(idea.id, "start_verification", idea.current_status.value,
                                             "only published ideas enter passport verification")
            self._check_membership(idea, PASSPORT_UNIT_ID, "start_verification", membership)
            if not permissions_for_unit(PASSPORT_UNIT_ID).can_approve:
                raise PermissionDenied(PASSPORT_UNIT_ID, "start_verification")

            return idea.with_transition(
                status=Stage.PASSPORT_VERIFICATION,
                unit=PASSPORT_UNIT_ID,
                entry_unit=PASSPORT_UNIT_ID,
                actor=actor_name,
                notes="Attendance verification started",
                at=self.clock(),
            )

        return self._apply(idea_id, "start_verification", transition, actor_name)

    def update_ancillary_link(
        self,
        idea_id: str,
        link: str,
        membership: UnitMembership | None = None,
    ) -> Idea:
        """Set or clear the shared-drive link. No history entry is appended."""

        def change(idea: Idea) -> Idea:
            if idea.current_status == Stage.REJECTED:
                raise InvalidTransitionError(idea.id, "update_ancillary_link", idea.current_status.value,
                                             "rejected ideas are read-only")
            if membership is not None:
                writers = [u for u in sorted(membership.units)
                           if u in UNITS and permissions_for_unit(u).writes_ancillary_link]
                if not writers:
                    raise PermissionDenied(",".join(sorted(membership.units)) or None,
                                           "update_ancillary_link")
                if not membership.covers_university(idea.university):
                    raise PermissionDenied(writers[0], "update_ancillary_link",
                                           f"idea belongs to {idea.university}")

            cleaned = validate_ancillary_link(link)
            return replace(idea, ancillary_link=cleaned, updated_at=self.clock())

        return self._apply(idea_id, "update_ancillary_link", change, None)

    # ── Internals ────────────────────────────────────────────────────────

    def _acting_unit(self, idea: Idea, action: str, membership: UnitMembership | None) -> str:
        """Return the unit holding the idea after the terminal/membership checks."""
        if idea.is_terminal or idea.current_unit is None:
            raise InvalidTransitionError(idea.id, action, idea.current_status.value,
                                         "idea is not held by any unit")
        self._check_membership(idea, idea.current_unit, action, membership)
        return idea.current_unit

    @staticmethod
    def _check_membership(idea: Idea, unit_id: str, action: str, membership: UnitMembership | None) -> None:
        if membership is None:
            return
        if not membership.covers_unit(unit_id):
            raise PermissionDenied(unit_id, action, "session is not a member of this unit")
        if not membership.covers_university(idea.university):
            raise PermissionDenied(unit_id, action, f"idea belongs to {idea.university}")

    def _apply(self, idea_id: str, action: str, transition: Callable[[Idea], Idea], actor: str | None) -> Idea:
        """Load, transform and compare-and-swap one idea, retrying stale writes."""
        attempt = 0
        while True:
            attempt += 1
            try:
                idea = self.get_idea(idea_id)
                updated = transition(idea)
            except DomainError as exc:
                logger.warning(
                    "Pipeline action refused: %s",
                    exc,
                    extra={"idea_id": idea_id, "action": action, "actor": actor},
                )
                raise

            try:
                updated.version = self.store.put(
                    IDEAS_COLLECTION, idea.id, updated.to_document(), expected_version=idea.version
                )
            except StaleWriteError:
                if attempt >= self.write_retries:
                    logger.warning(
                        "Pipeline write lost after %d attempts",
                        attempt,
                        extra={"idea_id": idea_id, "action": action, "actor": actor},
                    )
                    raise
                logger.warning(
                    "Stale write, retrying",
                    extra={"idea_id": idea_id, "action": action, "attempt": attempt},
                )
                continue

            logger.info(
                "Idea %s",
                action,
                extra={
                    "idea_id": updated.id,
                    "university": updated.university,
                    "unit": updated.current_unit,
                    "status": updated.current_status.value,
                    "actor": actor,
                },
            )
            return updated

    def _restore(self, before: Idea, after: Idea, action: str) -> None:
        """Put ``before`` back over ``after`` when a follow-up write failed."""
        try:
            self.store.put(IDEAS_COLLECTION, before.id, before.to_document(), expected_version=after.version)
        except StoreError:
            logger.exception(
                "Could not restore idea after failed %s",
                action,
                extra={"idea_id": before.id, "action": action},
            )
            return
        logger.warning(
            "Idea restored after failed %s",
            action,
            extra={"idea_id": before.id, "action": action, "status": before.current_status.value},
        )
