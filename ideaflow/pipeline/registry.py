"""
Stage / Unit registry — static pipeline configuration.

    submitted → academic-review → programs-package → operations
      → [external-approvals] → systems → published
      → passport-verification → completed

``returned`` and ``rejected`` are idea statuses, not pipeline positions.

The permission table is exhaustive: every unit id has an explicit
PermissionSet and ``validate_registry()`` runs at import time, so a missing or
stray entry fails at startup instead of silently granting nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ideaflow.core.exceptions import ConfigurationError, NotFoundError


class Stage(str, Enum):
    SUBMITTED = "submitted"
    ACADEMIC_REVIEW = "academic-review"
    PROGRAMS_PACKAGE = "programs-package"
    OPERATIONS = "operations"
    EXTERNAL_APPROVALS = "external-approvals"
    SYSTEMS = "systems"
    PUBLISHED = "published"
    PASSPORT_VERIFICATION = "passport-verification"
    COMPLETED = "completed"
    # Override statuses (not part of ORDERED_STAGES)
    RETURNED = "returned"
    REJECTED = "rejected"

    @classmethod
    def coerce(cls, value) -> Stage | None:
        """Return the Stage for a wire value, or None if it is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


ORDERED_STAGES: tuple[Stage, ...] = (
    Stage.SUBMITTED,
    Stage.ACADEMIC_REVIEW,
    Stage.PROGRAMS_PACKAGE,
    Stage.OPERATIONS,
    Stage.EXTERNAL_APPROVALS,
    Stage.SYSTEMS,
    Stage.PUBLISHED,
    Stage.PASSPORT_VERIFICATION,
    Stage.COMPLETED,
)

# The only stage next_stage() may skip.
SKIPPABLE_STAGE = Stage.EXTERNAL_APPROVALS

TERMINAL_STATUSES = frozenset({Stage.COMPLETED, Stage.REJECTED})


@dataclass(frozen=True)
class PermissionSet:
    can_approve: bool = False
    can_reject: bool = False
    can_return: bool = False
    requires_ancillary_link: bool = False
    views_ancillary_link: bool = False
    can_publish: bool = False

    @property
    def writes_ancillary_link(self) -> bool:
        return self.requires_ancillary_link or self.views_ancillary_link

    def to_dict(self) -> dict:
        return {
            "can_approve": self.can_approve,
            "can_reject": self.can_reject,
            "can_return": self.can_return,
            "requires_ancillary_link": self.requires_ancillary_link,
            "views_ancillary_link": self.views_ancillary_link,
            "can_publish": self.can_publish,
        }


@dataclass(frozen=True)
class Unit:
    id: str
    display_name: str
    color_hint: str
    associated_stage: Stage
    description: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "color_hint": self.color_hint,
            "associated_stage": self.associated_stage.value,
            "description": self.description,
            "permissions": permissions_for_unit(self.id).to_dict(),
        }


# ── Units ────────────────────────────────────────────────────────────────────

UNITS: dict[str, Unit] = {
    unit.id: unit
    for unit in (
        Unit("academic", "Academic Unit", "#4CAF50", Stage.ACADEMIC_REVIEW,
             "Reviews academic value and learning outcomes"),
        Unit("programs", "Programs Unit", "#2196F3", Stage.PROGRAMS_PACKAGE,
             "Prepares program structure and event design"),
        Unit("operations", "Operations Unit", "#607D8B", Stage.OPERATIONS,
             "Handles feasibility and logistics"),
        Unit("external", "External Approvals", "#9C27B0", Stage.EXTERNAL_APPROVALS,
             "Secures official permissions and approvals"),
        Unit("systems", "Systems Unit", "#FF5722", Stage.SYSTEMS,
             "Creates and publishes events on platform"),
        Unit("passport", "Passport Unit", "#009688", Stage.PASSPORT_VERIFICATION,
             "Manages attendance and passport credits"),
    )
}

# Unit that receives every newly submitted idea.
ENTRY_UNIT_ID = "academic"

UNIT_PERMISSIONS: dict[str, PermissionSet] = {
    "academic": PermissionSet(can_approve=True, can_reject=True,
                              requires_ancillary_link=True, views_ancillary_link=True),
    "programs": PermissionSet(can_approve=True, can_return=True, views_ancillary_link=True),
    "operations": PermissionSet(can_approve=True, can_reject=True, can_return=True),
    "external": PermissionSet(can_approve=True, can_reject=True, can_return=True),
    "systems": PermissionSet(can_publish=True),
    "passport": PermissionSet(can_approve=True),
}

# Status display metadata for every status value
STATUS_CONFIG: dict[Stage, dict[str, str]] = {
    Stage.SUBMITTED: {"label": "Submitted", "color": "#FFA726"},
    Stage.ACADEMIC_REVIEW: {"label": "Academic Review", "color": "#4CAF50"},
    Stage.PROGRAMS_PACKAGE: {"label": "Programs Package", "color": "#2196F3"},
    Stage.OPERATIONS: {"label": "Operations Review", "color": "#607D8B"},
    Stage.EXTERNAL_APPROVALS: {"label": "External Approvals", "color": "#9C27B0"},
    Stage.SYSTEMS: {"label": "Systems Processing", "color": "#FF5722"},
    Stage.PUBLISHED: {"label": "Event Published", "color": "#00C853"},
    Stage.PASSPORT_VERIFICATION: {"label": "Passport Verification", "color": "#009688"},
    Stage.COMPLETED: {"label": "Completed", "color": "#1a1a1a"},
    Stage.RETURNED: {"label": "Returned", "color": "#FF9800"},
    Stage.REJECTED: {"label": "Rejected", "color": "#F44336"},
}

_STAGE_TO_UNIT: dict[Stage, Unit] = {unit.associated_stage: unit for unit in UNITS.values()}


# ── Lookups ──────────────────────────────────────────────────────────────────


def get_unit(unit_id: str) -> Unit:
    """Return the Unit for an id. Raises NotFoundError for unknown ids."""
    unit = UNITS.get(unit_id)
    if unit is None:
        raise NotFoundError("Unit", unit_id)
    return unit


def unit_for_stage(stage) -> Unit | None:
    """Return the unit owning a stage, or None (submitted, published, completed, overrides)."""
    stage = Stage.coerce(stage)
    if stage is None:
        return None
    return _STAGE_TO_UNIT.get(stage)


def unit_id_for_stage(stage) -> str | None:
    unit = unit_for_stage(stage)
    return unit.id if unit else None


def permissions_for_unit(unit_id: str) -> PermissionSet:
    """Return the PermissionSet for a unit. Raises NotFoundError for unknown ids."""
    perms = UNIT_PERMISSIONS.get(unit_id)
    if perms is None:
        raise NotFoundError("Unit", unit_id)
    return perms


def validate_registry(
    units: dict[str, Unit] | None = None,
    permissions: dict[str, PermissionSet] | None = None,
) -> None:
    """Check the unit table and the permission table describe the same units.

    Raises ConfigurationError listing every problem found.
    """
    units = UNITS if units is None else units
    permissions = UNIT_PERMISSIONS if permissions is None else permissions

    problems = []
    for unit_id, unit in units.items():
        if unit.id != unit_id:
            problems.append(f"unit key '{unit_id}' does not match unit id '{unit.id}'")
        if unit_id not in permissions:
            problems.append(f"unit '{unit_id}' has no PermissionSet")
        elif not isinstance(permissions[unit_id], PermissionSet):
            problems.append(f"unit '{unit_id}' permissions are not a PermissionSet")
        if unit.associated_stage not in ORDERED_STAGES:
            problems.append(f"unit '{unit_id}' is bound to non-pipeline stage '{unit.associated_stage}'")
    for unit_id in permissions:
        if unit_id not in units:
            problems.append(f"PermissionSet defined for unknown unit '{unit_id}'")

    stages = [unit.associated_stage for unit in units.values()]
    if len(stages) != len(set(stages)):
        problems.append("two units are bound to the same stage")

    if problems:
        raise ConfigurationError("Invalid pipeline registry: " + "; ".join(problems))


validate_registry()
