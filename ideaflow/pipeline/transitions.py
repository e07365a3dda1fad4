"""Transition resolver: pure next/previous stage computation."""

from __future__ import annotations

from ideaflow.pipeline.registry import ORDERED_STAGES, SKIPPABLE_STAGE, Stage, UNITS


def _index(stage) -> int:
    stage = Stage.coerce(stage)
    if stage is None or stage not in ORDERED_STAGES:
        return -1
    return ORDERED_STAGES.index(stage)


def next_stage(current, requires_external_approval: bool = True) -> Stage | None:
    """Return the stage after ``current``.

    External approvals is skipped when ``requires_external_approval`` is
    False. Unknown stages, override statuses and the last stage return None.
    """
    idx = _index(current)
    if idx == -1 or idx >= len(ORDERED_STAGES) - 1:
        return None

    nxt = idx + 1
    if ORDERED_STAGES[nxt] == SKIPPABLE_STAGE and not requires_external_approval:
        nxt += 1
    if nxt >= len(ORDERED_STAGES):
        return None
    return ORDERED_STAGES[nxt]


def previous_stage(current) -> Stage | None:
    """Return the stage an idea at ``current`` is returned to.

    Nothing is upstream of academic review in the return direction, so
    ``submitted`` and ``academic-review`` (and unknown values) return None.
    """
    idx = _index(current)
    if idx <= 1:
        return None
    return ORDERED_STAGES[idx - 1]


def effective_stage(status, current_unit: str | None) -> Stage | None:
    """Return the pipeline position an idea's status stands for.

    A returned idea sits at the stage of the unit now holding it; every
    other status is its own position.
    """
    status = Stage.coerce(status)
    if status == Stage.RETURNED:
        unit = UNITS.get(current_unit) if current_unit else None
        return unit.associated_stage if unit else None
    return status


def requires_external(requires_approval) -> bool:
    """Only an explicit ``False`` skips external approvals ("unsure" does not)."""
    return requires_approval is not False
