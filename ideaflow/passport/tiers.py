"""
Passport tier engine.

    total events   tier
    0 – 4          Explorer
    5 – 19         Scholar
    20 – 29        Mentor
    30+            Pioneer

A student's tier is always derived from their event count; callers persist
the result of ``tier_for_event_count`` whenever the count changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ideaflow.core.exceptions import ValidationError


class Tier(str, Enum):
    EXPLORER = "Explorer"
    SCHOLAR = "Scholar"
    MENTOR = "Mentor"
    PIONEER = "Pioneer"


@dataclass(frozen=True)
class TierDefinition:
    tier: Tier
    min_events: int
    max_events: int | None  # inclusive; None = unbounded
    color: str


TIER_DEFINITIONS: dict[Tier, TierDefinition] = {
    Tier.EXPLORER: TierDefinition(Tier.EXPLORER, 0, 4, "#CD7F32"),
    Tier.SCHOLAR: TierDefinition(Tier.SCHOLAR, 5, 19, "#C0C0C0"),
    Tier.MENTOR: TierDefinition(Tier.MENTOR, 20, 29, "#FFD700"),
    Tier.PIONEER: TierDefinition(Tier.PIONEER, 30, None, "#E5E4E2"),
}

_TIER_ORDER = (Tier.EXPLORER, Tier.SCHOLAR, Tier.MENTOR, Tier.PIONEER)


def coerce_tier(value) -> Tier:
    """Return the Tier for a name. Raises ValidationError for unknown names."""
    if isinstance(value, Tier):
        return value
    try:
        return Tier(value)
    except ValueError:
        valid = ", ".join(t.value for t in _TIER_ORDER)
        raise ValidationError(f"Unknown tier '{value}'. Must be one of: {valid}",
                              details={"tier": "invalid"}) from None


def tier_for_event_count(n: int) -> Tier:
    """Map a cumulative event count to its tier."""
    if isinstance(n, bool) or not isinstance(n, int):
        raise ValidationError(f"Event count must be an integer, got {n!r}")
    if n < 0:
        raise ValidationError(f"Event count cannot be negative, got {n}")
    if n >= 30:
        return Tier.PIONEER
    if n >= 20:
        return Tier.MENTOR
    if n >= 5:
        return Tier.SCHOLAR
    return Tier.EXPLORER


@dataclass(frozen=True)
class TierProgress:
    tier: Tier
    next_tier: Tier
    current: int
    range_min: int
    range_max: int  # exclusive: the count that reaches next_tier
    percent: float
    events_needed: int

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "next_tier": self.next_tier.value,
            "current": self.current,
            "range_min": self.range_min,
            "range_max": self.range_max,
            "percent": self.percent,
            "events_needed": self.events_needed,
        }


def tier_progress(tier, total_events: int) -> TierProgress | None:
    """Progress within ``tier`` toward the next one.

    Returns None for Pioneer (no next tier). ``tier`` is taken as given, so a
    manually overridden tier reports progress within its own range.
    """
    tier = coerce_tier(tier)
    if tier == Tier.PIONEER:
        return None

    next_tier = _TIER_ORDER[_TIER_ORDER.index(tier) + 1]
    range_min = TIER_DEFINITIONS[tier].min_events
    range_max = TIER_DEFINITIONS[next_tier].min_events

    raw = (total_events - range_min) / (range_max - range_min) * 100
    percent = min(max(raw, 0.0), 100.0)
    return TierProgress(
        tier=tier,
        next_tier=next_tier,
        current=total_events,
        range_min=range_min,
        range_max=range_max,
        percent=percent,
        events_needed=max(0, range_max - total_events),
    )
