"""
Read-side projections over the idea collection.

Pure functions of ``(ideas, params) -> list[Idea]``: nothing here mutates its
input or keeps state, so views are simply recomputed from the latest
snapshot whenever it changes.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from ideaflow.models.idea import Idea, StatusHistoryEntry
from ideaflow.pipeline.registry import Stage
from ideaflow.utils.helpers import normalize_timestamp, utcnow

LOBBY_FILTERS = ("all", "pending", "completed", "rejected")

_INACTIVE = frozenset({Stage.REJECTED, Stage.PUBLISHED, Stage.COMPLETED})
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _in_university(idea: Idea, university: str | None) -> bool:
    return university is None or idea.university == university


def ideas_for_unit(ideas: Iterable[Idea], unit_id: str, university: str | None = None) -> list[Idea]:
    """Ideas currently held by ``unit_id`` (returned and rejected ones included)."""
    return [i for i in ideas if i.current_unit == unit_id and _in_university(i, university)]


def ideas_by_status(ideas: Iterable[Idea], status, university: str | None = None) -> list[Idea]:
    stage = Stage.coerce(status)
    if stage is None:
        return []
    return [i for i in ideas if i.current_status == stage and _in_university(i, university)]


def pending_count_for_unit(ideas: Iterable[Idea], unit_id: str, university: str | None = None) -> int:
    """Ideas waiting on ``unit_id``. Rejected ideas stay at the unit but are not pending."""
    return sum(1 for i in ideas_for_unit(ideas, unit_id, university) if i.current_status != Stage.REJECTED)


def active_ideas(ideas: Iterable[Idea], university: str | None = None) -> list[Idea]:
    return [i for i in ideas if i.current_status not in _INACTIVE and _in_university(i, university)]


def published_ideas(ideas: Iterable[Idea], university: str | None = None) -> list[Idea]:
    return ideas_by_status(ideas, Stage.PUBLISHED, university)


def rejected_ideas(ideas: Iterable[Idea], university: str | None = None) -> list[Idea]:
    return ideas_by_status(ideas, Stage.REJECTED, university)


def ideas_for_lobby(ideas: Iterable[Idea], university: str, filter: str = "all") -> list[Idea]:
    """University lobby view.

        all        everything except published
        pending    everything except published and rejected
        completed  published only
        rejected   rejected only

    Unknown filters behave as ``all``.
    """
    scoped = [i for i in ideas if i.university == university]
    if filter == "completed":
        return [i for i in scoped if i.current_status == Stage.PUBLISHED]
    if filter == "rejected":
        return [i for i in scoped if i.current_status == Stage.REJECTED]
    if filter == "pending":
        return [i for i in scoped if i.current_status not in (Stage.PUBLISHED, Stage.REJECTED)]
    return [i for i in scoped if i.current_status != Stage.PUBLISHED]


def time_in_status(history: list[StatusHistoryEntry] | None, now: datetime | None = None) -> str:
    """Age of the latest history entry: ``"3d 4h"``, ``"5h"``, ``"12m"`` or ``"Unknown"``."""
    if not history:
        return "Unknown"
    since = history[-1].timestamp
    if since is None:
        return "Unknown"
    now = normalize_timestamp(now) if now is not None else utcnow()

    elapsed = max(0, int((now - since).total_seconds()))
    days, remainder = divmod(elapsed, 86400)
    hours = remainder // 3600
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h"
    return f"{elapsed // 60}m"


def sort_newest_first(ideas: Iterable[Idea]) -> list[Idea]:
    """Most recently submitted first; ideas without a timestamp sort last."""
    return sorted(ideas, key=lambda i: i.submitted_at or _EPOCH, reverse=True)
