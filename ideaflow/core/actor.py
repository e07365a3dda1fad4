"""
Identity collaborator types.

The session layer in front of the pipeline authenticates workers and tells
the services who is acting and for which units/university. The services trust
this input; they only check it against the idea being acted on.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class UnitMembership:
    """Units (and optionally the university) an authenticated session may act for."""

    units: frozenset[str] = field(default_factory=frozenset)
    university: str | None = None

    @classmethod
    def from_values(cls, units, university: str | None = None) -> UnitMembership:
        """Build a membership from any iterable of unit ids (or a comma string)."""
        if isinstance(units, str):
            units = units.split(",")
        cleaned = frozenset(u.strip() for u in (units or []) if u and u.strip())
        return cls(units=cleaned, university=(university or "").strip() or None)

    def covers_unit(self, unit_id: str | None) -> bool:
        return unit_id is not None and unit_id in self.units

    def covers_university(self, university: str | None) -> bool:
        if self.university is None:
            return True
        return self.university == university
