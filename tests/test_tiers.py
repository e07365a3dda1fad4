"""
Passport tier engine tests.

Tests cover:
  - Tier boundaries (4/5, 19/20, 29/30) and large counts
  - Rejection of negative / non-integer counts
  - Progress within a tier, including overridden tiers
"""
import pytest

from ideaflow.core.exceptions import ValidationError
from ideaflow.passport.tiers import TIER_DEFINITIONS, Tier, coerce_tier, tier_for_event_count, tier_progress


class TestTierForEventCount:
    @pytest.mark.parametrize(
        "count,expected",
        [
            (0, Tier.EXPLORER),
            (4, Tier.EXPLORER),
            (5, Tier.SCHOLAR),
            (19, Tier.SCHOLAR),
            (20, Tier.MENTOR),
            (29, Tier.MENTOR),
            (30, Tier.PIONEER),
            (1000, Tier.PIONEER),
        ],
    )
    def test_boundaries(self, count, expected):
        assert tier_for_event_count(count) == expected

    def test_monotonic(self):
        order = list(Tier)
        ranks = [order.index(tier_for_event_count(n)) for n in range(60)]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("count", [-1, -30])
    def test_negative_rejected(self, count):
        with pytest.raises(ValidationError):
            tier_for_event_count(count)

    @pytest.mark.parametrize("count", [2.5, "7", None, True])
    def test_non_integer_rejected(self, count):
        with pytest.raises(ValidationError):
            tier_for_event_count(count)

    def test_definitions_are_contiguous(self):
        defs = [TIER_DEFINITIONS[t] for t in Tier]
        for lower, upper in zip(defs, defs[1:]):
            assert upper.min_events == lower.max_events + 1
        assert defs[-1].max_events is None


class TestCoerceTier:
    def test_by_name(self):
        assert coerce_tier("Mentor") is Tier.MENTOR
        assert coerce_tier(Tier.SCHOLAR) is Tier.SCHOLAR

    def test_unknown(self):
        with pytest.raises(ValidationError) as exc:
            coerce_tier("Legend")
        assert exc.value.details == {"tier": "invalid"}


class TestTierProgress:
    def test_explorer_midway(self):
        progress = tier_progress(Tier.EXPLORER, 2)
        assert progress.next_tier == Tier.SCHOLAR
        assert progress.range_min == 0
        assert progress.range_max == 5
        assert progress.percent == pytest.approx(40.0)
        assert progress.events_needed == 3

    def test_scholar_start(self):
        progress = tier_progress("Scholar", 5)
        assert progress.percent == 0.0
        assert progress.events_needed == 15

    def test_mentor_almost_done(self):
        progress = tier_progress(Tier.MENTOR, 29)
        assert progress.next_tier == Tier.PIONEER
        assert progress.percent == pytest.approx(90.0)
        assert progress.events_needed == 1

    def test_pioneer_has_no_next(self):
        assert tier_progress(Tier.PIONEER, 42) is None

    def test_overridden_tier_is_clamped(self):
        # Promoted to Mentor by hand with only 3 events
        progress = tier_progress(Tier.MENTOR, 3)
        assert progress.percent == 0.0
        assert progress.events_needed == 27

        # Demoted to Explorer despite 12 events
        progress = tier_progress(Tier.EXPLORER, 12)
        assert progress.percent == 100.0
        assert progress.events_needed == 0

    def test_to_dict(self):
        data = tier_progress(Tier.EXPLORER, 1).to_dict()
        assert data["tier"] == "Explorer"
        assert data["next_tier"] == "Scholar"
        assert data["current"] == 1
