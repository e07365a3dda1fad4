"""
Read-side projection tests.

Tests cover:
  - Unit queues and pending counts (rejected ideas excluded from pending)
  - Status / active / published / rejected views
  - University lobby filters
  - time_in_status formatting and newest-first ordering
"""
from datetime import datetime, timedelta, timezone

import pytest

from ideaflow.models.idea import StatusHistoryEntry
from ideaflow.pipeline.registry import Stage
from ideaflow.services.idea_queries import (
    active_ideas,
    ideas_by_status,
    ideas_for_lobby,
    ideas_for_unit,
    pending_count_for_unit,
    published_ideas,
    rejected_ideas,
    sort_newest_first,
    time_in_status,
)


@pytest.fixture()
def board(pipeline, idea_at, draft_factory, clock):
    """A small mixed board across two universities."""
    ideas = {}
    ideas["submitted"] = pipeline.submit(draft_factory(title="Intro to Rust"))
    clock.advance(minutes=1)
    ideas["programs"] = idea_at(Stage.PROGRAMS_PACKAGE, title="Robotics Day")
    clock.advance(minutes=1)
    rejected = idea_at(Stage.OPERATIONS, title="Night Market")
    ideas["rejected"] = pipeline.reject(rejected.id, "no venue")
    clock.advance(minutes=1)
    ideas["published"] = idea_at(Stage.PUBLISHED, title="Career Fair")
    clock.advance(minutes=1)
    returned = idea_at(Stage.OPERATIONS, title="Photo Walk")
    ideas["returned"] = pipeline.return_idea(returned.id, "add a route map")
    clock.advance(minutes=1)
    ideas["other_uni"] = pipeline.submit(draft_factory(title="Chess Open", university="YU"))
    return ideas


def _titles(ideas):
    return sorted(i.title for i in ideas)


class TestUnitQueues:
    def test_ideas_for_unit(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert _titles(ideas_for_unit(ideas, "academic")) == ["Chess Open", "Intro to Rust"]
        assert _titles(ideas_for_unit(ideas, "programs")) == ["Photo Walk", "Robotics Day"]
        assert _titles(ideas_for_unit(ideas, "operations")) == ["Night Market"]
        assert ideas_for_unit(ideas, "systems") == []

    def test_university_scope(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert _titles(ideas_for_unit(ideas, "academic", "JUST")) == ["Intro to Rust"]

    def test_pending_excludes_rejected(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert pending_count_for_unit(ideas, "operations") == 0
        assert pending_count_for_unit(ideas, "programs") == 2
        assert pending_count_for_unit(ideas, "academic", "YU") == 1


class TestStatusViews:
    def test_by_status(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert _titles(ideas_by_status(ideas, "returned")) == ["Photo Walk"]
        assert _titles(ideas_by_status(ideas, Stage.SUBMITTED, "YU")) == ["Chess Open"]
        assert ideas_by_status(ideas, "bogus") == []

    def test_active(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert _titles(active_ideas(ideas, "JUST")) == ["Intro to Rust", "Photo Walk", "Robotics Day"]

    def test_published_and_rejected(self, pipeline, board):
        ideas = pipeline.list_ideas()
        assert _titles(published_ideas(ideas)) == ["Career Fair"]
        assert _titles(rejected_ideas(ideas)) == ["Night Market"]
        assert rejected_ideas(ideas, "YU") == []


class TestLobby:
    @pytest.mark.parametrize(
        "filter,expected",
        [
            ("all", ["Intro to Rust", "Night Market", "Photo Walk", "Robotics Day"]),
            ("pending", ["Intro to Rust", "Photo Walk", "Robotics Day"]),
            ("completed", ["Career Fair"]),
            ("rejected", ["Night Market"]),
            ("whatever", ["Intro to Rust", "Night Market", "Photo Walk", "Robotics Day"]),
        ],
    )
    def test_filters(self, pipeline, board, filter, expected):
        assert _titles(ideas_for_lobby(pipeline.list_ideas(), "JUST", filter)) == expected

    def test_other_university(self, pipeline, board):
        assert _titles(ideas_for_lobby(pipeline.list_ideas(), "YU")) == ["Chess Open"]

    def test_does_not_mutate_input(self, pipeline, board):
        ideas = pipeline.list_ideas()
        before = [i.id for i in ideas]
        ideas_for_lobby(ideas, "JUST", "pending")
        sort_newest_first(ideas)
        assert [i.id for i in ideas] == before


class TestTimeInStatus:
    NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    def _history(self, delta):
        return [StatusHistoryEntry(Stage.SUBMITTED, "academic", self.NOW - delta, "Lina")]

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(days=3, hours=4, minutes=20), "3d 4h"),
            (timedelta(days=1), "1d 0h"),
            (timedelta(hours=5, minutes=59), "5h"),
            (timedelta(minutes=12, seconds=30), "12m"),
            (timedelta(seconds=20), "0m"),
        ],
    )
    def test_formats(self, delta, expected):
        assert time_in_status(self._history(delta), self.NOW) == expected

    def test_future_timestamp_is_zero(self):
        assert time_in_status(self._history(timedelta(minutes=-5)), self.NOW) == "0m"

    def test_unknown(self):
        assert time_in_status([], self.NOW) == "Unknown"
        assert time_in_status(None) == "Unknown"

    def test_uses_latest_entry(self):
        history = [
            StatusHistoryEntry(Stage.SUBMITTED, "academic", self.NOW - timedelta(days=9), "Lina"),
            StatusHistoryEntry(Stage.ACADEMIC_REVIEW, "academic", self.NOW - timedelta(hours=2), "Rami"),
        ]
        assert time_in_status(history, self.NOW) == "2h"


class TestOrdering:
    def test_newest_first(self, pipeline, board):
        ordered = sort_newest_first(pipeline.list_ideas())
        assert ordered[0].title == "Chess Open"
        assert ordered[-1].title == "Intro to Rust"
