"""
Shared pytest fixtures for the IdeaFlow test suite.

Provides:
    - app: Flask application in the testing config, in-memory store (function-scoped)
    - sql_app: Flask application backed by the SQL document store (in-memory SQLite)
    - client: Flask test client
    - store / clock / events / pipeline / passport: services over a fresh in-memory store
    - draft_factory: builds valid submission drafts
    - idea_at: submits an idea and walks it to a given stage
    - event / student: pre-created passport fixtures
"""

from datetime import datetime, timedelta, timezone

import pytest

from ideaflow import create_app
from ideaflow.pipeline.registry import Stage
from ideaflow.services.event_service import EventService
from ideaflow.services.passport_service import PassportService
from ideaflow.services.pipeline_service import PipelineService
from ideaflow.store.memory import InMemoryDocumentStore
from ideaflow.store.sql import SqlDocumentStore

DRIVE_LINK = "https://drive.example.com/folders/abc123"
EVENT_DETAILS = {"name": "AI Hackathon", "date": "2025-04-12T16:00:00Z", "location": "Hall B"}


class FakeClock:
    """Deterministic clock; ``advance()`` moves it forward."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


# ── App fixtures ─────────────────────────────────────────────────────────


@pytest.fixture()
def app():
    """Fresh application per test so ideas never leak between tests."""
    application = create_app("testing")
    yield application
    application.extensions["ideaflow"]["feed"].close()


@pytest.fixture()
def sql_app():
    """Application on the SQL document store (in-memory SQLite)."""
    application = create_app("testing", store=SqlDocumentStore())
    yield application
    application.extensions["ideaflow"]["feed"].close()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Service fixtures ─────────────────────────────────────────────────────


@pytest.fixture()
def store():
    return InMemoryDocumentStore()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def events(store, clock):
    return EventService(store, clock=clock)


@pytest.fixture()
def pipeline(store, events, clock):
    return PipelineService(store, events, clock=clock)


@pytest.fixture()
def passport(store, events, clock):
    return PassportService(store, events, clock=clock)


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def draft_factory():
    def _make(**overrides):
        draft = {
            "submitted_by": "Lina Haddad",
            "university": "JUST",
            "title": "AI Hackathon",
            "type": "Workshop",
            "target_audience": "Engineering students",
            "goal": "Hands-on machine learning practice",
            "description": "A weekend hackathon on applied ML.",
            "estimated_attendees": 80,
            "requires_approval": True,
            "suggested_speakers": "Dr. Omar",
        }
        draft.update(overrides)
        return draft

    return _make


@pytest.fixture()
def idea_at(pipeline, draft_factory):
    """Submit an idea and move it forward until it reaches ``stage``."""

    def _make(stage, **overrides):
        target = Stage(stage)
        idea = pipeline.submit(draft_factory(**overrides))
        idea = pipeline.update_ancillary_link(idea.id, DRIVE_LINK)
        for _ in range(len(Stage)):
            if idea.current_status == target:
                return idea
            if idea.current_status == Stage.SYSTEMS:
                idea = pipeline.publish(idea.id, EVENT_DETAILS)
            elif idea.current_status == Stage.PUBLISHED:
                idea = pipeline.start_verification(idea.id)
            else:
                idea = pipeline.approve(idea.id, actor_name="Walker")
        raise AssertionError(f"idea never reached {target.value}")

    return _make


@pytest.fixture()
def event(events):
    return events.create_event(EVENT_DETAILS, university="JUST", created_by="Systems Unit")


@pytest.fixture()
def student(passport):
    return passport.enroll_student(
        full_name="Sara Nasser",
        email="sara.nasser@just.edu.jo",
        university="JUST",
        program="Computer Science",
        approved_by="Passport Unit",
    )
