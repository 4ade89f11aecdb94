"""
Shared pytest fixtures for the Backlog & Board Service test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / admin / po / sm / dev / dev2: users with role tags
    - actor: build the Actor context for a user
    - auth_headers: bearer header for a user
    - project / epic / story / sprint / issue: a small populated project
"""

from datetime import date, timedelta

import pytest

from board_service import create_app
from board_service.core.context import Actor, Role
from board_service.models import db as _db
from board_service.models.auth import User
from board_service.services import backlog_service, board_service, project_service, sprint_service
from board_service.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Users & auth ─────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: make_user("Ada", ["PO"], is_active=True) → committed User."""
    counter = {"n": 0}

    def _make(full_name, roles, email=None, is_active=True):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            full_name=full_name,
            is_active=is_active,
        )
        user.set_roles(Role.parse_many(roles))
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user):
    return make_user("Alice Admin", ["ADMIN"])


@pytest.fixture()
def po(make_user):
    return make_user("Paula Owner", ["PO"])


@pytest.fixture()
def sm(make_user):
    return make_user("Sam Master", ["SM"])


@pytest.fixture()
def dev(make_user):
    return make_user("Dana Dev", ["DEV"])


@pytest.fixture()
def dev2(make_user):
    return make_user("Devin Second", ["DEV"])


@pytest.fixture()
def actor():
    """actor(user) → Actor with the user's resolved roles."""
    return Actor.from_user


@pytest.fixture()
def auth_headers():
    """auth_headers(user) → {"Authorization": "Bearer <jwt>"}."""

    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id)}"}

    return _headers


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def project(admin, po, sm, dev):
    """ACTIVE project owned by ``po``, run by ``sm``, with ``dev`` as member."""
    return project_service.create_project(
        {
            "name": "Checkout Revamp",
            "description": "New checkout flow",
            "owner_id": po.id,
            "scrum_master_id": sm.id,
            "member_ids": [dev.id],
        },
        Actor.from_user(admin),
    )


@pytest.fixture()
def epic(project, po):
    return backlog_service.create_epic(project.id, {"title": "Payments"}, Actor.from_user(po))


@pytest.fixture()
def story(project, epic, po):
    return backlog_service.create_story(
        project.id,
        {
            "title": "Pay with card",
            "epic_id": epic.id,
            "business_value": 80,
            "urgency": 40,
            "story_points": 5,
            "acceptance_criteria": ["Visa accepted", "Declines are shown"],
        },
        Actor.from_user(po),
    )


@pytest.fixture()
def sprint(project, sm):
    today = date.today()
    return sprint_service.create_sprint(
        project.id,
        {
            "name": "Sprint 1",
            "goal": "Card payments",
            "start_date": (today - timedelta(days=3)).isoformat(),
            "end_date": (today + timedelta(days=10)).isoformat(),
        },
        Actor.from_user(sm),
    )


@pytest.fixture()
def issue(story, sm, dev):
    """TO_DO issue under ``story`` assigned to ``dev``, 6h estimate."""
    return board_service.create_issue(
        story.id,
        {"title": "Card form", "category": "FRONTEND", "time_estimate": 6, "assignee_ids": [dev.id]},
        Actor.from_user(sm),
    )
