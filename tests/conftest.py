"""Shared fixtures: an app on in-memory SQLite and small group builders."""

import pytest

from santadraw import create_app
from santadraw.extensions import db
from santadraw.models import INVITE_CONFIRMED
from santadraw.services.groups import create_group, invite_member

OWNER = "owner-1"


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "PUBLIC_BASE_URL": "https://santa.example",
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def owner_headers():
    return {"X-User-Id": OWNER}


@pytest.fixture
def group(app):
    return create_group(
        OWNER,
        "owner@example.com",
        name="Office Party",
        budget_min=50,
        budget_max=100,
        signup_deadline="2026-12-01",
    )


def _add_confirmed(group, count):
    """Invite and confirm ``count`` members directly, skipping the join step."""
    members = []
    for i in range(count):
        member = invite_member(group, OWNER, f"person{i}@example.com", name=f"Person {i}")
        member.user_id = f"user-{i}"
        member.invite_status = INVITE_CONFIRMED
        members.append(member)
    db.session.commit()
    return members


@pytest.fixture
def add_confirmed(app):
    return _add_confirmed


@pytest.fixture
def group_with_members(group):
    _add_confirmed(group, 4)
    return group
