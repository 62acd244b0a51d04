"""
Shared pytest fixtures for the Project Planner test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - user / auth_headers: a registered account and its bearer header
    - other_headers: a second account, for ownership checks
    - project: a project owned by ``user``
    - fake_gateway: MagicMock completion gateway installed on the app
"""

from unittest.mock import MagicMock

import pytest

from app import create_app
from app.models import db as _db
from app.models.project import Project
from app.models.user import User
from app.services.jwt_service import generate_access_token
from app.utils.crypto import hash_password


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


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


# ── Accounts ─────────────────────────────────────────────────────────────


def make_user(email="owner@example.com", password="s3cret-pass", **kw):
    user = User(email=email, password_hash=hash_password(password), **kw)
    _db.session.add(user)
    _db.session.commit()
    return user


def bearer(user):
    return {"Authorization": f"Bearer {generate_access_token(user.id)}"}


@pytest.fixture()
def user():
    return make_user(full_name="Olivia Owner")


@pytest.fixture()
def auth_headers(user):
    return bearer(user)


@pytest.fixture()
def other_headers():
    return bearer(make_user(email="intruder@example.com"))


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def project(user):
    """A project owned by ``user``."""
    proj = Project(user_id=user.id, name="Checkout Revamp", description="New checkout flow")
    _db.session.add(proj)
    _db.session.commit()
    return proj


@pytest.fixture()
def fake_gateway(app):
    """Replace the app's completion gateway; ``chat_json`` is a MagicMock."""
    previous = getattr(app, "_ai_gateway", None)
    gateway = MagicMock()
    gateway.model_name = "test-model"
    app._ai_gateway = gateway
    yield gateway
    if previous is None:
        del app._ai_gateway
    else:
        app._ai_gateway = previous
