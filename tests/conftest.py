"""
Shared pytest fixtures for the Togglelabs test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context with table recreate (autouse)
    - client: Flask test client (function-scoped)
    - org_store / flag_store: stores bound to db.session
    - make_user / auth_headers: identity helpers
"""

import pytest

from togglelabs import create_app
from togglelabs.models import db as _db
from togglelabs.services.feature_flag_store import FeatureFlagStore
from togglelabs.services.jwt_service import generate_access_token
from togglelabs.services.organization_store import OrganizationStore
from togglelabs.services.user_service import create_user

DEFAULT_PASSWORD = "s3cret-passw0rd"


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
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Store fixtures ───────────────────────────────────────────────────────


@pytest.fixture()
def org_store():
    return OrganizationStore(_db.session)


@pytest.fixture()
def flag_store():
    return FeatureFlagStore(_db.session)


# ── Identity helpers ─────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: create a persisted user with the default password."""
    def _make(email="admin@acme.io", first_name="Ada", last_name="Admin"):
        return create_user(email, DEFAULT_PASSWORD, first_name=first_name, last_name=last_name)
    return _make


@pytest.fixture()
def auth_headers():
    """Factory: Authorization header for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id)}"}
    return _headers
