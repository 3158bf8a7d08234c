"""
Shared pytest fixtures for the SOW approval engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_stakeholder: Factory that inserts a Stakeholder row directly
"""

import pytest

from dtplanner import create_app
from dtplanner.models import db as _db
from dtplanner.models.stakeholder import Stakeholder

PROJECT_ID = 1
ASSESSMENT_ID = 10


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


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_stakeholder():
    """Insert a stakeholder via the ORM, bypassing service validation.

    Going around the service lets tests plant malformed profiles (for
    example a can_approve list holding numbers).
    """

    def _make(name="Person", project_id=PROJECT_ID, **fields) -> Stakeholder:
        fields.setdefault("role", "")
        fields.setdefault("title", "")
        for key in ("knowledge_areas", "specializations", "responsibilities", "can_approve"):
            fields.setdefault(key, [])
        s = Stakeholder(project_id=project_id, name=name, **fields)
        _db.session.add(s)
        _db.session.commit()
        return s

    return _make
