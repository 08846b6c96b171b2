"""
Test fixtures for LexiQuest.

Provides app, client, ctx, db and profile fixtures with file-based SQLite.
Requests authenticate through the identity header the auth proxy would set.
HTTP tests must not hold an app context open across requests, so profile
helpers open their own short-lived context.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "REDIS_URL": "",
        "GOOGLE_API_KEY": "",
    })

    with app.app_context():
        from database import init_db, run_migrations

        init_db()
        run_migrations()

    yield app


@pytest.fixture
def client(app):
    """Test client; authenticate a request with headers=auth_headers(profile)."""
    return app.test_client()


@pytest.fixture
def ctx(app):
    """App context for service and store tests."""
    with app.app_context():
        yield app


@pytest.fixture
def db(ctx):
    """Direct database access for store tests."""
    from database import get_db
    yield get_db()


@pytest.fixture
def make_profile(app):
    """Factory: make_profile("ana", points=40, role="student") -> Profile."""
    from database import get_db
    from db_stores import ProfileStoreDB
    from models import to_iso

    counter = {"n": 0}

    def _make(username=None, role="student", points=0, created_at=None):
        counter["n"] += 1
        username = username or f"student{counter['n']}"
        with app.app_context():
            profile = ProfileStoreDB.create(username, role, to_iso(created_at or NOW))
            if points:
                conn = get_db()
                conn.execute("UPDATE profiles SET points = ? WHERE id = ?", (points, profile.id))
                conn.commit()
            return ProfileStoreDB.get(profile.id)

    return _make


@pytest.fixture
def student(make_profile):
    return make_profile("ana")


@pytest.fixture
def other_student(make_profile):
    return make_profile("ben")


@pytest.fixture
def teacher(make_profile):
    return make_profile("ms-lee", role="teacher")


@pytest.fixture
def auth_headers():
    """Build the identity header for a profile."""
    def _headers(profile):
        return {"X-Student-Id": str(profile.id)}
    return _headers


@pytest.fixture
def clear_badges(app):
    """Empty the built-in badge catalogue so point totals stay predictable."""
    from database import get_db

    with app.app_context():
        conn = get_db()
        conn.execute("DELETE FROM badge_definitions")
        conn.commit()


@pytest.fixture
def points_of(app):
    """Read a profile's current points total."""
    from db_stores import ProfileStoreDB

    def _points(profile_id):
        with app.app_context():
            return ProfileStoreDB.get(profile_id).points

    return _points
