"""
Test fixtures for the Quran Hifdh tracker.

Provides app, client, auth_client and db fixtures with file-based SQLite, plus
engine fixtures backed by in-memory storage and a fixed clock. The content API
is never contacted: content tests install a client over a mocked session.
"""

from __future__ import annotations

import pytest
from datetime import datetime

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


FIXED_NOW = datetime(2026, 3, 10, 9, 30)


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app
    from extensions import ContentClientManager
    from werkzeug.security import generate_password_hash

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
        "QURAN_API_BASE_URL": "https://content.test",
    })

    with app.app_context():
        from database import init_db, run_migrations, get_db

        init_db()
        run_migrations()

        # Seed test user
        db = get_db()
        db.execute(
            "INSERT INTO users (id, email, display_name, password_hash, created_at) "
            "VALUES (1, 'test@example.com', 'Test Reader', ?, ?)",
            (generate_password_hash("testpass123"), datetime.now().isoformat()),
        )
        db.commit()

    yield app
    ContentClientManager.reset()


@pytest.fixture
def client(app):
    """Unauthenticated test client (an anonymous device)."""
    return app.test_client()


@pytest.fixture
def auth_client(app):
    """Authenticated test client (logged in as test user)."""
    client = app.test_client()
    resp = client.post("/api/auth/login", json={
        "email": "test@example.com",
        "password": "testpass123",
    })
    assert resp.status_code == 200
    return client


@pytest.fixture
def db(app):
    """Direct database access."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def storage():
    from state_store import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def store(storage):
    from state_store import StateStore
    return StateStore(storage)


class Clock:
    """Settable clock for multi-day scenarios."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def service(store, clock):
    from progress import ProgressService
    return ProgressService(store, clock=clock)
