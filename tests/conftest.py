"""pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonledger import create_app  # noqa: E402
from salonledger.auth import Role, issue_token  # noqa: E402
from salonledger.extensions import db  # noqa: E402
from salonledger.repository import ClientRepository, Scope  # noqa: E402
from salonledger.store import MemoryDocumentStore  # noqa: E402

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "STORE_BACKEND": "sql",
    "OWNER_PIN": "9094",
}


@pytest.fixture
def app():
    flask_app = create_app(TEST_CONFIG)
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Build Authorization headers for a uid/role pair."""

    def _headers(uid: str = "owner-1", role: Role | None = Role.OWNER) -> dict[str, str]:
        with app.app_context():
            token = issue_token(uid, role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def memory_store():
    return MemoryDocumentStore()


@pytest.fixture
def repository(memory_store):
    return ClientRepository(memory_store, Scope("user-1"))
