import sqlite3
import uuid

import pytest

from edu_hub.app import create_app
from edu_hub.app.models import Principal, Role
from edu_hub.app.services.db_service import connect, init_db
from edu_hub.app.services.query_cache import QueryCache
from edu_hub.app.services.store_service import TableStore


class SpyStore(TableStore):
    """TableStore that records the mutating calls it receives."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.inserts = []
        self.deletes = []

    def insert(self, table, row, acting_id=None):
        self.inserts.append((table, dict(row), acting_id))
        return super().insert(table, row, acting_id)

    def delete(self, table, filters, acting_id=None):
        self.deletes.append((table, dict(filters), acting_id))
        return super().delete(table, filters, acting_id)


class BrokenStore(TableStore):
    """TableStore whose connection always fails."""

    def __init__(self):
        super().__init__(self._fail)

    @staticmethod
    def _fail():
        raise sqlite3.OperationalError("database is locked")


@pytest.fixture
def app(tmp_path):
    db_path = tmp_path / "portal.db"
    init_db(db_path)
    app = create_app(
        {
            "TESTING": True,
            "DB_PATH": db_path,
            "ROLE_RETRY_WAIT": 0,
            "ROLE_RETRY_MAX_WAIT": 0,
            "LOG_LEVEL": "WARNING",
        }
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def conn(tmp_path):
    db_path = tmp_path / "store.db"
    init_db(db_path)
    c = connect(db_path)
    yield c
    c.close()


@pytest.fixture
def store(conn):
    return SpyStore(lambda: conn)


@pytest.fixture
def broken_store():
    return BrokenStore()


@pytest.fixture
def cache():
    return QueryCache()


@pytest.fixture
def make_principal(store):
    def _make(role: str | None, full_name: str = "Test User") -> Principal:
        user_id = uuid.uuid4().hex
        store.insert(
            "profiles",
            {"id": user_id, "full_name": full_name, "role": role, "created_at": "2024-01-01T00:00:00"},
        )
        return Principal(user_id, full_name, Role.accepted(role) or Role.UNKNOWN)

    return _make


def sign_up(client, email, role, full_name="Test User", password="secret123"):
    return client.post(
        "/auth",
        data={"mode": "signup", "email": email, "password": password, "full_name": full_name, "role": role},
    )
