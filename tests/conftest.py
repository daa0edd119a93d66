"""
Shared pytest fixtures for the Pitchboard test suite.

Provides:
    - app: Flask application (session-scoped, testing config)
    - _setup_db: table creation/teardown (session-scoped)
    - store: FlakyStore wrapping the SQL primary store (per test)
    - mirror: in-memory LocalCacheMirror (per test)
    - session: per-test table recreation + fresh sync wiring (autouse)
    - sync: the app's SyncContext
    - client: Flask test client
    - make_record: record factory with strictly increasing timestamps
"""

from datetime import datetime, timedelta, timezone

import pytest

from pitchboard import create_app
from pitchboard.integrations.sql_store import SqlPrimaryStore
from pitchboard.integrations.store_gateway import PrimaryStore, StoreResult
from pitchboard.models import db as _db
from pitchboard.services import EXTENSION_KEY, init_sync
from pitchboard.services.cache_mirror import LocalCacheMirror


class FlakyStore(PrimaryStore):
    """SQL primary store that can be switched to unreachable or rejecting.

    store.down()                  every operation is unreachable
    store.down("insert")          only inserts are unreachable
    store.reject("delete")        deletes are rejected by the store
    store.reject_insert_if(pred)  reject inserts whose record matches pred
    store.heal()                  back to normal
    store.calls                   [(op, collection), ...] in call order
    """

    name = "flaky"

    def __init__(self):
        self.inner = SqlPrimaryStore()
        self.calls = []
        self._failures = {}
        self._insert_predicate = None

    def down(self, *ops):
        for op in ops or ("*",):
            self._failures[op] = "down"

    def reject(self, *ops):
        for op in ops or ("*",):
            self._failures[op] = "reject"

    def reject_insert_if(self, predicate):
        self._insert_predicate = predicate

    def heal(self):
        self._failures.clear()
        self._insert_predicate = None

    def _gate(self, op, collection):
        self.calls.append((op, collection))
        kind = self._failures.get(op) or self._failures.get("*")
        if kind == "down":
            return StoreResult.unavailable("connection refused")
        if kind == "reject":
            return StoreResult.rejected("violates check constraint")
        return None

    def select_ordered(self, collection):
        return self._gate("select", collection) or self.inner.select_ordered(collection)

    def insert(self, collection, record):
        failure = self._gate("insert", collection)
        if failure:
            return failure
        if self._insert_predicate and self._insert_predicate(collection, record):
            return StoreResult.rejected("duplicate key value")
        return self.inner.insert(collection, record)

    def delete(self, collection, record_id):
        return self._gate("delete", collection) or self.inner.delete(collection, record_id)

    def delete_where_created_after(self, collection, cutoff="1900-01-01"):
        return (
            self._gate("purge", collection)
            or self.inner.delete_where_created_after(collection, cutoff)
        )

    def ping(self):
        return self._gate("ping", "winners") or self.inner.ping()


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


@pytest.fixture()
def store():
    return FlakyStore()


@pytest.fixture()
def mirror():
    return LocalCacheMirror()


@pytest.fixture(autouse=True)
def session(app, _setup_db, store, mirror):
    """Per-test: open app context, fresh tables, fresh sync wiring."""
    with app.app_context():
        _db.drop_all()
        _db.create_all()
        init_sync(app, store=store, mirror=mirror)
        yield
        _db.session.rollback()


@pytest.fixture()
def sync(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Record factory ───────────────────────────────────────────────────────

_BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture()
def make_record():
    """Return a factory producing valid records one minute apart."""
    counter = {"n": 0}

    def _make(name=None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        record = {
            "guide_id": f"G-{n:03d}",
            "name": name or f"Guide {n}",
            "department": "Support",
            "supervisor": "Morgan",
            "timestamp": (_BASE_TIME + timedelta(minutes=n)).isoformat(),
            "chat_ids": [f"chat-{n}"],
        }
        record.update(overrides)
        return record

    return _make
