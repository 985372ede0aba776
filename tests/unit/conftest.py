"""
Shared fixtures for policy adapter unit tests.
"""

import os
import tempfile
from pathlib import Path

import pytest
from casbin.model import Model
from sqlalchemy.exc import OperationalError

from policy_adapter.services.codec import PolicyRecord


FIXTURES_DIR = Path(__file__).parent / "fixtures"
MODEL_CONF = str(FIXTURES_DIR / "rbac_model.conf")
POLICY_CSV = str(FIXTURES_DIR / "rbac_policy.csv")


def store_error(message: str = "store unavailable") -> OperationalError:
    """Build a driver-style error as raised by SQLAlchemy."""
    return OperationalError("SELECT 1", {}, Exception(message))


class InMemoryExecutor:
    """Query executor holding rows in a list.

    ``fail_on`` maps a method name to an exception raised when it is called.
    ``fail_scan_after`` makes the scan raise after that many rows.
    """

    def __init__(self, records=None):
        self.records: list[PolicyRecord] = list(records or [])
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self.fail_scan_after: int | None = None
        self.disposed = False
        self._next_id = 1

    def _call(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def ensure_database(self):
        self._call("ensure_database")

    def ensure_table(self):
        self._call("ensure_table")

    def scan(self):
        self._call("scan")
        for index, record in enumerate(list(self.records)):
            if self.fail_scan_after is not None and index >= self.fail_scan_after:
                raise store_error("connection lost during scan")
            yield record

    def insert_many(self, records):
        self._call("insert_many")
        for record in records:
            self.records.append(
                PolicyRecord(
                    record.ptype, record.v1, record.v2, record.v3, record.v4,
                    id=str(self._next_id),
                )
            )
            self._next_id += 1

    def delete_all(self):
        self._call("delete_all")
        count = len(self.records)
        self.records = []
        return count

    def delete_where(self, selector):
        self._call("delete_where")
        kept = [
            r for r in self.records
            if not all(getattr(r, column) == value for column, value in selector.items())
        ]
        deleted = len(self.records) - len(kept)
        self.records = kept
        return deleted

    def dispose(self):
        self.calls.append("dispose")
        self.disposed = True


class AsyncInMemoryExecutor:
    """Async wrapper around ``InMemoryExecutor``."""

    def __init__(self, records=None):
        self.inner = InMemoryExecutor(records)

    async def ensure_database(self):
        self.inner.ensure_database()

    async def ensure_table(self):
        self.inner.ensure_table()

    async def scan(self):
        for record in self.inner.scan():
            yield record

    async def insert_many(self, records):
        self.inner.insert_many(records)

    async def delete_all(self):
        return self.inner.delete_all()

    async def delete_where(self, selector):
        return self.inner.delete_where(selector)

    async def dispose(self):
        self.inner.dispose()


def new_model() -> Model:
    """Create an empty RBAC model."""
    model = Model()
    model.load_model(MODEL_CONF)
    return model


@pytest.fixture
def model():
    return new_model()


@pytest.fixture
def executor():
    return InMemoryExecutor()


@pytest.fixture
def sqlite_url():
    """URL of a SQLite database file in a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "casbin.db")
        yield f"sqlite:///{db_path}"
