"""
Tests for database models and engine setup.
"""

import os
import tempfile

import pytest

from policy_adapter.config import DatabaseConfig
from policy_adapter.models import Base, PolicyRule, create_db_engine, create_session_factory
from policy_adapter.models.database import (
    create_async_db_engine,
    get_async_database_url,
    get_database_url,
)


@pytest.fixture
def db_session():
    """Create a temporary database session for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = os.path.join(tmpdir, "test.db")
        config = DatabaseConfig(url=f"sqlite:///{db_path}")
        engine = create_db_engine(config)
        Base.metadata.create_all(engine)
        Session = create_session_factory(engine)
        session = Session()
        try:
            yield session
        finally:
            session.close()
            engine.dispose()


class TestPolicyRule:
    """Tests for PolicyRule model."""

    def test_create_rule(self, db_session):
        rule = PolicyRule(ptype="p", v1="alice", v2="data1", v3="read")
        db_session.add(rule)
        db_session.commit()

        retrieved = db_session.query(PolicyRule).filter_by(v1="alice").first()
        assert retrieved is not None
        assert retrieved.id is not None
        assert retrieved.ptype == "p"
        assert retrieved.v3 == "read"
        assert retrieved.v4 == ""

    def test_ids_are_assigned(self, db_session):
        db_session.add_all([
            PolicyRule(ptype="g", v1="alice", v2="admin"),
            PolicyRule(ptype="g", v1="bob", v2="admin"),
        ])
        db_session.commit()

        ids = [r.id for r in db_session.query(PolicyRule).all()]
        assert len(set(ids)) == 2

    def test_repr(self):
        rule = PolicyRule(ptype="p", v1="alice", v2="data1", v3="read", v4="")
        assert "ptype=p" in repr(rule)
        assert "v1=alice" in repr(rule)


class TestDatabaseUrls:
    """Tests for sync/async URL conversion."""

    def test_sync_url_from_async(self):
        assert get_database_url(DatabaseConfig(url="sqlite+aiosqlite:///./a.db")) == "sqlite:///./a.db"
        assert get_database_url(DatabaseConfig(url="postgresql+asyncpg://h/db")) == "postgresql://h/db"

    def test_sync_url_unchanged(self):
        assert get_database_url(DatabaseConfig(url="mysql://h/db")) == "mysql://h/db"

    def test_async_url_from_sync(self):
        assert get_async_database_url(DatabaseConfig(url="sqlite:///./a.db")) == "sqlite+aiosqlite:///./a.db"
        assert get_async_database_url(DatabaseConfig(url="postgresql://h/db")) == "postgresql+asyncpg://h/db"

    def test_async_url_unchanged(self):
        url = "sqlite+aiosqlite:///./a.db"
        assert get_async_database_url(DatabaseConfig(url=url)) == url

    def test_sqlite_parent_dir_created(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = os.path.join(tmpdir, "nested", "dir", "casbin.db")
            engine = create_db_engine(DatabaseConfig(url=f"sqlite:///{db_path}"))
            engine.dispose()

            assert os.path.isdir(os.path.join(tmpdir, "nested", "dir"))

    @pytest.mark.asyncio
    async def test_async_engine_uses_aiosqlite(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = os.path.join(tmpdir, "casbin.db")
            engine = create_async_db_engine(DatabaseConfig(url=f"sqlite:///{db_path}"))
            try:
                assert engine.url.drivername == "sqlite+aiosqlite"
            finally:
                await engine.dispose()
