"""
Database setup and engine management.
"""

import logging
from pathlib import Path

from sqlalchemy import create_engine, make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from policy_adapter.config import DatabaseConfig


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def get_database_url(config: DatabaseConfig) -> str:
    """Get the synchronous database URL from config.

    Converts async URLs to sync URLs if needed.
    e.g., sqlite+aiosqlite:// -> sqlite://
          postgresql+asyncpg:// -> postgresql://
    """
    url = config.url

    # Convert async driver to sync driver
    if "+aiosqlite" in url:
        return url.replace("+aiosqlite", "")
    elif "+asyncpg" in url:
        return url.replace("+asyncpg", "")

    return url


def get_async_database_url(config: DatabaseConfig) -> str:
    """Get the async database URL from config.

    Converts sync URLs to async URLs if needed.
    e.g., sqlite:// -> sqlite+aiosqlite://
          postgresql:// -> postgresql+asyncpg://
    """
    url = config.url

    # Already async
    if "+aiosqlite" in url or "+asyncpg" in url:
        return url

    # Convert sync driver to async driver
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://")
    elif url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")

    return url


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def _ensure_sqlite_parent_dir(url: str) -> None:
    """Ensure parent directory exists for SQLite database."""
    if is_sqlite_url(url):
        # sqlite:///./data/casbin.db is relative, sqlite:////var/lib/casbin.db absolute
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)


def _engine_options(url: str, config: DatabaseConfig) -> dict:
    """Build keyword options shared by sync and async engines."""
    options = {"echo": config.echo}
    if config.schema:
        if is_sqlite_url(url):
            # SQLite has no schemas; the file itself is the database
            logger.warning(f"Ignoring schema '{config.schema}' for SQLite database")
        else:
            options["execution_options"] = {
                "schema_translate_map": {None: config.schema},
            }
    return options


def create_db_engine(config: DatabaseConfig):
    """Create a synchronous database engine."""
    url = get_database_url(config)
    _ensure_sqlite_parent_dir(url)
    return create_engine(url, **_engine_options(url, config))


def create_async_db_engine(config: DatabaseConfig):
    """Create an async database engine."""
    url = get_async_database_url(config)
    _ensure_sqlite_parent_dir(url)
    return create_async_engine(url, **_engine_options(url, config))


def create_session_factory(engine):
    """Create a synchronous session factory."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_async_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
