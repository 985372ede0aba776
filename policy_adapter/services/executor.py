"""
Query executors: the storage clients the policy adapters delegate I/O to.

Executors raise the underlying driver errors unchanged; the adapters decide
how to wrap them.
"""

import logging
from typing import AsyncIterator, Iterable, Iterator, Optional, Protocol

from sqlalchemy import delete, insert, inspect, select
from sqlalchemy.schema import CreateSchema

from policy_adapter.config import DatabaseConfig
from policy_adapter.models.database import (
    Base,
    create_db_engine,
    create_async_db_engine,
    create_session_factory,
    create_async_session_factory,
    is_sqlite_url,
)
from policy_adapter.models.policy import PolicyRule
from policy_adapter.services.codec import PolicyRecord, VALUE_FIELDS

logger = logging.getLogger(__name__)


SCAN_BATCH_SIZE = 500
SELECTOR_FIELDS = ("ptype",) + VALUE_FIELDS


class QueryExecutor(Protocol):
    """Synchronous storage client used by ``Adapter``."""

    def ensure_database(self) -> None: ...

    def ensure_table(self) -> None: ...

    def scan(self) -> Iterator[PolicyRecord]: ...

    def insert_many(self, records: Iterable[PolicyRecord]) -> None: ...

    def delete_all(self) -> int: ...

    def delete_where(self, selector: dict[str, str]) -> int: ...

    def dispose(self) -> None: ...


class AsyncQueryExecutor(Protocol):
    """Asynchronous storage client used by ``AsyncAdapter``."""

    async def ensure_database(self) -> None: ...

    async def ensure_table(self) -> None: ...

    def scan(self) -> AsyncIterator[PolicyRecord]: ...

    async def insert_many(self, records: Iterable[PolicyRecord]) -> None: ...

    async def delete_all(self) -> int: ...

    async def delete_where(self, selector: dict[str, str]) -> int: ...

    async def dispose(self) -> None: ...


def _to_record(row: PolicyRule) -> PolicyRecord:
    """Convert an ORM row to a record, reading NULL columns as ""."""
    return PolicyRecord(
        ptype=row.ptype or "",
        v1=row.v1 or "",
        v2=row.v2 or "",
        v3=row.v3 or "",
        v4=row.v4 or "",
        id=None if row.id is None else str(row.id),
    )


def _to_values(record: PolicyRecord) -> dict[str, str]:
    """Insert parameters for a record; the id is left to the database."""
    return record.to_selector()


def _where_clause(selector: dict[str, str]) -> list:
    unknown = set(selector) - set(SELECTOR_FIELDS)
    if unknown:
        raise ValueError(f"Unknown policy fields in selector: {sorted(unknown)}")
    return [getattr(PolicyRule, column) == value for column, value in selector.items()]


def _missing_schema(connection, schema: Optional[str]) -> bool:
    if not schema:
        return False
    return schema not in inspect(connection).get_schema_names()


def _create_policy_table(connection) -> None:
    Base.metadata.create_all(connection, tables=[PolicyRule.__table__], checkfirst=True)


class SQLAlchemyExecutor:
    """Executor backed by a synchronous SQLAlchemy engine."""

    def __init__(self, engine, schema: Optional[str] = None, owns_engine: bool = False):
        self.engine = engine
        self.schema = schema
        self._owns_engine = owns_engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SQLAlchemyExecutor":
        """Create an executor that owns its engine."""
        engine = create_db_engine(config)
        schema = None if is_sqlite_url(config.url) else config.schema
        return cls(engine, schema=schema, owns_engine=True)

    def ensure_database(self) -> None:
        """Connect, creating the configured schema if it is missing."""
        with self.engine.begin() as conn:
            if _missing_schema(conn, self.schema):
                conn.execute(CreateSchema(self.schema))
                logger.info(f"Created schema '{self.schema}'")

    def ensure_table(self) -> None:
        with self.engine.begin() as conn:
            _create_policy_table(conn)

    def scan(self) -> Iterator[PolicyRecord]:
        """Stream every policy row in store order."""
        with self._session_factory() as session:
            result = session.execute(
                select(PolicyRule).execution_options(yield_per=SCAN_BATCH_SIZE)
            )
            for row in result.scalars():
                yield _to_record(row)

    def insert_many(self, records: Iterable[PolicyRecord]) -> None:
        values = [_to_values(record) for record in records]
        if not values:
            return

        with self._session_factory() as session:
            session.execute(insert(PolicyRule), values)
            session.commit()

    def delete_all(self) -> int:
        with self._session_factory() as session:
            result = session.execute(delete(PolicyRule))
            session.commit()
            return result.rowcount

    def delete_where(self, selector: dict[str, str]) -> int:
        """Delete rows whose fields equal every value in ``selector``."""
        statement = (
            delete(PolicyRule)
            .where(*_where_clause(selector))
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session:
            result = session.execute(statement)
            session.commit()
            return result.rowcount

    def dispose(self) -> None:
        if self._owns_engine:
            self.engine.dispose()


class AsyncSQLAlchemyExecutor:
    """Executor backed by an async SQLAlchemy engine."""

    def __init__(self, engine, schema: Optional[str] = None, owns_engine: bool = False):
        self.engine = engine
        self.schema = schema
        self._owns_engine = owns_engine
        self._session_factory = create_async_session_factory(engine)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "AsyncSQLAlchemyExecutor":
        """Create an executor that owns its engine."""
        engine = create_async_db_engine(config)
        schema = None if is_sqlite_url(config.url) else config.schema
        return cls(engine, schema=schema, owns_engine=True)

    async def ensure_database(self) -> None:
        async with self.engine.begin() as conn:
            if await conn.run_sync(_missing_schema, self.schema):
                await conn.execute(CreateSchema(self.schema))
                logger.info(f"Created schema '{self.schema}'")

    async def ensure_table(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(_create_policy_table)

    async def scan(self) -> AsyncIterator[PolicyRecord]:
        async with self._session_factory() as session:
            result = await session.stream_scalars(select(PolicyRule))
            async for row in result:
                yield _to_record(row)

    async def insert_many(self, records: Iterable[PolicyRecord]) -> None:
        values = [_to_values(record) for record in records]
        if not values:
            return

        async with self._session_factory() as session:
            await session.execute(insert(PolicyRule), values)
            await session.commit()

    async def delete_all(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(PolicyRule))
            await session.commit()
            return result.rowcount

    async def delete_where(self, selector: dict[str, str]) -> int:
        statement = (
            delete(PolicyRule)
            .where(*_where_clause(selector))
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()
            return result.rowcount

    async def dispose(self) -> None:
        if self._owns_engine:
            await self.engine.dispose()
