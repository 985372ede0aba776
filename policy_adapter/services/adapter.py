"""
Casbin persistence adapters.

``Adapter`` plugs into ``casbin.Enforcer``; ``AsyncAdapter`` exposes the same
operations as coroutines for ``casbin.AsyncEnforcer``. Both translate
between the enforcer's model and policy rows through the codec and hand all
I/O to a query executor.
"""

import logging
from typing import Iterator, Optional

from casbin import persist
from sqlalchemy.exc import SQLAlchemyError

from policy_adapter.config import DatabaseConfig
from policy_adapter.exceptions import (
    AdapterClosedError,
    DeleteFailedError,
    InsertFailedError,
    LoadFailedError,
    SaveFailedError,
    StoreConnectionError,
)
from policy_adapter.services.codec import PolicyRecord, encode_rule, load_record
from policy_adapter.services.executor import (
    AsyncQueryExecutor,
    AsyncSQLAlchemyExecutor,
    QueryExecutor,
    SQLAlchemyExecutor,
)
from policy_adapter.services.filters import build_filter

logger = logging.getLogger(__name__)


# Errors raised by executors for storage failures
STORE_ERRORS = (SQLAlchemyError, OSError)

# Sections written by save_policy; other sections are not persisted
SAVED_SECTIONS = ("p", "g")


def iter_model_records(model) -> Iterator[PolicyRecord]:
    """Encode every rule of the saved sections of a Casbin model."""
    for sec in SAVED_SECTIONS:
        if sec not in model.model:
            continue
        for ptype, assertion in model.model[sec].items():
            for rule in assertion.policy:
                yield encode_rule(ptype, rule)


class Adapter(persist.Adapter):
    """Synchronous adapter storing Casbin rules through a ``QueryExecutor``.

    The store is opened (database and table created if absent) on
    construction and again before every load and save.

    Usage:
        with Adapter.from_url("sqlite:///./data/casbin.db") as adapter:
            enforcer = casbin.Enforcer("model.conf", adapter)
    """

    def __init__(self, executor: QueryExecutor, owns_executor: bool = False):
        self._executor: Optional[QueryExecutor] = executor
        self._owns_executor = owns_executor
        self.open()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "Adapter":
        """Create an adapter with its own SQLAlchemy engine."""
        executor = SQLAlchemyExecutor.from_config(config)
        try:
            return cls(executor, owns_executor=True)
        except StoreConnectionError:
            executor.dispose()
            raise

    @classmethod
    def from_url(cls, url: str, schema: Optional[str] = None) -> "Adapter":
        return cls.from_config(DatabaseConfig(url=url, schema=schema))

    @property
    def executor(self) -> QueryExecutor:
        if self._executor is None:
            raise AdapterClosedError("Adapter is closed")
        return self._executor

    @property
    def closed(self) -> bool:
        return self._executor is None

    def open(self) -> None:
        """Create the database and policy table if they do not exist."""
        executor = self.executor
        try:
            executor.ensure_database()
            executor.ensure_table()
        except STORE_ERRORS as e:
            logger.error(f"Failed to open policy store: {e}")
            raise StoreConnectionError(f"Failed to open policy store: {e}") from e

    def close(self) -> None:
        """Release the executor. Safe to call more than once."""
        if self._executor is None:
            return
        if self._owns_executor:
            self._executor.dispose()
        self._executor = None
        logger.debug("Policy adapter closed")

    def __enter__(self) -> "Adapter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def load_policy(self, model) -> None:
        """Load all stored rules into ``model``.

        Rules are appended in the order the store returns them. If the scan
        fails midway, rules already appended stay in the model.
        """
        self.open()

        loaded = 0
        try:
            for record in self.executor.scan():
                if load_record(record, model):
                    loaded += 1
        except STORE_ERRORS as e:
            logger.error(f"Failed to load policy after {loaded} rules: {e}")
            raise LoadFailedError(f"Failed to load policy: {e}") from e

        logger.info(f"Loaded {loaded} policy rules")

    def save_policy(self, model) -> bool:
        """Replace every stored rule with the "p" and "g" rules of ``model``.

        The table is emptied and then refilled in one batch. The insert is
        attempted even if emptying the table fails.
        """
        self.open()
        records = list(iter_model_records(model))

        delete_error = None
        try:
            self.executor.delete_all()
        except STORE_ERRORS as e:
            logger.error(f"Failed to clear policy table, inserting anyway: {e}")
            delete_error = e

        try:
            self.executor.insert_many(records)
        except STORE_ERRORS as e:
            logger.error(f"Failed to insert {len(records)} policy rules: {e}")
            raise SaveFailedError(f"Failed to save policy: {e}") from e

        if delete_error is not None:
            raise SaveFailedError(f"Failed to clear policy table: {delete_error}") from delete_error

        logger.info(f"Saved {len(records)} policy rules")
        return True

    def add_policy(self, sec: str, ptype: str, rule: list[str]) -> bool:
        """Insert one rule. ``sec`` is implied by ``ptype`` and unused."""
        record = encode_rule(ptype, rule)
        try:
            self.executor.insert_many([record])
        except STORE_ERRORS as e:
            raise InsertFailedError(f"Failed to add {ptype} rule {rule}: {e}") from e
        return True

    def remove_policy(self, sec: str, ptype: str, rule: list[str]) -> bool:
        """Delete rows equal to ``rule``. Removing a missing rule is not an error."""
        record = encode_rule(ptype, rule)
        try:
            self.executor.delete_where(record.to_selector())
        except STORE_ERRORS as e:
            raise DeleteFailedError(f"Failed to remove {ptype} rule {rule}: {e}") from e
        return True

    def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        """Delete rows whose fields from ``field_index`` on equal ``field_values``."""
        selector = build_filter(ptype, field_index, *field_values)
        try:
            deleted = self.executor.delete_where(selector)
        except STORE_ERRORS as e:
            raise DeleteFailedError(f"Failed to remove filtered {ptype} rules: {e}") from e
        logger.debug(f"Removed {deleted} rules matching {selector}")
        return True


class AsyncAdapter:
    """Asynchronous adapter storing Casbin rules through an ``AsyncQueryExecutor``.

    Implements the interface ``casbin.AsyncEnforcer`` expects. Unlike
    ``Adapter`` it does no I/O on construction: call ``await open()`` or use
    it as an async context manager.
    """

    def __init__(self, executor: AsyncQueryExecutor, owns_executor: bool = False):
        self._executor: Optional[AsyncQueryExecutor] = executor
        self._owns_executor = owns_executor

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "AsyncAdapter":
        return cls(AsyncSQLAlchemyExecutor.from_config(config), owns_executor=True)

    @classmethod
    def from_url(cls, url: str, schema: Optional[str] = None) -> "AsyncAdapter":
        return cls.from_config(DatabaseConfig(url=url, schema=schema))

    @property
    def executor(self) -> AsyncQueryExecutor:
        if self._executor is None:
            raise AdapterClosedError("Adapter is closed")
        return self._executor

    @property
    def closed(self) -> bool:
        return self._executor is None

    async def open(self) -> None:
        executor = self.executor
        try:
            await executor.ensure_database()
            await executor.ensure_table()
        except STORE_ERRORS as e:
            logger.error(f"Failed to open policy store: {e}")
            raise StoreConnectionError(f"Failed to open policy store: {e}") from e

    async def close(self) -> None:
        if self._executor is None:
            return
        if self._owns_executor:
            await self._executor.dispose()
        self._executor = None
        logger.debug("Async policy adapter closed")

    async def __aenter__(self) -> "AsyncAdapter":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def load_policy(self, model) -> None:
        await self.open()

        loaded = 0
        try:
            async for record in self.executor.scan():
                if load_record(record, model):
                    loaded += 1
        except STORE_ERRORS as e:
            logger.error(f"Failed to load policy after {loaded} rules: {e}")
            raise LoadFailedError(f"Failed to load policy: {e}") from e

        logger.info(f"Loaded {loaded} policy rules")

    async def save_policy(self, model) -> bool:
        await self.open()
        records = list(iter_model_records(model))

        delete_error = None
        try:
            await self.executor.delete_all()
        except STORE_ERRORS as e:
            logger.error(f"Failed to clear policy table, inserting anyway: {e}")
            delete_error = e

        try:
            await self.executor.insert_many(records)
        except STORE_ERRORS as e:
            logger.error(f"Failed to insert {len(records)} policy rules: {e}")
            raise SaveFailedError(f"Failed to save policy: {e}") from e

        if delete_error is not None:
            raise SaveFailedError(f"Failed to clear policy table: {delete_error}") from delete_error

        logger.info(f"Saved {len(records)} policy rules")
        return True

    async def add_policy(self, sec: str, ptype: str, rule: list[str]) -> bool:
        record = encode_rule(ptype, rule)
        try:
            await self.executor.insert_many([record])
        except STORE_ERRORS as e:
            raise InsertFailedError(f"Failed to add {ptype} rule {rule}: {e}") from e
        return True

    async def remove_policy(self, sec: str, ptype: str, rule: list[str]) -> bool:
        record = encode_rule(ptype, rule)
        try:
            await self.executor.delete_where(record.to_selector())
        except STORE_ERRORS as e:
            raise DeleteFailedError(f"Failed to remove {ptype} rule {rule}: {e}") from e
        return True

    async def remove_filtered_policy(self, sec: str, ptype: str, field_index: int, *field_values: str) -> bool:
        selector = build_filter(ptype, field_index, *field_values)
        try:
            deleted = await self.executor.delete_where(selector)
        except STORE_ERRORS as e:
            raise DeleteFailedError(f"Failed to remove filtered {ptype} rules: {e}") from e
        logger.debug(f"Removed {deleted} rules matching {selector}")
        return True
