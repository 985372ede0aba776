# Policy Adapter Models
from policy_adapter.models.database import (
    Base,
    create_db_engine,
    create_async_db_engine,
    create_session_factory,
    create_async_session_factory,
)
from policy_adapter.models.policy import PolicyRule, POLICY_TABLE

__all__ = [
    "Base",
    "create_db_engine",
    "create_async_db_engine",
    "create_session_factory",
    "create_async_session_factory",
    "PolicyRule",
    "POLICY_TABLE",
]
