"""Storage interface and implementations."""

from workforce_engine.storage.base import Storage, require_record
from workforce_engine.storage.memory import InMemoryStorage
from workforce_engine.storage.sqlalchemy_store import SqlAlchemyStorage

__all__ = [
    "InMemoryStorage",
    "SqlAlchemyStorage",
    "Storage",
    "require_record",
]
