"""
Storage layer exports.
"""

from autogreen.scanning.storage.base import KeyValueStore
from autogreen.scanning.storage.memory import InMemoryKeyValueStore
from autogreen.scanning.storage.result_store import ResultStore
from autogreen.scanning.storage.sqlalchemy_storage import SQLAlchemyKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "ResultStore",
    "SQLAlchemyKeyValueStore",
]
