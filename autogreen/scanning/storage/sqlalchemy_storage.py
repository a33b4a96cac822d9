"""
SQLAlchemy-backed key-value store.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autogreen.scanning.errors import StorageReadFailure, StorageWriteFailure
from autogreen.scanning.storage.base import KeyValueStore
from db.models.scan_store_entry import ScanStoreEntry


class SQLAlchemyKeyValueStore(KeyValueStore):
    """
    One `scan_store_entries` row per key; each call runs in its own session.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        try:
            with self._session_factory() as session:
                entry = session.get(ScanStoreEntry, key)
                if entry is None:
                    return default
                return entry.value
        except SQLAlchemyError as exc:
            raise StorageReadFailure(f"Failed to read {key!r}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        try:
            json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageWriteFailure(f"Value for {key!r} is not JSON serialisable: {exc}") from exc

        with self._session_factory() as session:
            try:
                entry = session.get(ScanStoreEntry, key)
                if entry is None:
                    session.add(ScanStoreEntry(key=key, value=value))
                else:
                    entry.value = value
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageWriteFailure(f"Failed to write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        with self._session_factory() as session:
            try:
                entry = session.get(ScanStoreEntry, key)
                if entry is not None:
                    session.delete(entry)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageWriteFailure(f"Failed to delete {key!r}: {exc}") from exc
