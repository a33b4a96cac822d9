"""
tests/test_sqlalchemy_store.py

SQLAlchemyKeyValueStore against an in-memory SQLite database.
"""

from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from autogreen.scanning.config.models import StorageKeys, StorageSettings
from autogreen.scanning.errors import StorageReadFailure, StorageWriteFailure
from autogreen.scanning.storage import ResultStore, SQLAlchemyKeyValueStore
from autogreen.scanning.types import ScanResult
from db.base import Base
from db.session import build_session_factory
from tests.support import FakeClock, lazada_link, make_record


def _engine() -> Engine:
    return create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest.fixture()
def sql_store() -> SQLAlchemyKeyValueStore:
    engine = _engine()
    Base.metadata.create_all(engine)
    return SQLAlchemyKeyValueStore(session_factory=build_session_factory(engine))


class TestSQLAlchemyKeyValueStore:
    def test_missing_key_returns_default(self, sql_store: SQLAlchemyKeyValueStore) -> None:
        assert sql_store.get("absent") is None
        assert sql_store.get("absent", {}) == {}

    def test_set_get_overwrite_delete(self, sql_store: SQLAlchemyKeyValueStore) -> None:
        sql_store.set("flag", True)
        sql_store.set("data", {"a": {"highlights": ["one"]}})
        sql_store.set("data", {"a": {"highlights": ["two"]}, "b": {}})

        assert sql_store.get("flag") is True
        assert sql_store.get("data") == {"a": {"highlights": ["two"]}, "b": {}}

        sql_store.delete("data")
        sql_store.delete("data")
        assert sql_store.get("data") is None

    def test_non_serialisable_value_is_rejected(self, sql_store: SQLAlchemyKeyValueStore) -> None:
        with pytest.raises(StorageWriteFailure):
            sql_store.set("bad", {"when": object()})
        assert sql_store.get("bad") is None

    def test_missing_table_surfaces_storage_errors(self) -> None:
        store = SQLAlchemyKeyValueStore(session_factory=build_session_factory(_engine()))
        with pytest.raises(StorageReadFailure):
            store.get("anything")
        with pytest.raises(StorageWriteFailure):
            store.set("anything", 1)

    def test_result_store_survives_a_new_instance(self, sql_store: SQLAlchemyKeyValueStore) -> None:
        clock = FakeClock()
        keys, settings = StorageKeys(), StorageSettings()
        record = make_record(lazada_link(1), number=1)

        writer = ResultStore(sql_store, keys=keys, settings=settings, clock=clock)
        assert writer.store_result(record, ScanResult(highlights=["Plastic-free packaging"]))

        reader = ResultStore(sql_store, keys=keys, settings=settings, clock=clock)
        assert reader.get_result(record.link).highlights == ["Plastic-free packaging"]
        assert reader.fallback_records() == {}
