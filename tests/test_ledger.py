"""
tests/test_ledger.py

ProductLedger: id de-duplication and best-effort persistence.
"""

from __future__ import annotations

from autogreen.scanning.config.models import StorageKeys
from autogreen.scanning.ledger import ProductLedger
from autogreen.scanning.storage import InMemoryKeyValueStore
from tests.support import FailingStore, lazada_link, make_record

KEYS = StorageKeys()


class TestProductLedger:
    def test_add_skips_known_ids(self, store: InMemoryKeyValueStore) -> None:
        ledger = ProductLedger(store, keys=KEYS)
        first = make_record(lazada_link(1), number=1)

        assert ledger.add([first]) == [first]
        assert ledger.add([first]) == []
        assert len(ledger) == 1
        assert first.id in ledger

    def test_persists_merged_list(self, store: InMemoryKeyValueStore) -> None:
        ledger = ProductLedger(store, keys=KEYS)
        ledger.add([make_record(lazada_link(1), number=1)])
        ledger.add([make_record(lazada_link(2), number=2)])

        stored = store.get(KEYS.products)
        assert [item["link"] for item in stored] == [lazada_link(1), lazada_link(2)]
        # previous list kept as backup before the second write
        assert [item["link"] for item in store.get(KEYS.products_backup)] == [lazada_link(1)]

    def test_write_failure_keeps_memory_authoritative(self) -> None:
        failing = FailingStore()
        ledger = ProductLedger(failing, keys=KEYS)
        record = make_record(lazada_link(1), number=1)

        assert ledger.add([record]) == [record]
        assert ledger.get_all() == [record]
        assert KEYS.products in failing.write_attempts

    def test_failed_write_leaves_previous_list(self) -> None:
        store = FailingStore(failing_keys=set())
        ledger = ProductLedger(store, keys=KEYS)
        ledger.add([make_record(lazada_link(1), number=1)])
        before = store.get(KEYS.products)

        store.failing_keys = {KEYS.products}
        ledger.add([make_record(lazada_link(2), number=2)])

        assert store.get(KEYS.products) == before
        assert store.get(KEYS.products_backup) == before
        assert len(ledger) == 2

    def test_clear_forgets_everything(self, store: InMemoryKeyValueStore) -> None:
        ledger = ProductLedger(store, keys=KEYS)
        record = make_record(lazada_link(1), number=1)
        ledger.add([record])

        ledger.clear()

        assert len(ledger) == 0
        assert record.id not in ledger
        assert store.get(KEYS.products) is None
