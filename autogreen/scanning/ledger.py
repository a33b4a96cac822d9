"""
Session ledger of detected products.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from autogreen.scanning.config.models import StorageKeys
from autogreen.scanning.errors import StorageError
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.storage.base import KeyValueStore
from autogreen.scanning.types import ProductRecord

logger = logging.getLogger(__name__)


class ProductLedger:
    """
    Append-only, id-deduplicated product list for the current session.

    The in-memory list is authoritative; the key-value copy is best effort.
    Before each write the previous stored list is copied to the backup key,
    and a failed write restores that backup.
    """

    def __init__(self, store: KeyValueStore, *, keys: StorageKeys) -> None:
        self._store = store
        self._keys = keys
        self._records: list[ProductRecord] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._ids

    def add(self, records: Iterable[ProductRecord]) -> list[ProductRecord]:
        """
        Append unseen records and persist the merged list. Returns the
        records that were new.
        """

        added: list[ProductRecord] = []
        for record in records:
            if record.id in self._ids:
                continue
            self._ids.add(record.id)
            self._records.append(record)
            added.append(record)

        if added:
            self._persist()
            log_event(
                logger,
                logging.DEBUG,
                "ledger_records_added",
                added=len(added),
                total=len(self._records),
            )
        return added

    def get_all(self) -> list[ProductRecord]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._ids.clear()
        try:
            self._store.delete(self._keys.products)
        except StorageError as exc:
            log_event(logger, logging.WARNING, "ledger_clear_failed", error=str(exc))

    def _persist(self) -> None:
        payload = [record.to_dict() for record in self._records]
        previous = None
        try:
            previous = self._store.get(self._keys.products)
            if previous is not None:
                self._store.set(self._keys.products_backup, previous)
            self._store.set(self._keys.products, payload)
        except StorageError as exc:
            log_event(
                logger,
                logging.WARNING,
                "ledger_persist_failed",
                records=len(payload),
                error=str(exc),
            )
            self._restore_backup(previous)

    def _restore_backup(self, previous: object) -> None:
        if previous is None:
            return
        try:
            self._store.set(self._keys.products, previous)
        except StorageError as exc:
            log_event(logger, logging.ERROR, "ledger_restore_failed", error=str(exc))
            return
        log_event(logger, logging.WARNING, "ledger_restored_from_backup")
