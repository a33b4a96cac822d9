"""
Durable deep-scan results with a lower-durability fallback path.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import Any

from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import StorageKeys, StorageSettings
from autogreen.scanning.errors import StorageReadFailure, StorageWriteFailure
from autogreen.scanning.logging_utils import log_event, preview
from autogreen.scanning.storage.base import KeyValueStore
from autogreen.scanning.storage.memory import InMemoryKeyValueStore
from autogreen.scanning.types import (
    ExtractionMethod,
    FailureRecord,
    ProductRecord,
    ScanResult,
    StorageHealth,
    StorageStats,
)

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_WINDOW = timedelta(hours=24)
LARGE_STORE_PRODUCTS = 1000


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _scanned_at(entry: dict[str, Any]) -> datetime | None:
    return _parse_timestamp(entry.get("deep_scanned_at"))


def _scanned_ts(entry: dict[str, Any]) -> float:
    scanned = _scanned_at(entry)
    return scanned.timestamp() if scanned is not None else 0.0


def _is_failed(entry: dict[str, Any]) -> bool:
    deep_scan = entry.get("deep_scan")
    return isinstance(deep_scan, dict) and bool(deep_scan.get("error"))


def _is_failure_record(deep_scan: dict[str, Any]) -> bool:
    return deep_scan.get("extraction_method") == ExtractionMethod.FAILED


class ResultStore:
    """
    One JSON object keyed by product link under `deep_scan_data`.

    Writes that the primary store rejects land in the fallback store under
    `fallback_deep_scan_results` / `fallback_failed_scans`; reads merge both
    views so a link is reported once, newest `deep_scanned_at` first.
    """

    def __init__(
        self,
        primary: KeyValueStore,
        *,
        keys: StorageKeys,
        settings: StorageSettings,
        clock: Clock,
        fallback: KeyValueStore | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback if fallback is not None else InMemoryKeyValueStore()
        self._keys = keys
        self._settings = settings
        self._clock = clock
        # links holding a non-failure outcome; loaded on first lookup
        self._result_links: set[str] | None = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_result(self, record: ProductRecord, result: ScanResult) -> bool:
        """
        Record a deep-scan outcome. Returns whether the write was durable.
        """

        payload = result.to_dict()
        if not payload.get("extracted_at"):
            payload["extracted_at"] = self._clock.utcnow().isoformat()
        return self._store(
            record,
            payload,
            fallback_key=self._keys.fallback_results,
            event="deep_scan_result_stored",
        )

    def store_failure(self, record: ProductRecord, failure: FailureRecord) -> bool:
        return self._store(
            record,
            failure.to_dict(),
            fallback_key=self._keys.fallback_failures,
            event="deep_scan_failure_stored",
        )

    def _store(
        self,
        record: ProductRecord,
        deep_scan: dict[str, Any],
        *,
        fallback_key: str,
        event: str,
    ) -> bool:
        now = self._clock.utcnow().isoformat()
        entry = {
            **record.to_dict(),
            "deep_scan": deep_scan,
            "deep_scanned_at": now,
            "last_updated": now,
        }
        try:
            self._write_primary_entry(record.link, entry)
        except StorageWriteFailure as exc:
            log_event(
                logger,
                logging.WARNING,
                "result_store_fallback",
                link=record.link,
                error=str(exc),
            )
            if self._write_fallback_entry(fallback_key, record.link, entry):
                self._index(record.link, deep_scan)
            return False

        self._index(record.link, deep_scan)
        self._evict_fallback(record.link)
        log_event(
            logger,
            logging.INFO,
            event,
            link=record.link,
            name=preview(record.name),
            method=deep_scan.get("extraction_method"),
        )
        return True

    def _write_primary_entry(self, link: str, entry: dict[str, Any]) -> None:
        try:
            data = self._read_map(self._primary, self._keys.deep_scan_data)
        except StorageReadFailure as exc:
            raise StorageWriteFailure(f"Cannot merge into unreadable store: {exc}") from exc
        data[link] = entry
        if self._encoded_size(data) > self._settings.max_bytes:
            log_event(
                logger,
                logging.WARNING,
                "result_store_size_limit",
                size=self._encoded_size(data),
                limit=self._settings.max_bytes,
            )
            self._drop_older_than(data, self._settings.oversize_cleanup_days, keep=link)
        self._primary.set(self._keys.deep_scan_data, data)

    def _write_fallback_entry(self, key: str, link: str, entry: dict[str, Any]) -> bool:
        try:
            data = self._read_map(self._fallback, key)
            data[link] = entry
            self._fallback.set(key, data)
        except (StorageReadFailure, StorageWriteFailure) as exc:
            log_event(
                logger,
                logging.ERROR,
                "result_store_fallback_failed",
                link=link,
                error=str(exc),
            )
            return False
        return True

    def _index(self, link: str, deep_scan: dict[str, Any]) -> None:
        if self._result_links is None:
            return
        if _is_failure_record(deep_scan):
            self._result_links.discard(link)
        else:
            self._result_links.add(link)

    def _evict_fallback(self, link: str) -> None:
        for key in (self._keys.fallback_results, self._keys.fallback_failures):
            try:
                data = self._read_map(self._fallback, key)
                if link not in data:
                    continue
                del data[link]
                if data:
                    self._fallback.set(key, data)
                else:
                    self._fallback.delete(key)
            except (StorageReadFailure, StorageWriteFailure) as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "result_store_fallback_evict_failed",
                    link=link,
                    error=str(exc),
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, link: str) -> dict[str, Any] | None:
        return self.all_records().get(link)

    def get_result(self, link: str) -> ScanResult | None:
        entry = self.get(link)
        if entry is None:
            return None
        deep_scan = entry.get("deep_scan") or {}
        if _is_failure_record(deep_scan):
            return None
        return ScanResult.from_dict(deep_scan)

    def has_result(self, link: str) -> bool:
        """
        True when `link` holds a stored outcome other than a failure record.

        Answered from an index loaded by one full read and kept current by
        this instance's writes.
        """

        if self._result_links is None:
            self._result_links = {
                stored
                for stored, entry in self.all_records().items()
                if not _is_failure_record(entry.get("deep_scan") or {})
            }
        return link in self._result_links

    def all_records(self) -> dict[str, dict[str, Any]]:
        merged = self._primary_map()
        for key in (self._keys.fallback_results, self._keys.fallback_failures):
            for link, entry in self._safe_map(self._fallback, key).items():
                current = merged.get(link)
                if current is None or self._newer(entry, current):
                    merged[link] = entry
        return merged

    def fallback_records(self) -> dict[str, dict[str, Any]]:
        records: dict[str, dict[str, Any]] = {}
        for key in (self._keys.fallback_results, self._keys.fallback_failures):
            records.update(self._safe_map(self._fallback, key))
        return records

    def storage_stats(self) -> StorageStats:
        records = list(self.all_records().values())
        scanned = [stamp for stamp in (_scanned_at(entry) for entry in records) if stamp]
        return StorageStats(
            total_products=len(records),
            successful_scans=sum(1 for entry in records if not _is_failed(entry)),
            failed_scans=sum(1 for entry in records if _is_failed(entry)),
            storage_size=self._encoded_size(self._primary_map()),
            last_update=max(scanned) if scanned else None,
            fallback_records=len(self.fallback_records()),
        )

    def export(self) -> dict[str, Any]:
        records = self.all_records()
        stats = self.storage_stats()
        return {
            "deep_scan_results": records,
            "exported_at": self._clock.utcnow().isoformat(),
            "total_products": stats.total_products,
            "successful_scans": stats.successful_scans,
            "failed_scans": stats.failed_scans,
        }

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        self._primary.delete(self._keys.deep_scan_data)
        for key in (self._keys.fallback_results, self._keys.fallback_failures):
            self._fallback.delete(key)
        self._result_links = set()
        log_event(logger, logging.INFO, "result_store_cleared")

    def cleanup_old_data(self, max_age_days: int = 30) -> int:
        data = self._primary_map()
        removed = self._drop_older_than(data, max_age_days)
        if removed:
            self._primary.set(self._keys.deep_scan_data, data)
            log_event(
                logger,
                logging.INFO,
                "result_store_cleanup",
                removed=removed,
                max_age_days=max_age_days,
            )
        return removed

    def enforce_limit(self, max_products: int) -> int:
        data = self._primary_map()
        excess = len(data) - max_products
        if excess <= 0:
            return 0
        oldest_first = sorted(data.items(), key=lambda item: _scanned_ts(item[1]))
        for link, _ in oldest_first[:excess]:
            del data[link]
        self._primary.set(self._keys.deep_scan_data, data)
        self._result_links = None
        return excess

    def perform_maintenance(
        self,
        *,
        max_age_days: int = 30,
        max_products: int = LARGE_STORE_PRODUCTS,
    ) -> list[str]:
        """
        Age out old records then trim the oldest beyond `max_products`.
        """

        actions: list[str] = []
        try:
            cleaned = self.cleanup_old_data(max_age_days)
            if cleaned:
                actions.append(f"Cleaned {cleaned} old records")
            trimmed = self.enforce_limit(max_products)
            if trimmed:
                actions.append(f"Removed {trimmed} oldest records to maintain limit")
        except (StorageReadFailure, StorageWriteFailure) as exc:
            log_event(logger, logging.ERROR, "result_store_maintenance_failed", error=str(exc))
            actions.append(f"Maintenance failed: {exc}")
            return actions

        log_event(logger, logging.INFO, "result_store_maintenance", actions=actions)
        return actions

    def check_health(self) -> StorageHealth:
        stats = self.storage_stats()
        now = self._clock.utcnow()
        details = {
            "has_space": stats.storage_size < self._settings.healthy_bytes,
            "recent_activity": bool(
                stats.last_update is not None
                and now - self._aware(stats.last_update, now) < RECENT_ACTIVITY_WINDOW
            ),
            "balanced_results": stats.total_products == 0
            or stats.failed_scans / stats.total_products < self._settings.max_failure_ratio,
        }
        return StorageHealth(
            is_healthy=all(details.values()),
            details=details,
            stats=stats,
            recommendations=self._recommendations(details, stats),
        )

    def recover_from_fallback(self) -> int:
        """
        Move fallback records into the primary store. Fallback keys are
        cleared only when every record was written.
        """

        pending = self.fallback_records()
        if not pending:
            return 0
        try:
            data = self._read_map(self._primary, self._keys.deep_scan_data)
            recovered = 0
            for link, entry in pending.items():
                current = data.get(link)
                if current is None or self._newer(entry, current):
                    data[link] = entry
                recovered += 1
            self._primary.set(self._keys.deep_scan_data, data)
        except (StorageReadFailure, StorageWriteFailure) as exc:
            log_event(
                logger,
                logging.WARNING,
                "result_store_recovery_failed",
                pending=len(pending),
                error=str(exc),
            )
            return 0

        for key in (self._keys.fallback_results, self._keys.fallback_failures):
            self._fallback.delete(key)
        self._result_links = None
        log_event(logger, logging.INFO, "result_store_recovered", recovered=recovered)
        return recovered

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _primary_map(self) -> dict[str, dict[str, Any]]:
        return self._safe_map(self._primary, self._keys.deep_scan_data)

    def _safe_map(self, store: KeyValueStore, key: str) -> dict[str, dict[str, Any]]:
        try:
            return self._read_map(store, key)
        except StorageReadFailure as exc:
            log_event(logger, logging.WARNING, "result_store_read_failed", key=key, error=str(exc))
            return {}

    @staticmethod
    def _read_map(store: KeyValueStore, key: str) -> dict[str, dict[str, Any]]:
        value = store.get(key)
        return dict(value) if isinstance(value, dict) else {}

    @staticmethod
    def _encoded_size(data: dict[str, Any]) -> int:
        return len(json.dumps(data, default=str))

    @staticmethod
    def _newer(candidate: dict[str, Any], current: dict[str, Any]) -> bool:
        return _scanned_ts(candidate) > _scanned_ts(current)

    @staticmethod
    def _aware(value: datetime, reference: datetime) -> datetime:
        if value.tzinfo is None and reference.tzinfo is not None:
            return value.replace(tzinfo=reference.tzinfo)
        return value

    def _drop_older_than(
        self,
        data: dict[str, dict[str, Any]],
        max_age_days: int,
        *,
        keep: str | None = None,
    ) -> int:
        now = self._clock.utcnow()
        cutoff = now - timedelta(days=max_age_days)
        stale: list[str] = []
        for link, entry in data.items():
            scanned = _scanned_at(entry)
            if link == keep or scanned is None:
                continue
            if self._aware(scanned, now) < cutoff:
                stale.append(link)
        for link in stale:
            del data[link]
        if stale:
            self._result_links = None
        return len(stale)

    @staticmethod
    def _recommendations(details: dict[str, bool], stats: StorageStats) -> list[str]:
        recommendations: list[str] = []
        if not details["has_space"]:
            recommendations.append("Storage space is low - consider cleaning up old data")
        if not details["recent_activity"] and stats.total_products > 0:
            recommendations.append("No recent scanning activity detected")
        if not details["balanced_results"]:
            recommendations.append("High failure rate detected - check scanning configuration")
        if stats.total_products > LARGE_STORE_PRODUCTS:
            recommendations.append("Large number of stored products - consider periodic cleanup")
        if stats.fallback_records:
            recommendations.append(
                f"{stats.fallback_records} results are only in fallback storage - run recovery"
            )
        if not recommendations:
            recommendations.append("Storage system is healthy")
        return recommendations
