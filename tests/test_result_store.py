"""
tests/test_result_store.py

ResultStore writes, merged reads, fallback path and maintenance.

Coverage
--------
- Result round trip and failure records
- Stored-link index answers lookups with a single store read
- Primary write failure lands in fallback and stays visible
- Primary success evicts the fallback copy; recovery moves fallback home
- Stats, export, age-out, size limit and health report
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from autogreen.scanning.config.models import StorageKeys, StorageSettings
from autogreen.scanning.errors import FetchTimeout
from autogreen.scanning.storage import InMemoryKeyValueStore, ResultStore
from autogreen.scanning.types import ExtractionMethod, FailureRecord, ScanResult
from tests.support import FailingStore, FakeClock, lazada_link, make_record

KEYS = StorageKeys()


def _result(clock: FakeClock, *highlights: str) -> ScanResult:
    return ScanResult(
        highlights=list(highlights),
        ingredients=["Bamboo handle"],
        specifications={"Brand": "EcoSmile"},
        extracted_at=clock.utcnow(),
        price="$12.90",
    )


def _store(primary, clock: FakeClock, fallback=None, **settings) -> ResultStore:
    return ResultStore(
        primary,
        keys=KEYS,
        settings=StorageSettings(**settings),
        clock=clock,
        fallback=fallback,
    )


# ---------------------------------------------------------------------------
# Writes and reads
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_result_round_trip(self, store, clock) -> None:
        results = _store(store, clock)
        record = make_record(lazada_link(1), number=1)

        assert results.store_result(record, _result(clock, "Compostable handle"))

        loaded = results.get_result(record.link)
        assert loaded.highlights == ["Compostable handle"]
        assert loaded.ingredients == ["Bamboo handle"]
        assert loaded.specifications == {"Brand": "EcoSmile"}
        assert loaded.price == "$12.90"
        assert results.has_result(record.link)
        entry = results.get(record.link)
        assert entry["name"] == record.name
        assert entry["deep_scanned_at"] == clock.utcnow().isoformat()

    def test_failure_is_not_a_result(self, store, clock) -> None:
        results = _store(store, clock)
        record = make_record(lazada_link(1), number=1)
        failure = FailureRecord.from_exception(FetchTimeout("slow"), failed_at=clock.utcnow())

        assert results.store_failure(record, failure)

        assert results.get_result(record.link) is None
        assert not results.has_result(record.link)
        assert results.get(record.link)["deep_scan"]["error_type"] == "FetchTimeout"

    def test_fetch_failed_counts_as_stored_but_failed(self, store, clock) -> None:
        results = _store(store, clock)
        record = make_record(lazada_link(1), number=1)
        results.store_result(
            record,
            ScanResult.fetch_failed(extracted_at=clock.utcnow(), error="no container"),
        )

        assert results.has_result(record.link)
        stats = results.storage_stats()
        assert (stats.successful_scans, stats.failed_scans) == (0, 1)

    def test_later_write_replaces_entry(self, store, clock) -> None:
        results = _store(store, clock)
        record = make_record(lazada_link(1), number=1)
        results.store_result(record, _result(clock, "First"))
        clock.advance(60)
        results.store_result(record, _result(clock, "Second"))

        assert results.get_result(record.link).highlights == ["Second"]
        assert results.storage_stats().total_products == 1


class CountingStore(InMemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.reads: list[str] = []

    def get(self, key: str, default=None):
        self.reads.append(key)
        return super().get(key, default)


class TestResultIndex:
    def test_repeated_lookups_read_the_store_once(self, clock) -> None:
        primary = CountingStore()
        _store(primary, clock).store_result(
            make_record(lazada_link(1), number=1), _result(clock)
        )
        results = _store(primary, clock)
        primary.reads.clear()

        assert results.has_result(lazada_link(1))
        assert not results.has_result(lazada_link(2))
        assert not results.has_result(lazada_link(3))
        assert primary.reads == [KEYS.deep_scan_data]

    def test_index_follows_writes_failures_and_clear(self, store, clock) -> None:
        results = _store(store, clock)
        record = make_record(lazada_link(1), number=1)
        assert not results.has_result(record.link)

        results.store_result(record, _result(clock))
        assert results.has_result(record.link)

        clock.advance(10)
        failure = FailureRecord.from_exception(FetchTimeout("slow"), failed_at=clock.utcnow())
        results.store_failure(record, failure)
        assert not results.has_result(record.link)

        results.store_result(record, _result(clock))
        results.clear()
        assert not results.has_result(record.link)

    def test_fallback_write_is_indexed(self, clock) -> None:
        results = _store(FailingStore(failing_keys={KEYS.deep_scan_data}), clock)
        record = make_record(lazada_link(1), number=1)
        assert not results.has_result(record.link)

        assert results.store_result(record, _result(clock)) is False
        assert results.has_result(record.link)

    def test_index_reloads_after_trimming(self, store, clock) -> None:
        results = _store(store, clock)
        for number in range(1, 4):
            results.store_result(make_record(lazada_link(number), number=number), _result(clock))
            clock.advance(10)
        assert results.has_result(lazada_link(1))

        assert results.enforce_limit(1) == 2
        assert not results.has_result(lazada_link(1))
        assert results.has_result(lazada_link(3))


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------


class TestFallback:
    def test_primary_write_failure_is_visible_from_fallback(self, clock) -> None:
        fallback = InMemoryKeyValueStore()
        results = _store(FailingStore(failing_keys={KEYS.deep_scan_data}), clock, fallback)
        record = make_record(lazada_link(1), number=1)

        durable = results.store_result(record, _result(clock, "Kept in fallback"))

        assert durable is False
        assert results.get_result(record.link).highlights == ["Kept in fallback"]
        assert list(fallback.get(KEYS.fallback_results)) == [record.link]
        stats = results.storage_stats()
        assert stats.total_products == 1
        assert stats.fallback_records == 1

    def test_failures_use_their_own_fallback_key(self, clock) -> None:
        fallback = InMemoryKeyValueStore()
        results = _store(FailingStore(), clock, fallback)
        record = make_record(lazada_link(1), number=1)
        failure = FailureRecord.from_exception(RuntimeError("boom"), failed_at=clock.utcnow())

        assert results.store_failure(record, failure) is False
        assert list(fallback.get(KEYS.fallback_failures)) == [record.link]

    def test_primary_success_evicts_fallback_copy(self, clock) -> None:
        primary = FailingStore(failing_keys={KEYS.deep_scan_data})
        fallback = InMemoryKeyValueStore()
        results = _store(primary, clock, fallback)
        record = make_record(lazada_link(1), number=1)
        results.store_result(record, _result(clock, "Fallback"))

        primary.failing_keys = set()
        clock.advance(1)
        assert results.store_result(record, _result(clock, "Primary"))

        assert fallback.get(KEYS.fallback_results) is None
        assert results.fallback_records() == {}
        assert results.get_result(record.link).highlights == ["Primary"]

    def test_recover_from_fallback(self, clock) -> None:
        primary = FailingStore(failing_keys={KEYS.deep_scan_data})
        fallback = InMemoryKeyValueStore()
        results = _store(primary, clock, fallback)
        for number in (1, 2):
            results.store_result(make_record(lazada_link(number), number=number), _result(clock))

        assert results.recover_from_fallback() == 0

        primary.failing_keys = set()
        assert results.recover_from_fallback() == 2
        assert results.fallback_records() == {}
        assert set(primary.get(KEYS.deep_scan_data)) == {lazada_link(1), lazada_link(2)}

    def test_unreadable_primary_writes_to_fallback(self, clock) -> None:
        primary = FailingStore(failing_keys=set(), fail_reads=True)
        fallback = InMemoryKeyValueStore()
        results = _store(primary, clock, fallback)

        assert results.store_result(make_record(lazada_link(1), number=1), _result(clock)) is False
        assert results.storage_stats().total_products == 1


# ---------------------------------------------------------------------------
# Reporting and maintenance
# ---------------------------------------------------------------------------


class TestMaintenance:
    def test_export_and_clear(self, store, clock) -> None:
        results = _store(store, clock)
        results.store_result(make_record(lazada_link(1), number=1), _result(clock))

        exported = results.export()
        assert set(exported["deep_scan_results"]) == {lazada_link(1)}
        assert exported["total_products"] == 1
        assert exported["exported_at"] == clock.utcnow().isoformat()

        results.clear()
        assert results.storage_stats().total_products == 0

    def test_cleanup_old_data(self, store, clock) -> None:
        results = _store(store, clock)
        results.store_result(make_record(lazada_link(1), number=1), _result(clock))
        clock.advance(timedelta(days=31).total_seconds())
        results.store_result(make_record(lazada_link(2), number=2), _result(clock))

        assert results.cleanup_old_data(30) == 1
        assert set(results.all_records()) == {lazada_link(2)}

    def test_enforce_limit_drops_oldest(self, store, clock) -> None:
        results = _store(store, clock)
        for number in range(1, 5):
            results.store_result(make_record(lazada_link(number), number=number), _result(clock))
            clock.advance(10)

        assert results.enforce_limit(2) == 2
        assert set(results.all_records()) == {lazada_link(3), lazada_link(4)}
        assert results.enforce_limit(2) == 0

    def test_perform_maintenance_reports_actions(self, store, clock) -> None:
        results = _store(store, clock)
        for number in range(1, 4):
            results.store_result(make_record(lazada_link(number), number=number), _result(clock))
            clock.advance(10)

        actions = results.perform_maintenance(max_age_days=30, max_products=1)
        assert actions == ["Removed 2 oldest records to maintain limit"]

    def test_oversized_write_ages_out_week_old_records(self, clock) -> None:
        results = _store(InMemoryKeyValueStore(), clock, max_bytes=1500)
        results.store_result(make_record(lazada_link(1), number=1), _result(clock, "x" * 600))
        clock.advance(timedelta(days=8).total_seconds())
        results.store_result(make_record(lazada_link(2), number=2), _result(clock, "y" * 600))

        assert set(results.all_records()) == {lazada_link(2)}

    def test_health(self, store, clock) -> None:
        results = _store(store, clock)
        empty = results.check_health()
        assert empty.details["recent_activity"] is False
        assert not empty.is_healthy

        results.store_result(make_record(lazada_link(1), number=1), _result(clock))
        health = results.check_health()
        assert health.is_healthy
        assert health.recommendations == ["Storage system is healthy"]

    @pytest.mark.parametrize("failed", [4, 5])
    def test_high_failure_ratio_is_unhealthy(self, store, clock, failed: int) -> None:
        results = _store(store, clock)
        for number in range(5):
            record = make_record(lazada_link(number), number=number)
            if number < failed:
                failure = FailureRecord.from_exception(RuntimeError("x"), failed_at=clock.utcnow())
                results.store_failure(record, failure)
            else:
                results.store_result(record, _result(clock))

        health = results.check_health()
        assert health.details["balanced_results"] is (failed / 5 < 0.8)
        if failed == 5:
            assert "High failure rate detected - check scanning configuration" in (
                health.recommendations
            )
        assert results.get_result(lazada_link(0)) is None
        deep_scan = results.get(lazada_link(0))["deep_scan"]
        assert deep_scan["extraction_method"] == ExtractionMethod.FAILED
