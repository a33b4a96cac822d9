"""
Bounded-concurrency deep-scan queue.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from urllib.parse import urlparse

from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import DeepScanSettings, StorageKeys
from autogreen.scanning.errors import ContainerNotFound, FetchError, StorageError
from autogreen.scanning.fetcher import IsolatedPageFetcher
from autogreen.scanning.logging_utils import log_event, preview
from autogreen.scanning.parsing.detail_extractor import DetailExtractor
from autogreen.scanning.policy import DeepScanPolicy
from autogreen.scanning.robots import RobotsPolicyManager
from autogreen.scanning.storage.base import KeyValueStore
from autogreen.scanning.storage.result_store import ResultStore
from autogreen.scanning.types import (
    DeepScanEntry,
    DeepScanStats,
    FailureRecord,
    LinkState,
    ProductRecord,
    ScanResult,
)

logger = logging.getLogger(__name__)

SKIPPED_STATES = frozenset(
    {LinkState.QUEUED, LinkState.SCANNING, LinkState.STORED, LinkState.ARCHIVED}
)


class RobotsDisallowed(FetchError):
    """Raised when robots.txt forbids fetching a product page."""


class DeepScanScheduler:
    """
    FIFO queue feeding the isolated fetcher.

    A single pump task acquires a semaphore permit per dispatch; the permit
    is held through the inter-request cooldown that follows each completion,
    so at most `max_concurrent` links are in flight and consecutive
    dispatches on a permit are spaced by the configured delay. The queue,
    active counter, per-link attempt history and result writes are owned
    here and only mutated from the event loop.
    """

    def __init__(
        self,
        *,
        fetcher: IsolatedPageFetcher,
        extractor: DetailExtractor,
        result_store: ResultStore,
        policy: DeepScanPolicy,
        settings: DeepScanSettings,
        clock: Clock,
        flag_store: KeyValueStore,
        keys: StorageKeys,
        robots: RobotsPolicyManager | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._result_store = result_store
        self._policy = policy
        self._settings = settings
        self._clock = clock
        self._flag_store = flag_store
        self._keys = keys
        self._robots = robots

        self._queue: deque[DeepScanEntry] = deque()
        self._states: dict[str, str] = {}
        self._attempt_failures: dict[str, int] = {}
        self._failed_links: dict[str, int] = {}
        self._scanned: set[str] = set()
        self._archived: set[str] = set()
        self._host_delays: dict[str, float] = {}
        self._semaphore = asyncio.Semaphore(settings.max_concurrent)
        self._active = 0
        self._peak_active = 0
        self._pump_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._enabled = self._load_enabled_flag()

    # ------------------------------------------------------------------
    # Enable flag
    # ------------------------------------------------------------------

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def toggle(self) -> bool:
        return self.set_enabled(not self._enabled)

    def set_enabled(self, enabled: bool) -> bool:
        self._enabled = enabled
        try:
            self._flag_store.set(self._keys.deep_scan_enabled, enabled)
        except StorageError as exc:
            log_event(logger, logging.WARNING, "deep_scan_flag_persist_failed", error=str(exc))
        log_event(logger, logging.INFO, "deep_scan_toggled", enabled=enabled)
        if enabled and self._queue:
            self.drain()
        return self._enabled

    def _load_enabled_flag(self) -> bool:
        try:
            stored = self._flag_store.get(self._keys.deep_scan_enabled)
        except StorageError as exc:
            log_event(logger, logging.WARNING, "deep_scan_flag_read_failed", error=str(exc))
            return self._settings.enabled_by_default
        if isinstance(stored, bool):
            return stored
        return self._settings.enabled_by_default

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def link_state(self, link: str) -> str:
        return self._states.get(link, LinkState.UNSEEN)

    async def enqueue(self, records: Iterable[ProductRecord]) -> int:
        """
        Queue eligible records and kick the pump. Returns how many were
        queued.
        """

        if not self._enabled:
            return 0

        queued = 0
        for record in records:
            entry = await self._admit(record)
            if entry is None:
                continue
            self._queue.append(entry)
            self._states[record.link] = LinkState.QUEUED
            queued += 1

        if queued:
            log_event(
                logger,
                logging.INFO,
                "deep_scan_queued",
                queued=queued,
                queue_length=len(self._queue),
            )
            self.drain()
        return queued

    async def _admit(self, record: ProductRecord) -> DeepScanEntry | None:
        link = record.link
        if not link or self.link_state(link) in SKIPPED_STATES:
            return None
        if self._result_store.has_result(link):
            self._states[link] = LinkState.STORED
            self._scanned.add(link)
            return None

        decision = self._policy.evaluate(link)
        if not decision.allowed:
            log_event(
                logger,
                logging.DEBUG,
                "deep_scan_link_rejected",
                link=link,
                reason=decision.reason,
            )
            return None

        if self._robots is not None and self._settings.respect_robots_txt:
            verdict = await self._robots.check(link)
            if self.link_state(link) in SKIPPED_STATES:
                return None
            if not verdict.allowed:
                self._archive(record, RobotsDisallowed(f"Disallowed by robots.txt: {link}"))
                return None
            if verdict.crawl_delay_seconds is not None:
                self._host_delays[urlparse(link).netloc] = verdict.crawl_delay_seconds

        return DeepScanEntry(
            record=record,
            queued_at=self._clock.utcnow(),
            retry_count=self._attempt_failures.get(link, 0),
        )

    def drain(self) -> None:
        """
        Start the pump if it is not already running.
        """

        if self._pump_task is not None and not self._pump_task.done():
            return
        if not self._queue:
            return
        self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    async def _pump(self) -> None:
        while self._queue:
            await self._semaphore.acquire()
            if not self._queue:
                self._semaphore.release()
                break
            entry = self._queue.popleft()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            self._states[entry.link] = LinkState.SCANNING
            task = asyncio.get_running_loop().create_task(self._run(entry))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _run(self, entry: DeepScanEntry) -> None:
        try:
            try:
                await self._dispatch(entry)
            finally:
                self._active -= 1
            await self._clock.sleep(self._delay_for(entry.link))
        finally:
            self._semaphore.release()
        self.drain()

    def _delay_for(self, link: str) -> float:
        crawl_delay = self._host_delays.get(urlparse(link).netloc, 0.0)
        return max(self._settings.delay_between_requests_seconds, crawl_delay)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, entry: DeepScanEntry) -> None:
        link = entry.link
        log_event(
            logger,
            logging.INFO,
            "deep_scan_started",
            link=link,
            name=preview(entry.name),
            attempt=entry.retry_count + 1,
        )
        site = self._policy.site_for(link)
        try:
            document = await self._fetcher.load(link)
            try:
                result = self._extractor.extract(
                    document.soup,
                    selectors=site.detail if site is not None else None,
                    url=link,
                )
            except ContainerNotFound as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "deep_scan_minimal_record",
                    link=link,
                    error=str(exc),
                )
                result = ScanResult.fetch_failed(extracted_at=self._clock.utcnow(), error=str(exc))
        except FetchError as exc:
            self._handle_failure(entry, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected deep scan failure for %s", link)
            self._handle_failure(entry, exc)
            return

        self._handle_success(entry, result)

    def _handle_success(self, entry: DeepScanEntry, result: ScanResult) -> None:
        link = entry.link
        self._failed_links.pop(link, None)
        self._scanned.add(link)
        self._states[link] = LinkState.STORED
        durable = self._result_store.store_result(entry.record, result)
        log_event(
            logger,
            logging.INFO,
            "deep_scan_completed",
            link=link,
            method=result.extraction_method,
            durable=durable,
        )

    def _handle_failure(self, entry: DeepScanEntry, exc: BaseException) -> None:
        link = entry.link
        failures = self._attempt_failures.get(link, 0) + 1
        self._attempt_failures[link] = failures
        self._failed_links[link] = failures
        log_event(
            logger,
            logging.ERROR,
            "deep_scan_failed",
            link=link,
            error=str(exc),
            error_type=type(exc).__name__,
            failures=failures,
            max_retries=self._settings.max_retries,
        )

        if failures <= self._settings.max_retries:
            self._queue.append(entry.retried(queued_at=self._clock.utcnow()))
            self._states[link] = LinkState.QUEUED
            log_event(
                logger,
                logging.WARNING,
                "deep_scan_retry_queued",
                link=link,
                retry_count=failures,
            )
            return

        self._archive(entry.record, exc)

    def _archive(self, record: ProductRecord, exc: BaseException) -> None:
        link = record.link
        self._states[link] = LinkState.ARCHIVED
        self._archived.add(link)
        self._failed_links.setdefault(link, self._attempt_failures.get(link, 0))
        failure = FailureRecord.from_exception(exc, failed_at=self._clock.utcnow())
        self._result_store.store_failure(record, failure)
        log_event(logger, logging.WARNING, "deep_scan_archived", link=link, error=failure.error)

    # ------------------------------------------------------------------
    # Introspection and lifecycle
    # ------------------------------------------------------------------

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    @property
    def active_scanners(self) -> int:
        return self._active

    @property
    def peak_active(self) -> int:
        return self._peak_active

    def stats(self) -> DeepScanStats:
        return DeepScanStats(
            is_enabled=self._enabled,
            queue_length=len(self._queue),
            active_scanners=self._active,
            scanned_count=len(self._scanned),
            failed_count=len(self._failed_links),
            max_concurrent=self._settings.max_concurrent,
            archived_count=len(self._archived),
        )

    async def wait_idle(self) -> None:
        """
        Wait until the queue is drained and every dispatch has finished.
        """

        while True:
            pending = [task for task in (self._pump_task, *self._tasks) if task is not None]
            pending = [task for task in pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def reset(self) -> None:
        """
        Forget queued entries and per-link history. In-flight dispatches
        finish normally.
        """

        self._queue.clear()
        self._states = {
            link: state for link, state in self._states.items() if state == LinkState.SCANNING
        }
        self._attempt_failures.clear()
        self._failed_links.clear()
        self._scanned.clear()
        self._archived.clear()
        self._host_delays.clear()

    async def shutdown(self) -> None:
        self._queue.clear()
        pending = [task for task in (self._pump_task, *self._tasks) if task is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pump_task = None
        self._tasks.clear()
        log_event(logger, logging.INFO, "deep_scan_scheduler_stopped")
