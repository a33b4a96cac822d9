"""
Scroll-driven product detection on one page.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from autogreen.scanning.classifiers import EcoKeywordClassifier, TextClassifier
from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import ScannerSettings, SiteSelectorConfig
from autogreen.scanning.ledger import ProductLedger
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.parsing.record_extractor import RecordExtractor, product_id
from autogreen.scanning.policy import DeepScanPolicy
from autogreen.scanning.scheduler import DeepScanScheduler
from autogreen.scanning.storage.result_store import ResultStore
from autogreen.scanning.surface import CandidateElement, PageSurface
from autogreen.scanning.types import DeepScanStats, ScanStats, StorageStats
from autogreen.scanning.visibility import Debouncer, Throttler, VisibilityTracker

logger = logging.getLogger(__name__)


class ProductDetector:
    """
    Watches a page surface and feeds visible products into the ledger and
    the deep-scan scheduler.

    Scroll events are debounced, structure changes are throttled, and a
    main-frame navigation starts a new session.
    """

    def __init__(
        self,
        *,
        surface: PageSurface,
        policy: DeepScanPolicy,
        ledger: ProductLedger,
        scheduler: DeepScanScheduler,
        result_store: ResultStore,
        settings: ScannerSettings,
        clock: Clock,
        eco_classifier: TextClassifier | None = None,
    ) -> None:
        self._surface = surface
        self._policy = policy
        self._ledger = ledger
        self._scheduler = scheduler
        self._result_store = result_store
        self._settings = settings
        self._clock = clock
        self._eco_classifier = eco_classifier or EcoKeywordClassifier()

        performance = settings.performance
        self._tracker = VisibilityTracker(buffer_px=performance.viewport_buffer_px)
        self._debouncer = Debouncer(
            clock, performance.scroll_delay_seconds, self.process_visible_products
        )
        self._throttler = Throttler(
            clock, performance.mutation_delay_seconds, self._process_after_mutation
        )
        self._extractor = self._build_extractor(surface.url)

        self._is_processing = False
        self._total_processed = 0
        self._eco_products = 0
        self._started = False
        self._initial_task: asyncio.Task[None] | None = None

    @property
    def surface(self) -> PageSurface:
        return self._surface

    @property
    def site(self) -> SiteSelectorConfig:
        return self._extractor.site

    @property
    def scheduler(self) -> DeepScanScheduler:
        return self._scheduler

    @property
    def ledger(self) -> ProductLedger:
        return self._ledger

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._ledger.clear()
        self._surface.subscribe(
            on_scroll=self._on_scroll,
            on_mutation=self._on_mutation,
            on_navigation=self._on_navigation,
        )
        self._schedule_initial_scan()
        log_event(
            logger,
            logging.INFO,
            "detector_started",
            url=self._surface.url,
            site=self.site.name,
            deep_scan_enabled=self._scheduler.is_enabled,
        )

    def reset_session(self) -> None:
        self._debouncer.cancel()
        self._throttler.cancel()
        if self._initial_task is not None and not self._initial_task.done():
            self._initial_task.cancel()
        self._ledger.clear()
        self._total_processed = 0
        self._eco_products = 0

    async def wait_idle(self) -> None:
        """
        Wait for pending timers, processing and deep scans to settle.
        """

        while True:
            if self._initial_task is not None and not self._initial_task.done():
                await asyncio.gather(self._initial_task, return_exceptions=True)
                continue
            if self._debouncer.is_pending:
                await self._debouncer.wait_pending()
                continue
            await self._throttler.wait_pending()
            await self._scheduler.wait_idle()
            if not self._debouncer.is_pending and (
                self._initial_task is None or self._initial_task.done()
            ):
                return

    async def shutdown(self) -> None:
        self._debouncer.cancel()
        self._throttler.cancel()
        if self._initial_task is not None and not self._initial_task.done():
            self._initial_task.cancel()
            await asyncio.gather(self._initial_task, return_exceptions=True)
        await self._scheduler.shutdown()
        await self._surface.close()
        self._started = False
        log_event(logger, logging.INFO, "detector_stopped", url=self._surface.url)

    # ------------------------------------------------------------------
    # Page events
    # ------------------------------------------------------------------

    def _on_scroll(self) -> None:
        self._debouncer.trigger()

    def _on_mutation(self) -> None:
        self._throttler.trigger()

    def _on_navigation(self, url: str) -> None:
        log_event(logger, logging.INFO, "detector_navigation", url=url)
        self.reset_session()
        self._extractor = self._build_extractor(url)
        self._schedule_initial_scan()

    async def _process_after_mutation(self) -> None:
        await self._clock.sleep(self._settings.performance.mutation_delay_seconds)
        await self.process_visible_products()

    def _schedule_initial_scan(self) -> None:
        self._initial_task = asyncio.get_running_loop().create_task(self._initial_scan())

    async def _initial_scan(self) -> None:
        await self._clock.sleep(self._settings.performance.init_delay_seconds)
        await self.process_visible_products()

    def _build_extractor(self, url: str) -> RecordExtractor:
        site = self._policy.listing_site_for(url)
        if site is None:
            raise ValueError(f"No site configuration matches {url} and no 'common' fallback exists")
        return RecordExtractor(site, self._settings.validation, clock=self._clock)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def get_visible_products(self) -> list[CandidateElement]:
        candidates = await self._surface.candidates(self.site.product_container)
        viewport = await self._surface.viewport()
        return self._tracker.filter_visible(candidates, viewport)

    async def process_visible_products(self) -> int:
        """
        Extract, record and queue every unseen visible product. Returns the
        number of new records. A call made while another is running is
        dropped.
        """

        if self._is_processing:
            logger.debug("Skipping product processing; a pass is already running")
            return 0

        self._is_processing = True
        added = 0
        try:
            try:
                visible = await self.get_visible_products()
            except Exception as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "visible_products_query_failed",
                    url=self._surface.url,
                    error=str(exc),
                )
                return 0
            source_url = self._surface.url
            unseen = [
                candidate
                for candidate in visible
                if product_id(source_url, candidate.top, candidate.index) not in self._ledger
            ]
            batch_size = self._settings.performance.batch_size
            for start in range(0, len(unseen), batch_size):
                if start > 0:
                    await self._clock.sleep(self._settings.performance.batch_delay_seconds)
                added += await self._process_batch(
                    unseen[start : start + batch_size], source_url=source_url
                )
            log_event(
                logger,
                logging.INFO,
                "visible_products_processed",
                visible=len(visible),
                unseen=len(unseen),
                added=added,
                total_processed=self._total_processed,
            )
        finally:
            self._is_processing = False
        return added

    async def _process_batch(self, batch: list[CandidateElement], *, source_url: str) -> int:
        try:
            records = self._extractor.extract_many(batch, source_url=source_url)
            added = self._ledger.add(records)
            self._total_processed += len(added)
            for record in added:
                if self._eco_classifier.classify(record.name).accepted:
                    self._eco_products += 1
            if added:
                await self._scheduler.enqueue(added)
            return len(added)
        except Exception:
            logger.exception("Failed to process a batch of %s candidates", len(batch))
            return 0

    # ------------------------------------------------------------------
    # Stats and data
    # ------------------------------------------------------------------

    def get_stats(self) -> ScanStats:
        return ScanStats(
            total_processed=self._total_processed,
            currently_processing=self._is_processing,
            processed_ids=len(self._ledger),
            eco_products=self._eco_products,
        )

    def get_deep_scan_stats(self) -> DeepScanStats:
        return self._scheduler.stats()

    def toggle_deep_scan(self) -> bool:
        return self._scheduler.toggle()

    def get_storage_stats(self) -> StorageStats:
        return self._result_store.storage_stats()

    def export_all_data(self) -> dict[str, Any]:
        return {
            "products": [record.to_dict() for record in self._ledger.get_all()],
            "deep_scan_results": self._result_store.all_records(),
            "exported_at": self._clock.utcnow().isoformat(),
            "stats": asdict(self.get_stats()),
            "deep_scan_stats": asdict(self.get_deep_scan_stats()),
        }

    def clear_all_data(self) -> None:
        self._ledger.clear()
        self._scheduler.reset()
        self._result_store.clear()
        self._total_processed = 0
        self._eco_products = 0
        log_event(logger, logging.INFO, "scanner_data_cleared")
