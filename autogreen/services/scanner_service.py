"""
autogreen/services/scanner_service.py

Service orchestration for live page-scanning sessions.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from playwright.async_api import Error as PlaywrightError

from autogreen.config import AppSettings, get_app_settings
from autogreen.domain.scan_session import ScanSession
from autogreen.scanning.browser import PlaywrightPageSurface, PlaywrightRuntime
from autogreen.scanning.clock import Clock
from autogreen.scanning.config import get_scanner_settings
from autogreen.scanning.config.models import ScannerSettings, SiteSelectorConfig
from autogreen.scanning.detector import ProductDetector
from autogreen.scanning.engine import build_product_detector, build_result_store
from autogreen.scanning.errors import ScannerNotRunningError
from autogreen.scanning.fetcher import BrowsingContextFactory
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    ResultStore,
    SQLAlchemyKeyValueStore,
)
from autogreen.scanning.surface import PageSurface

logger = logging.getLogger(__name__)


def build_key_value_store(app_settings: AppSettings) -> KeyValueStore:
    if app_settings.store_backend == "memory":
        return InMemoryKeyValueStore()

    from db.session import SessionLocal

    return SQLAlchemyKeyValueStore(session_factory=SessionLocal)


class ScannerService:
    """
    Owns at most one running detector plus the result store it writes to.
    """

    def __init__(
        self,
        *,
        settings: ScannerSettings,
        store: KeyValueStore,
        clock: Clock | None = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock or Clock()
        self._result_store = build_result_store(settings=settings, store=store, clock=self._clock)
        self._detector: ProductDetector | None = None
        self._runtime: PlaywrightRuntime | None = None
        self._session: ScanSession | None = None

    @property
    def result_store(self) -> ResultStore:
        return self._result_store

    @property
    def session(self) -> ScanSession | None:
        return self._session

    @property
    def is_running(self) -> bool:
        return self._detector is not None

    @property
    def detector(self) -> ProductDetector:
        if self._detector is None:
            raise ScannerNotRunningError("No scanning session is running.")
        return self._detector

    async def start_session(self, url: str, *, deep_scan: bool | None = None) -> ScanSession:
        """
        Open `url` in a browser and start detecting products on it.
        """

        if not url.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute http(s) URL.")

        await self.stop_session()
        runtime, surface = await self._open_page_with_retry(url)
        self._runtime = runtime
        return await self.attach(
            surface=surface,
            context_factory=runtime.context_factory(user_agent=self._settings.deep_scan.user_agent),
            deep_scan=deep_scan,
        )

    async def attach(
        self,
        *,
        surface: PageSurface,
        context_factory: BrowsingContextFactory,
        deep_scan: bool | None = None,
        sites: list[SiteSelectorConfig] | None = None,
    ) -> ScanSession:
        """
        Start a detector on an already opened page surface.
        """

        if self._detector is not None:
            await self._stop_detector()

        detector = build_product_detector(
            surface=surface,
            settings=self._settings,
            store=self._store,
            context_factory=context_factory,
            clock=self._clock,
            result_store=self._result_store,
            sites=sites,
        )
        if deep_scan is not None:
            detector.scheduler.set_enabled(deep_scan)
        detector.start()

        self._detector = detector
        self._session = ScanSession(
            url=surface.url,
            site=detector.site.name,
            started_at=self._clock.utcnow(),
            deep_scan_enabled=detector.scheduler.is_enabled,
        )
        log_event(
            logger,
            logging.INFO,
            "scan_session_started",
            url=self._session.url,
            site=self._session.site,
            deep_scan_enabled=self._session.deep_scan_enabled,
        )
        return self._session

    async def stop_session(self) -> bool:
        stopped = await self._stop_detector()
        if self._runtime is not None:
            runtime = self._runtime
            self._runtime = None
            await runtime.close()
        return stopped

    async def process_now(self) -> int:
        return await self.detector.process_visible_products()

    def export_all_data(self) -> dict[str, Any]:
        if self._detector is not None:
            return self._detector.export_all_data()
        exported = self._result_store.export()
        return {
            "products": [],
            "deep_scan_results": exported["deep_scan_results"],
            "exported_at": exported["exported_at"],
            "stats": None,
            "deep_scan_stats": None,
        }

    def clear_all_data(self) -> None:
        if self._detector is not None:
            self._detector.clear_all_data()
        else:
            self._result_store.clear()

    async def _stop_detector(self) -> bool:
        if self._detector is None:
            return False
        detector = self._detector
        self._detector = None
        self._session = None
        await detector.shutdown()
        log_event(logger, logging.INFO, "scan_session_stopped", url=detector.surface.url)
        return True

    async def _open_page_with_retry(self, url: str) -> tuple[PlaywrightRuntime, PlaywrightPageSurface]:
        """
        Launch the browser and open `url`, retrying with exponential backoff.
        """

        retries = self._settings.init_retries
        last_error: Exception | None = None
        for attempt in range(retries + 1):
            runtime: PlaywrightRuntime | None = None
            try:
                runtime = await PlaywrightRuntime.launch(headless=self._settings.headless)
                surface = await runtime.open_surface(
                    url,
                    navigation_timeout_seconds=self._settings.readiness.navigation_timeout_seconds * 3,
                )
                return runtime, surface
            except (PlaywrightError, OSError) as exc:
                last_error = exc
                if runtime is not None:
                    await runtime.close()

            if attempt >= retries:
                break

            backoff_seconds = self._settings.init_backoff_initial_seconds * (
                self._settings.init_backoff_multiplier**attempt
            )
            logger.warning(
                "Scanner startup retry attempt=%s/%s wait_seconds=%.2f url=%s error=%s",
                attempt + 1,
                retries,
                backoff_seconds,
                url,
                last_error,
            )
            await self._clock.sleep(backoff_seconds)

        logger.error("Scanner startup exhausted retries url=%s error=%s", url, last_error)
        raise RuntimeError(f"Could not open {url} for scanning: {last_error}") from last_error


@lru_cache(maxsize=1)
def get_scanner_service() -> ScannerService:
    """
    Build and cache the scanner service.
    """

    return ScannerService(
        settings=get_scanner_settings(),
        store=build_key_value_store(get_app_settings()),
    )
