"""
Isolated detail-page loading with a multi-signal readiness score.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import ReadinessSettings
from autogreen.scanning.errors import FetchBlocked, FetchTimeout
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.parsing.html_utils import select_first

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageSnapshot:
    html: str
    ready_state: str = "complete"


@dataclass(frozen=True)
class ReadinessReport:
    score: int
    max_score: int
    threshold: int
    signals: dict[str, bool] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.score >= self.threshold


@dataclass(frozen=True)
class FetchedDocument:
    """
    A loaded detail page handed to the detail extractor.
    """

    url: str
    html: str
    soup: BeautifulSoup
    readiness: ReadinessReport
    checks: int
    best_effort: bool


class BrowsingContext(ABC):
    """
    One sandboxed, invisible child browsing context.
    """

    @abstractmethod
    async def navigate(self, url: str, *, timeout_seconds: float) -> None:
        raise NotImplementedError

    @abstractmethod
    async def snapshot(self) -> PageSnapshot:
        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError


class BrowsingContextFactory(ABC):
    @abstractmethod
    async def create(self) -> BrowsingContext:
        raise NotImplementedError


def body_text(soup: BeautifulSoup) -> str:
    body = soup.body if soup.body is not None else soup
    return body.get_text(" ", strip=True)


def score_readiness(snapshot: PageSnapshot, settings: ReadinessSettings) -> ReadinessReport:
    """
    Weighted readiness: body text, ready state, content markers, content
    keywords and DOM size each add their configured weight.
    """

    soup = BeautifulSoup(snapshot.html, "html.parser")
    text = body_text(soup)
    lowered = text.lower()
    signals = {
        "body_text": len(text) > settings.min_body_text_length,
        "ready_state": snapshot.ready_state == "complete",
        "content_marker": select_first(soup, settings.content_markers) is not None,
        "content_keyword": any(keyword in lowered for keyword in settings.content_keywords),
        "node_count": len(soup.find_all(True)) > settings.min_node_count,
    }
    weights = {
        "body_text": settings.body_text_weight,
        "ready_state": settings.ready_state_weight,
        "content_marker": settings.content_marker_weight,
        "content_keyword": settings.content_keyword_weight,
        "node_count": settings.node_count_weight,
    }
    score = sum(weights[name] for name, present in signals.items() if present)
    return ReadinessReport(
        score=score,
        max_score=settings.max_score,
        threshold=settings.threshold,
        signals=signals,
    )


class IsolatedPageFetcher:
    """
    Load a URL in a fresh child context, poll readiness, always tear down.
    """

    def __init__(
        self,
        factory: BrowsingContextFactory,
        settings: ReadinessSettings,
        *,
        clock: Clock,
    ) -> None:
        self._factory = factory
        self._settings = settings
        self._clock = clock

    async def load(self, url: str) -> FetchedDocument:
        """
        Resolve with the loaded document or fail with `FetchTimeout` /
        `FetchBlocked` within `hard_timeout_seconds`.
        """

        context = await self._factory.create()
        try:
            try:
                return await asyncio.wait_for(
                    self._load_in(context, url),
                    timeout=self._settings.hard_timeout_seconds,
                )
            except asyncio.TimeoutError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "detail_fetch_timeout",
                    url=url,
                    timeout_seconds=self._settings.hard_timeout_seconds,
                )
                raise FetchTimeout(
                    f"Page loading timeout after {self._settings.hard_timeout_seconds:g}s: {url}"
                ) from exc
        finally:
            await self._teardown(context, url)

    async def _load_in(self, context: BrowsingContext, url: str) -> FetchedDocument:
        settings = self._settings
        log_event(logger, logging.INFO, "detail_fetch_started", url=url)
        await context.navigate(url, timeout_seconds=settings.navigation_timeout_seconds)
        await self._clock.sleep(settings.settle_delay_seconds)

        checks = 0
        snapshot = await context.snapshot()
        report = score_readiness(snapshot, settings)
        while not report.ready and checks < settings.max_checks:
            await self._clock.sleep(settings.check_interval_seconds)
            checks += 1
            snapshot = await context.snapshot()
            report = score_readiness(snapshot, settings)
            log_event(
                logger,
                logging.DEBUG,
                "detail_readiness_check",
                url=url,
                check=checks,
                score=report.score,
                ready=report.ready,
            )

        if report.ready:
            await self._clock.sleep(settings.post_ready_wait_seconds)
            snapshot = await context.snapshot()
        else:
            log_event(
                logger,
                logging.WARNING,
                "detail_readiness_best_effort",
                url=url,
                checks=checks,
                score=report.score,
                threshold=report.threshold,
            )

        return self._document(url, snapshot, report, checks=checks)

    def _document(
        self,
        url: str,
        snapshot: PageSnapshot,
        report: ReadinessReport,
        *,
        checks: int,
    ) -> FetchedDocument:
        soup = BeautifulSoup(snapshot.html, "html.parser")
        if len(body_text(soup)) < self._settings.min_document_text_length:
            raise FetchBlocked(f"Page appears to be empty or blocked: {url}")
        return FetchedDocument(
            url=url,
            html=snapshot.html,
            soup=soup,
            readiness=report,
            checks=checks,
            best_effort=not report.ready,
        )

    async def _teardown(self, context: BrowsingContext, url: str) -> None:
        try:
            await context.close()
        except Exception as exc:
            log_event(
                logger,
                logging.WARNING,
                "detail_context_close_failed",
                url=url,
                error=str(exc),
            )
