"""
Scanner pipeline wiring.
"""

from __future__ import annotations

import logging

from autogreen.scanning.clock import Clock
from autogreen.scanning.config import load_site_configs
from autogreen.scanning.config.models import ScannerSettings, SiteSelectorConfig
from autogreen.scanning.detector import ProductDetector
from autogreen.scanning.fetcher import BrowsingContextFactory, IsolatedPageFetcher
from autogreen.scanning.ledger import ProductLedger
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.parsing.detail_extractor import DetailExtractor
from autogreen.scanning.policy import DeepScanPolicy
from autogreen.scanning.robots import RobotsPolicyManager
from autogreen.scanning.scheduler import DeepScanScheduler
from autogreen.scanning.storage import KeyValueStore, ResultStore
from autogreen.scanning.surface import PageSurface

logger = logging.getLogger(__name__)


def build_result_store(
    *,
    settings: ScannerSettings,
    store: KeyValueStore,
    clock: Clock,
    fallback_store: KeyValueStore | None = None,
) -> ResultStore:
    return ResultStore(
        store,
        keys=settings.storage_keys,
        settings=settings.storage,
        clock=clock,
        fallback=fallback_store,
    )


def build_product_detector(
    *,
    surface: PageSurface,
    settings: ScannerSettings,
    store: KeyValueStore,
    context_factory: BrowsingContextFactory,
    clock: Clock | None = None,
    result_store: ResultStore | None = None,
    sites: list[SiteSelectorConfig] | None = None,
    robots: RobotsPolicyManager | None = None,
) -> ProductDetector:
    """
    Assemble a detector and its deep-scan pipeline around one page surface.
    """

    clock = clock or Clock()
    if sites is None:
        sites = load_site_configs(config_path=settings.sites_config_path)
    policy = DeepScanPolicy(sites)
    if result_store is None:
        result_store = build_result_store(settings=settings, store=store, clock=clock)
    if robots is None and settings.deep_scan.respect_robots_txt:
        robots = RobotsPolicyManager(user_agent=settings.deep_scan.user_agent)

    scheduler = DeepScanScheduler(
        fetcher=IsolatedPageFetcher(context_factory, settings.readiness, clock=clock),
        extractor=DetailExtractor(clock=clock),
        result_store=result_store,
        policy=policy,
        settings=settings.deep_scan,
        clock=clock,
        flag_store=store,
        keys=settings.storage_keys,
        robots=robots,
    )
    detector = ProductDetector(
        surface=surface,
        policy=policy,
        ledger=ProductLedger(store, keys=settings.storage_keys),
        scheduler=scheduler,
        result_store=result_store,
        settings=settings,
        clock=clock,
    )
    log_event(
        logger,
        logging.INFO,
        "scanner_pipeline_built",
        url=surface.url,
        site=detector.site.name,
        sites=len(sites),
        max_concurrent=settings.deep_scan.max_concurrent,
    )
    return detector
