"""
autogreen/scheduler/jobs.py

APScheduler jobs that keep the deep-scan result store healthy.

Schedule (all times UTC)
--------------------------
  storage_maintenance: daily at AUTOGREEN_MAINTENANCE_HOUR:MINUTE (03:00)
  fallback_recovery:   every AUTOGREEN_FALLBACK_RECOVERY_MINUTES (15)

Lifecycle
----------
Call ``build_scheduler(service)`` once to get a configured
``AsyncIOScheduler``. It runs on the API's event loop so jobs share the
single execution context with the running detector. Start it on app boot;
shut it down on app shutdown. Wired into FastAPI via ``lifespan`` in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from autogreen.config import AppSettings, get_app_settings
from autogreen.services.scanner_service import ScannerService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Storage maintenance
# ---------------------------------------------------------------------------


async def run_storage_maintenance(
    service: ScannerService,
    *,
    max_age_days: int,
    max_products: int,
) -> list[str]:
    """
    Age out old deep-scan records and enforce the stored product limit.
    """

    logger.info("Scheduler: storage_maintenance starting")
    actions = service.result_store.perform_maintenance(
        max_age_days=max_age_days,
        max_products=max_products,
    )
    health = service.result_store.check_health()
    if not health.is_healthy:
        logger.warning(
            "Scheduler: storage_maintenance unhealthy store details=%s recommendations=%s",
            health.details,
            health.recommendations,
        )
    logger.info("Scheduler: storage_maintenance complete actions=%s", actions)
    return actions


# ---------------------------------------------------------------------------
# Job: Fallback recovery
# ---------------------------------------------------------------------------


async def run_fallback_recovery(service: ScannerService) -> int:
    """
    Move results held only in fallback storage back into the primary store.
    """

    recovered = service.result_store.recover_from_fallback()
    if recovered:
        logger.info("Scheduler: fallback_recovery recovered=%s", recovered)
    return recovered


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(
    service: ScannerService,
    *,
    settings: AppSettings | None = None,
) -> AsyncIOScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``AsyncIOScheduler``.
    """
    settings = settings or get_app_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        run_storage_maintenance,
        trigger="cron",
        hour=settings.maintenance_hour,
        minute=settings.maintenance_minute,
        args=[service],
        kwargs={
            "max_age_days": settings.maintenance_max_age_days,
            "max_products": settings.maintenance_max_products,
        },
        id="storage_maintenance",
        name="Daily result store maintenance",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_fallback_recovery,
        trigger="interval",
        minutes=settings.fallback_recovery_interval_minutes,
        args=[service],
        id="fallback_recovery",
        name="Fallback result recovery",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    return scheduler
