from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import Depends, FastAPI

from autogreen.config import AppSettings, get_app_settings
from autogreen.schemas.scanner import HealthResponse
from autogreen.services.scanner_service import ScannerService, get_scanner_service


def _configure_logging(log_level: str) -> None:
    """
    Configure root logging once for the API process.
    """

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_schema() -> None:
    """
    Make sure the scan store table exists before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) missing from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


def _build_lifespan(settings: AppSettings):
    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Validate storage and start maintenance jobs on boot; stop the scanner on exit."""
        log = logging.getLogger(__name__)
        if settings.store_backend == "sqlalchemy":
            _check_schema()
            log.info("Database schema validated")

        from autogreen.scheduler.jobs import build_scheduler

        service = application.dependency_overrides.get(get_scanner_service, get_scanner_service)()
        scheduler = None
        if settings.scheduler_enabled:
            scheduler = build_scheduler(service, settings=settings)
            scheduler.start()
            log.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
                log.info("Scheduler shut down")
            await service.stop_session()

    return _lifespan


def create_app(settings: AppSettings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    settings = settings or get_app_settings()
    _configure_logging(settings.log_level)

    application = FastAPI(
        title="AutoGreen Scanner API",
        version="1.0.0",
        lifespan=_build_lifespan(settings),
    )

    from autogreen.api.routers import scanner_router

    application.include_router(scanner_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck(
        scanner_service: ScannerService = Depends(get_scanner_service),
    ) -> HealthResponse:
        return HealthResponse(status="ok", scanner_running=scanner_service.is_running)

    return application


app = create_app()
