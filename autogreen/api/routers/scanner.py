"""
autogreen/api/routers/scanner.py

Scanner session, stats, deep-scan and storage endpoints.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, status

from autogreen.scanning.errors import ScannerNotRunningError, StorageError
from autogreen.schemas.scanner import (
    ClearDataResponse,
    DeepScanStatsResponse,
    DeepScanToggleResponse,
    ExportResponse,
    ProcessResponse,
    ScanSessionResponse,
    ScanStatsResponse,
    SessionStoppedResponse,
    StartSessionRequest,
    StorageHealthResponse,
    StorageStatsResponse,
)
from autogreen.services.scanner_service import ScannerService, get_scanner_service

router = APIRouter(prefix="/scanner", tags=["scanner"])


def _not_running(exc: ScannerNotRunningError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _storage_unavailable(exc: StorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.post("/sessions", response_model=ScanSessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: StartSessionRequest,
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> ScanSessionResponse:
    """
    Open a listing page in the browser and start detecting products.
    """

    try:
        session = await scanner_service.start_session(payload.url, deep_scan=payload.deep_scan)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScanSessionResponse(**asdict(session))


@router.delete("/sessions", response_model=SessionStoppedResponse)
async def stop_session(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> SessionStoppedResponse:
    return SessionStoppedResponse(stopped=await scanner_service.stop_session())


@router.post("/process", response_model=ProcessResponse)
async def process_visible_products(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> ProcessResponse:
    """
    Run one detection pass over the currently visible products.
    """

    try:
        added = await scanner_service.process_now()
        stats = scanner_service.detector.get_stats()
    except ScannerNotRunningError as exc:
        raise _not_running(exc) from exc
    return ProcessResponse(added=added, stats=ScanStatsResponse(**asdict(stats)))


@router.get("/stats", response_model=ScanStatsResponse)
async def get_stats(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> ScanStatsResponse:
    try:
        stats = scanner_service.detector.get_stats()
    except ScannerNotRunningError as exc:
        raise _not_running(exc) from exc
    return ScanStatsResponse(**asdict(stats))


@router.get("/deep-scan/stats", response_model=DeepScanStatsResponse)
async def get_deep_scan_stats(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> DeepScanStatsResponse:
    try:
        stats = scanner_service.detector.get_deep_scan_stats()
    except ScannerNotRunningError as exc:
        raise _not_running(exc) from exc
    return DeepScanStatsResponse(**asdict(stats))


@router.post("/deep-scan/toggle", response_model=DeepScanToggleResponse)
async def toggle_deep_scan(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> DeepScanToggleResponse:
    try:
        enabled = scanner_service.detector.toggle_deep_scan()
    except ScannerNotRunningError as exc:
        raise _not_running(exc) from exc
    return DeepScanToggleResponse(enabled=enabled)


@router.get("/export", response_model=ExportResponse)
async def export_all_data(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> ExportResponse:
    try:
        exported = scanner_service.export_all_data()
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return ExportResponse(**exported)


@router.delete("/data", response_model=ClearDataResponse)
async def clear_all_data(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> ClearDataResponse:
    try:
        scanner_service.clear_all_data()
    except StorageError as exc:
        raise _storage_unavailable(exc) from exc
    return ClearDataResponse()


@router.get("/storage/stats", response_model=StorageStatsResponse)
async def get_storage_stats(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> StorageStatsResponse:
    stats = scanner_service.result_store.storage_stats()
    return StorageStatsResponse(**asdict(stats))


@router.get("/storage/health", response_model=StorageHealthResponse)
async def check_storage_health(
    scanner_service: ScannerService = Depends(get_scanner_service),
) -> StorageHealthResponse:
    health = scanner_service.result_store.check_health()
    return StorageHealthResponse(**asdict(health))
