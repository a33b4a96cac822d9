"""
autogreen/schemas package marker.
"""

from autogreen.schemas.scanner import (
    ClearDataResponse,
    DeepScanStatsResponse,
    DeepScanToggleResponse,
    ExportResponse,
    HealthResponse,
    ProcessResponse,
    ScanSessionResponse,
    ScanStatsResponse,
    SessionStoppedResponse,
    StartSessionRequest,
    StorageHealthResponse,
    StorageStatsResponse,
)

__all__ = [
    "ClearDataResponse",
    "DeepScanStatsResponse",
    "DeepScanToggleResponse",
    "ExportResponse",
    "HealthResponse",
    "ProcessResponse",
    "ScanSessionResponse",
    "ScanStatsResponse",
    "SessionStoppedResponse",
    "StartSessionRequest",
    "StorageHealthResponse",
    "StorageStatsResponse",
]
