"""
autogreen/schemas/scanner.py

Request and response schemas for scanner operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class StartSessionRequest(BaseModel):
    """
    API request body to open a page and start scanning it.
    """

    url: str = Field(..., min_length=1)
    deep_scan: bool | None = None

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute http(s) URL")
        return stripped


class ScanSessionResponse(BaseModel):
    url: str
    site: str
    started_at: datetime
    deep_scan_enabled: bool


class SessionStoppedResponse(BaseModel):
    stopped: bool


class ScanStatsResponse(BaseModel):
    """
    Listing-page detection counters for the running session.
    """

    total_processed: int = Field(..., ge=0)
    currently_processing: bool
    processed_ids: int = Field(..., ge=0)
    eco_products: int = Field(..., ge=0)


class ProcessResponse(BaseModel):
    added: int = Field(..., ge=0)
    stats: ScanStatsResponse


class DeepScanStatsResponse(BaseModel):
    """
    Deep-scan queue state.
    """

    is_enabled: bool
    queue_length: int = Field(..., ge=0)
    active_scanners: int = Field(..., ge=0)
    scanned_count: int = Field(..., ge=0)
    failed_count: int = Field(..., ge=0)
    max_concurrent: int = Field(..., ge=1)
    archived_count: int = Field(default=0, ge=0)


class DeepScanToggleResponse(BaseModel):
    enabled: bool


class StorageStatsResponse(BaseModel):
    total_products: int = Field(..., ge=0)
    successful_scans: int = Field(..., ge=0)
    failed_scans: int = Field(..., ge=0)
    storage_size: int = Field(..., ge=0)
    last_update: datetime | None = None
    fallback_records: int = Field(default=0, ge=0)


class StorageHealthResponse(BaseModel):
    is_healthy: bool
    details: dict[str, bool]
    stats: StorageStatsResponse
    recommendations: list[str] = Field(default_factory=list)


class ExportResponse(BaseModel):
    """
    Everything detected and deep-scanned, keyed by product link.
    """

    products: list[dict[str, Any]] = Field(default_factory=list)
    deep_scan_results: dict[str, dict[str, Any]] = Field(default_factory=dict)
    exported_at: str
    stats: ScanStatsResponse | None = None
    deep_scan_stats: DeepScanStatsResponse | None = None


class ClearDataResponse(BaseModel):
    cleared: bool = True


class HealthResponse(BaseModel):
    status: str
    scanner_running: bool
