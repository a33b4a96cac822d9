"""
Shared scanning runtime data models.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


class ExtractionMethod:
    STANDARD = "standard"
    ALTERNATIVE = "alternative"
    FETCH_FAILED = "fetch_failed"
    FAILED = "failed"


class LinkState:
    """
    Deep-scan lifecycle of one product link.
    """

    UNSEEN = "unseen"
    QUEUED = "queued"
    SCANNING = "scanning"
    STORED = "stored"
    FAILED = "failed"
    ARCHIVED = "archived"


def _isoformat(value: datetime | str) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class ProductRecord:
    """
    One validated product detected on a listing page.
    """

    id: str
    name: str
    link: str
    position: float
    source_url: str
    site_kind: str
    extracted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["extracted_at"] = _isoformat(self.extracted_at)
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ProductRecord":
        extracted_at = payload.get("extracted_at")
        if isinstance(extracted_at, str):
            extracted_at = datetime.fromisoformat(extracted_at)
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            link=str(payload["link"]),
            position=float(payload.get("position", 0.0)),
            source_url=str(payload.get("source_url", "")),
            site_kind=str(payload.get("site_kind", "common")),
            extracted_at=extracted_at,
        )


@dataclass(frozen=True)
class DeepScanEntry:
    """
    A product record waiting in, or dispatched from, the deep-scan queue.
    """

    record: ProductRecord
    queued_at: datetime
    retry_count: int = 0

    @property
    def link(self) -> str:
        return self.record.link

    @property
    def name(self) -> str:
        return self.record.name

    def retried(self, *, queued_at: datetime) -> "DeepScanEntry":
        return DeepScanEntry(
            record=self.record,
            queued_at=queued_at,
            retry_count=self.retry_count + 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.record.to_dict(),
            "queued_at": _isoformat(self.queued_at),
            "retry_count": self.retry_count,
        }


@dataclass
class ScanResult:
    """
    Extended attributes harvested from a product detail page.
    """

    highlights: list[str] = field(default_factory=list)
    ingredients: list[str] = field(default_factory=list)
    specifications: dict[str, str] = field(default_factory=dict)
    extracted_at: datetime | str = ""
    extraction_method: str = ExtractionMethod.STANDARD
    price: str | None = None
    rating: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "highlights": list(self.highlights),
            "ingredients": list(self.ingredients),
            "specifications": dict(self.specifications),
            "extracted_at": _isoformat(self.extracted_at),
            "extraction_method": self.extraction_method,
        }
        for key in ("price", "rating", "error"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScanResult":
        return cls(
            highlights=[str(item) for item in payload.get("highlights", [])],
            ingredients=[str(item) for item in payload.get("ingredients", [])],
            specifications={
                str(key): str(value)
                for key, value in (payload.get("specifications") or {}).items()
            },
            extracted_at=payload.get("extracted_at", ""),
            extraction_method=payload.get("extraction_method", ExtractionMethod.STANDARD),
            price=payload.get("price"),
            rating=payload.get("rating"),
            error=payload.get("error"),
        )

    @classmethod
    def fetch_failed(cls, *, extracted_at: datetime, error: str) -> "ScanResult":
        return cls(
            extracted_at=extracted_at,
            extraction_method=ExtractionMethod.FETCH_FAILED,
            error=error,
        )


@dataclass(frozen=True)
class FailureRecord:
    """
    Outcome stored for a deep scan that did not produce a result.
    """

    error: str
    error_type: str
    failed_at: datetime | str
    extraction_method: str = ExtractionMethod.FAILED

    @classmethod
    def from_exception(cls, exc: BaseException, *, failed_at: datetime) -> "FailureRecord":
        return cls(
            error=str(exc) or "Unknown error",
            error_type=type(exc).__name__,
            failed_at=failed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error,
            "error_type": self.error_type,
            "failed_at": _isoformat(self.failed_at),
            "extraction_method": self.extraction_method,
        }


@dataclass(frozen=True)
class ScanStats:
    total_processed: int
    currently_processing: bool
    processed_ids: int
    eco_products: int


@dataclass(frozen=True)
class DeepScanStats:
    is_enabled: bool
    queue_length: int
    active_scanners: int
    scanned_count: int
    failed_count: int
    max_concurrent: int
    archived_count: int = 0


@dataclass(frozen=True)
class StorageStats:
    total_products: int
    successful_scans: int
    failed_scans: int
    storage_size: int
    last_update: datetime | None
    fallback_records: int = 0


@dataclass(frozen=True)
class StorageHealth:
    is_healthy: bool
    details: dict[str, bool]
    stats: StorageStats
    recommendations: list[str]
