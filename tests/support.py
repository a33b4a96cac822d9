"""
tests/support.py

Test doubles and page builders: a clock that never waits, fake child
browsing contexts, listing/detail HTML and a key-value store that rejects
writes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import ScannerSettings
from autogreen.scanning.errors import FetchBlocked, StorageReadFailure, StorageWriteFailure
from autogreen.scanning.fetcher import BrowsingContext, BrowsingContextFactory, PageSnapshot
from autogreen.scanning.storage import InMemoryKeyValueStore, KeyValueStore
from autogreen.scanning.types import ProductRecord

START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
SHOPEE_SEARCH_URL = "https://shopee.sg/search?keyword=bamboo"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock(Clock):
    """
    Sleeping records the request, advances virtual time and yields once.
    """

    def __init__(self, start: datetime = START) -> None:
        self.now = start
        self.elapsed = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.elapsed

    def utcnow(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds
        self.now += timedelta(seconds=seconds)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(max(0.0, seconds))
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# Child browsing contexts
# ---------------------------------------------------------------------------

HANG = object()


@dataclass
class FakePage:
    snapshots: list[str]
    ready_state: str = "complete"


class FakeBrowsingContext(BrowsingContext):
    def __init__(self, factory: "FakeContextFactory") -> None:
        self._factory = factory
        self._page: FakePage | None = None
        self._reads = 0
        self.closed = False

    async def navigate(self, url: str, *, timeout_seconds: float) -> None:
        self._factory.navigations.append(url)
        behaviour = self._factory.pages.get(url)
        if isinstance(behaviour, list):
            # one entry per attempt; the last one repeats
            behaviour = behaviour.pop(0) if len(behaviour) > 1 else behaviour[0]
        if behaviour is HANG:
            await asyncio.Event().wait()
        if isinstance(behaviour, Exception):
            raise behaviour
        if behaviour is None:
            raise FetchBlocked(f"Navigation denied: {url}")
        self._page = behaviour

    async def snapshot(self) -> PageSnapshot:
        assert self._page is not None
        index = min(self._reads, len(self._page.snapshots) - 1)
        self._reads += 1
        return PageSnapshot(html=self._page.snapshots[index], ready_state=self._page.ready_state)

    async def close(self) -> None:
        self.closed = True
        self._factory.on_close(self)


class FakeContextFactory(BrowsingContextFactory):
    """
    Serves canned pages per URL and records every context's lifetime.
    """

    def __init__(self, pages: dict[str, Any] | None = None, *, clock: FakeClock | None = None) -> None:
        self.pages: dict[str, Any] = dict(pages or {})
        self.clock = clock
        self.created = 0
        self.closed = 0
        self.open = 0
        self.peak_open = 0
        self.navigations: list[str] = []
        self.events: list[tuple[str, float]] = []

    async def create(self) -> BrowsingContext:
        self.created += 1
        self.open += 1
        self.peak_open = max(self.peak_open, self.open)
        self.events.append(("open", self._now()))
        return FakeBrowsingContext(self)

    def on_close(self, context: FakeBrowsingContext) -> None:
        self.closed += 1
        self.open -= 1
        self.events.append(("close", self._now()))

    def _now(self) -> float:
        return self.clock.monotonic() if self.clock is not None else 0.0


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class FailingStore(KeyValueStore):
    """
    In-memory store whose writes to `failing_keys` (or every key) fail.
    """

    def __init__(self, *, failing_keys: set[str] | None = None, fail_reads: bool = False) -> None:
        self._inner = InMemoryKeyValueStore()
        self.failing_keys = failing_keys
        self.fail_reads = fail_reads
        self.write_attempts: list[str] = []

    def get(self, key: str, default: Any = None) -> Any:
        if self.fail_reads:
            raise StorageReadFailure(f"read rejected: {key}")
        return self._inner.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.write_attempts.append(key)
        if self.failing_keys is None or key in self.failing_keys:
            raise StorageWriteFailure(f"write rejected: {key}")
        self._inner.set(key, value)

    def delete(self, key: str) -> None:
        self._inner.delete(key)


# ---------------------------------------------------------------------------
# Page builders
# ---------------------------------------------------------------------------


def shopee_listing(count: int, *, start: int = 0, names: list[str] | None = None) -> str:
    items = []
    for number in range(start, start + count):
        name = names[number - start] if names else f"Bamboo Toothbrush Pack of {number + 1}"
        items.append(
            '<div class="shopee-search-item-result__item">'
            f'<a href="/bamboo-toothbrush-i.100.{number}">'
            f'<div class="shopee-search-item-result__item-name">{name}</div>'
            f'<span class="price">$4.{number % 100:02d}</span>'
            "</a></div>"
        )
    return f"<html><body><div class='grid'>{''.join(items)}</div></body></html>"


def lazada_link(number: int) -> str:
    return f"https://www.lazada.sg/products/bamboo-toothbrush-i{number}-s{number}.html"


FILLER = (
    "<p>Every order ships within two days from our local warehouse and arrives "
    "packed in a recycled paper sleeve that you can drop straight into the bin "
    "with your household paper once the parcel has been opened at home.</p>"
)


def lazada_detail_page(name: str = "Bamboo Toothbrush Pack of 4") -> str:
    return (
        "<html><body>"
        f'<div class="pdp-block"><h1 class="product-title">{name}</h1>'
        '<div class="pdp-price">$12.90</div><div class="score-average">4.8</div></div>'
        '<div id="module_product_detail">'
        '<div class="html-content detail-content">'
        "<p>Product Highlights</p>"
        "<p>Handle made from sustainable moso bamboo</p>"
        "<p>Soft charcoal infused bristles for daily brushing</p>"
        "<p>Ingredients</p>"
        "<p>Bamboo handle, charcoal nylon bristles</p>"
        "<p>Storage</p>"
        "<p>Keep in a dry place away from sunlight</p>"
        "</div>"
        '<div class="pdp-mod-spec-item"><span class="pdp-mod-spec-item-name">Brand</span>'
        '<span class="pdp-mod-spec-item-text">EcoSmile</span></div>'
        "<table><tr><td>Weight</td><td>80 g</td></tr></table>"
        "</div>"
        f"{FILLER}"
        "</body></html>"
    )


def unstructured_detail_page() -> str:
    return (
        "<html><body>"
        "<p>Key features: reusable bamboo straw set with cleaning brush</p>"
        "<p>Ingredients: natural bamboo, cotton pouch and a sisal brush</p>"
        "<p>Brand: GreenSip</p>"
        f"{FILLER}"
        "</body></html>"
    )


def make_record(link: str, *, number: int = 0, name: str | None = None) -> ProductRecord:
    return ProductRecord(
        id=f"product-1-{number * 100}-{number}",
        name=name or f"Bamboo Toothbrush Pack of {number + 1}",
        link=link,
        position=float(number * 100),
        source_url="https://www.lazada.sg/catalog/?q=bamboo",
        site_kind="lazada",
        extracted_at=START,
    )


def with_deep_scan(settings: ScannerSettings, **overrides: Any) -> ScannerSettings:
    values = {"enabled_by_default": True, **overrides}
    return replace(settings, deep_scan=replace(settings.deep_scan, **values))


def with_readiness(settings: ScannerSettings, **overrides: Any) -> ScannerSettings:
    return replace(settings, readiness=replace(settings.readiness, **overrides))


def with_performance(settings: ScannerSettings, **overrides: Any) -> ScannerSettings:
    return replace(settings, performance=replace(settings.performance, **overrides))
