"""
tests/test_detector.py

ProductDetector wired through build_product_detector over a static page.

Coverage
--------
- Initial scan after the start-up delay
- Batching with a pause between batches
- Already-seen products are not reprocessed
- Scroll bursts trigger a single debounced pass
- Structure changes pick up appended cards
- Navigation starts a fresh session on the new page
- A failing page query is logged and detection carries on
- Deep-scan hand-off, stats, export and clear
"""

from __future__ import annotations

import asyncio
import logging

from autogreen.scanning.engine import build_product_detector
from autogreen.scanning.storage import InMemoryKeyValueStore
from autogreen.scanning.surface import StaticPageSurface
from tests.support import (
    SHOPEE_SEARCH_URL,
    FakeClock,
    FakeContextFactory,
    FakePage,
    lazada_detail_page,
    shopee_listing,
    with_deep_scan,
)


def _detector(surface, settings, clock, *, factory=None, store=None):
    return build_product_detector(
        surface=surface,
        settings=settings,
        store=store if store is not None else InMemoryKeyValueStore(),
        context_factory=factory or FakeContextFactory(),
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Processing
# ---------------------------------------------------------------------------


class TestProcessing:
    def test_twelve_visible_products_in_two_batches(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(12), url=SHOPEE_SEARCH_URL, row_height=50)

        async def scenario() -> int:
            detector = _detector(surface, settings, clock)
            return await detector.process_visible_products()

        assert asyncio.run(scenario()) == 12
        assert clock.sleeps == [settings.performance.batch_delay_seconds]

    def test_seen_products_are_skipped(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(4), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            first = await detector.process_visible_products()
            second = await detector.process_visible_products()
            return first, second, detector.get_stats()

        first, second, stats = asyncio.run(scenario())
        assert (first, second) == (4, 0)
        assert stats.total_processed == 4
        assert stats.processed_ids == 4
        assert stats.eco_products == 4
        assert not stats.currently_processing

    def test_only_buffered_viewport_is_processed(self, settings, clock) -> None:
        # rows every 100px, 800px viewport plus 200px buffer -> rows 0..9
        surface = StaticPageSurface(shopee_listing(30), url=SHOPEE_SEARCH_URL)

        async def scenario() -> int:
            detector = _detector(surface, settings, clock)
            return await detector.process_visible_products()

        assert asyncio.run(scenario()) == 10

    def test_eco_count_ignores_plain_products(self, settings, clock) -> None:
        names = ["Bamboo Toothbrush Pack of 4", "Plastic Phone Case Set", "Glass Water Bottle 500ml"]
        surface = StaticPageSurface(shopee_listing(3, names=names), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            await detector.process_visible_products()
            return detector.get_stats()

        stats = asyncio.run(scenario())
        assert stats.total_processed == 3
        assert stats.eco_products == 2


# ---------------------------------------------------------------------------
# Page events
# ---------------------------------------------------------------------------


class TestPageEvents:
    def test_start_runs_initial_scan(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(3), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.wait_idle()
            return detector.get_stats()

        assert asyncio.run(scenario()).total_processed == 3
        assert clock.sleeps[0] == settings.performance.init_delay_seconds

    def test_scroll_burst_is_debounced(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(30), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.wait_idle()
            surface.scroll_to(500)
            surface.scroll_to(1000)
            surface.scroll_to(1500)
            await detector.wait_idle()
            return detector.get_stats()

        stats = asyncio.run(scenario())
        # rows 0..9 initially, rows 13..24 after scrolling to 1500
        assert stats.total_processed == 22
        assert clock.sleeps.count(settings.performance.scroll_delay_seconds) == 1

    def test_appended_cards_are_picked_up(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(3), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.wait_idle()
            surface.replace_html(shopee_listing(5))
            await detector.wait_idle()
            return detector.get_stats()

        assert asyncio.run(scenario()).total_processed == 5

    def test_navigation_starts_new_session(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(3), url=SHOPEE_SEARCH_URL)
        next_url = "https://shopee.sg/search?keyword=cups"

        async def scenario():
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.wait_idle()
            surface.navigate(next_url, shopee_listing(2, start=10))
            await detector.wait_idle()
            return detector

        detector = asyncio.run(scenario())
        stats = detector.get_stats()
        assert stats.total_processed == 2
        products = detector.ledger.get_all()
        assert {record.source_url for record in products} == {next_url}
        assert products[0].name == "Bamboo Toothbrush Pack of 11"

    def test_failed_page_query_does_not_stop_detection(self, settings, clock, caplog) -> None:
        class DetachingSurface(StaticPageSurface):
            detached = False

            async def candidates(self, selectors):
                if self.detached:
                    raise RuntimeError("Execution context was destroyed")
                return await super().candidates(selectors)

        surface = DetachingSurface(shopee_listing(30), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.wait_idle()
            surface.detached = True
            surface.scroll_to(300)
            await detector.wait_idle()
            surface.detached = False
            surface.scroll_to(1500)
            await detector.wait_idle()
            return detector.get_stats()

        with caplog.at_level(logging.WARNING, logger="autogreen.scanning.detector"):
            stats = asyncio.run(scenario())

        assert any("visible_products_query_failed" in r.getMessage() for r in caplog.records)
        # rows 0..9 initially, rows 13..24 once the page answers again
        assert stats.total_processed == 22
        assert not stats.currently_processing


# ---------------------------------------------------------------------------
# Deep scan hand-off and data
# ---------------------------------------------------------------------------


class TestDeepScanHandOff:
    def test_new_products_reach_the_result_store(self, settings, clock) -> None:
        settings = with_deep_scan(settings)
        surface = StaticPageSurface(shopee_listing(2), url=SHOPEE_SEARCH_URL)
        detail = FakePage([lazada_detail_page()])
        factory = FakeContextFactory(
            {
                "https://shopee.sg/bamboo-toothbrush-i.100.0": detail,
                "https://shopee.sg/bamboo-toothbrush-i.100.1": detail,
            }
        )

        async def scenario():
            detector = _detector(surface, settings, clock, factory=factory)
            detector.start()
            await detector.wait_idle()
            return detector

        detector = asyncio.run(scenario())
        deep = detector.get_deep_scan_stats()
        assert deep.is_enabled
        assert deep.scanned_count == 2
        assert detector.get_storage_stats().total_products == 2
        exported = detector.export_all_data()
        assert len(exported["products"]) == 2
        assert set(exported["deep_scan_results"]) == set(factory.pages)
        assert exported["stats"]["total_processed"] == 2
        assert exported["deep_scan_stats"]["scanned_count"] == 2
        assert exported["deep_scan_stats"]["is_enabled"] is True

    def test_toggle_and_clear(self, settings, clock) -> None:
        surface = StaticPageSurface(shopee_listing(2), url=SHOPEE_SEARCH_URL)

        async def scenario():
            detector = _detector(surface, settings, clock)
            await detector.process_visible_products()
            enabled = detector.toggle_deep_scan()
            detector.clear_all_data()
            return detector, enabled

        detector, enabled = asyncio.run(scenario())
        assert enabled is True
        assert detector.get_stats().total_processed == 0
        assert detector.export_all_data()["products"] == []

    def test_shutdown_closes_surface(self, settings, clock) -> None:
        closed: list[bool] = []

        class ClosingSurface(StaticPageSurface):
            async def close(self) -> None:
                closed.append(True)

        surface = ClosingSurface(shopee_listing(2), url=SHOPEE_SEARCH_URL)

        async def scenario() -> None:
            detector = _detector(surface, settings, clock)
            detector.start()
            await detector.shutdown()

        asyncio.run(scenario())
        assert closed == [True]


def test_unknown_listing_site_uses_common_selectors(settings) -> None:
    surface = StaticPageSurface("<html><body></body></html>", url="https://example.com/")

    async def scenario():
        return _detector(surface, settings, FakeClock())

    detector = asyncio.run(scenario())
    assert detector.site.name == "common"
