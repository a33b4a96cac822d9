"""
Playwright adapters for the live page surface and isolated detail contexts.
"""

from __future__ import annotations

import logging
from typing import Any

from bs4 import BeautifulSoup
from playwright.async_api import Browser, BrowserContext, Frame, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from autogreen.scanning.errors import FetchBlocked, FetchTimeout
from autogreen.scanning.fetcher import BrowsingContext, BrowsingContextFactory, PageSnapshot
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.surface import (
    CandidateElement,
    MutationHandler,
    NavigationHandler,
    PageSurface,
    ScrollHandler,
    Viewport,
)

logger = logging.getLogger(__name__)

BLOCKED_STATUS_CODES = frozenset({403, 429, 451})
DETAIL_VIEWPORT = {"width": 1200, "height": 800}

SCROLL_BINDING = "__autogreenScroll"
MUTATION_BINDING = "__autogreenMutation"

CANDIDATES_SCRIPT = """
(selectors) => {
  const seen = new Set();
  const found = [];
  for (const selector of selectors) {
    let nodes = [];
    try {
      nodes = document.querySelectorAll(selector);
    } catch (error) {
      continue;
    }
    for (const node of nodes) {
      if (seen.has(node)) continue;
      seen.add(node);
      found.push(node);
    }
  }
  found.sort((a, b) =>
    a.compareDocumentPosition(b) & Node.DOCUMENT_POSITION_FOLLOWING ? -1 : 1
  );
  return found.map((node) => {
    const rect = node.isConnected ? node.getBoundingClientRect() : null;
    const anchor = node.parentElement ? node.parentElement.closest("a[href]") : null;
    return {
      html: node.outerHTML,
      top: rect ? rect.top + window.scrollY : null,
      height: rect ? rect.height : null,
      href: anchor ? anchor.href : null,
      title: anchor ? anchor.getAttribute("title") : null,
    };
  });
}
"""

LISTENERS_SCRIPT = f"""
(() => {{
  if (window.__autogreenListening) return;
  window.__autogreenListening = true;
  window.addEventListener("scroll", () => window.{SCROLL_BINDING}(), {{ passive: true }});
  const observer = new MutationObserver((mutations) => {{
    if (mutations.some((m) => m.type === "childList" && m.addedNodes.length > 0)) {{
      window.{MUTATION_BINDING}();
    }}
  }});
  const start = () => observer.observe(document.body, {{ childList: true, subtree: true }});
  if (document.body) start();
  else document.addEventListener("DOMContentLoaded", start);
}})();
"""


def _candidate_from_payload(index: int, payload: dict[str, Any]) -> CandidateElement | None:
    node = BeautifulSoup(payload.get("html") or "", "html.parser").find()
    if node is None:
        return None
    return CandidateElement(
        node=node,
        index=index,
        top=payload.get("top"),
        height=payload.get("height"),
        ancestor_href=payload.get("href"),
        ancestor_title=payload.get("title"),
    )


class PlaywrightRuntime:
    """
    Owns the Playwright driver and one Chromium browser.
    """

    def __init__(self, playwright: Playwright, browser: Browser) -> None:
        self._playwright = playwright
        self._browser = browser

    @classmethod
    async def launch(cls, *, headless: bool = True) -> "PlaywrightRuntime":
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=headless)
        except Exception:
            await playwright.stop()
            raise
        log_event(logger, logging.INFO, "browser_launched", headless=headless)
        return cls(playwright, browser)

    @property
    def browser(self) -> Browser:
        return self._browser

    async def open_surface(self, url: str, *, navigation_timeout_seconds: float = 30.0) -> "PlaywrightPageSurface":
        context = await self._browser.new_context()
        page = await context.new_page()
        surface = PlaywrightPageSurface(page, owns_context=True)
        await surface.install_listeners()
        await page.goto(url, wait_until="domcontentloaded", timeout=navigation_timeout_seconds * 1000)
        return surface

    def context_factory(self, *, user_agent: str | None = None) -> "PlaywrightContextFactory":
        return PlaywrightContextFactory(self._browser, user_agent=user_agent)

    async def close(self) -> None:
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()
        log_event(logger, logging.INFO, "browser_closed")


class PlaywrightPageSurface(PageSurface):
    """
    A live Chromium page. Scroll and DOM-insertion events are forwarded from
    the page through exposed bindings.
    """

    def __init__(self, page: Page, *, owns_context: bool = False) -> None:
        self._page = page
        self._owns_context = owns_context
        self._scroll_handlers: list[ScrollHandler] = []
        self._mutation_handlers: list[MutationHandler] = []
        self._navigation_handlers: list[NavigationHandler] = []
        self._page.on("framenavigated", self._on_frame_navigated)

    @property
    def url(self) -> str:
        return self._page.url

    @property
    def page(self) -> Page:
        return self._page

    async def install_listeners(self) -> None:
        await self._page.expose_function(SCROLL_BINDING, self._dispatch_scroll)
        await self._page.expose_function(MUTATION_BINDING, self._dispatch_mutation)
        await self._page.add_init_script(LISTENERS_SCRIPT)

    async def candidates(self, selectors: list[str]) -> list[CandidateElement]:
        payloads = await self._page.evaluate(CANDIDATES_SCRIPT, selectors)
        found: list[CandidateElement] = []
        for index, payload in enumerate(payloads):
            candidate = _candidate_from_payload(index, payload)
            if candidate is not None:
                found.append(candidate)
        return found

    async def viewport(self) -> Viewport:
        box = await self._page.evaluate("() => ({top: window.scrollY, height: window.innerHeight})")
        return Viewport(scroll_top=float(box["top"]), height=float(box["height"]))

    def subscribe(
        self,
        *,
        on_scroll: ScrollHandler,
        on_mutation: MutationHandler,
        on_navigation: NavigationHandler,
    ) -> None:
        self._scroll_handlers.append(on_scroll)
        self._mutation_handlers.append(on_mutation)
        self._navigation_handlers.append(on_navigation)

    async def scroll_by(self, pixels: int) -> None:
        await self._page.mouse.wheel(0, pixels)

    async def close(self) -> None:
        if self._owns_context:
            await self._page.context.close()
        else:
            await self._page.close()

    def _dispatch_scroll(self) -> None:
        for handler in list(self._scroll_handlers):
            handler()

    def _dispatch_mutation(self) -> None:
        for handler in list(self._mutation_handlers):
            handler()

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame != self._page.main_frame:
            return
        for handler in list(self._navigation_handlers):
            handler(frame.url)


class PlaywrightBrowsingContext(BrowsingContext):
    def __init__(self, context: BrowserContext, page: Page) -> None:
        self._context = context
        self._page = page

    async def navigate(self, url: str, *, timeout_seconds: float) -> None:
        try:
            response = await self._page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_seconds * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise FetchTimeout(f"Navigation timed out after {timeout_seconds:g}s: {url}") from exc
        except PlaywrightError as exc:
            raise FetchBlocked(f"Navigation failed for {url}: {exc}") from exc

        if response is not None and response.status in BLOCKED_STATUS_CODES:
            raise FetchBlocked(f"Navigation denied with HTTP {response.status}: {url}")

    async def snapshot(self) -> PageSnapshot:
        try:
            html = await self._page.content()
            ready_state = await self._page.evaluate("() => document.readyState")
        except PlaywrightError as exc:
            raise FetchBlocked(f"Could not read child document: {exc}") from exc
        return PageSnapshot(html=html, ready_state=str(ready_state))

    async def close(self) -> None:
        await self._context.close()


class PlaywrightContextFactory(BrowsingContextFactory):
    """
    Creates a fresh isolated browser context per detail page.
    """

    def __init__(self, browser: Browser, *, user_agent: str | None = None) -> None:
        self._browser = browser
        self._user_agent = user_agent

    async def create(self) -> BrowsingContext:
        context = await self._browser.new_context(
            viewport=DETAIL_VIEWPORT,
            user_agent=self._user_agent,
            accept_downloads=False,
            service_workers="block",
        )
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return PlaywrightBrowsingContext(context, page)
