"""
Host page abstraction: candidate queries, viewport geometry and page events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from autogreen.scanning.parsing.html_utils import select_all

ScrollHandler = Callable[[], None]
MutationHandler = Callable[[], None]
NavigationHandler = Callable[[str], None]


@dataclass(frozen=True)
class Viewport:
    scroll_top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.scroll_top + self.height


@dataclass(frozen=True)
class CandidateElement:
    """
    A node matched by a product-container selector.

    `top` and `height` are document-relative; `None` means the geometry could
    not be read (for example the node was detached). The ancestor anchor
    fields survive even when the node was parsed out of its page.
    """

    node: Tag
    index: int
    top: float | None
    height: float | None
    ancestor_href: str | None = None
    ancestor_title: str | None = None

    @property
    def has_geometry(self) -> bool:
        return self.top is not None and self.height is not None


class PageSurface(ABC):
    """
    The page the detector observes.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    async def candidates(self, selectors: list[str]) -> list[CandidateElement]:
        raise NotImplementedError

    @abstractmethod
    async def viewport(self) -> Viewport:
        raise NotImplementedError

    @abstractmethod
    def subscribe(
        self,
        *,
        on_scroll: ScrollHandler,
        on_mutation: MutationHandler,
        on_navigation: NavigationHandler,
    ) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class StaticPageSurface(PageSurface):
    """
    In-memory page built from HTML. Geometry is either supplied per candidate
    index or laid out as evenly spaced rows.
    """

    def __init__(
        self,
        html: str,
        *,
        url: str,
        geometry: Mapping[int, tuple[float, float] | None] | None = None,
        row_height: float = 100.0,
        viewport_height: float = 800.0,
        scroll_top: float = 0.0,
    ) -> None:
        self._soup = BeautifulSoup(html, "html.parser")
        self._url = url
        self._geometry = dict(geometry) if geometry is not None else None
        self._row_height = row_height
        self._viewport_height = viewport_height
        self._scroll_top = scroll_top
        self._scroll_handlers: list[ScrollHandler] = []
        self._mutation_handlers: list[MutationHandler] = []
        self._navigation_handlers: list[NavigationHandler] = []

    @property
    def url(self) -> str:
        return self._url

    async def candidates(self, selectors: list[str]) -> list[CandidateElement]:
        found: list[CandidateElement] = []
        for index, node in enumerate(select_all(self._soup, selectors)):
            top, height = self._geometry_for(index)
            anchor = node.find_parent("a", href=True)
            found.append(
                CandidateElement(
                    node=node,
                    index=index,
                    top=top,
                    height=height,
                    ancestor_href=anchor.get("href") if anchor is not None else None,
                    ancestor_title=anchor.get("title") if anchor is not None else None,
                )
            )
        return found

    async def viewport(self) -> Viewport:
        return Viewport(scroll_top=self._scroll_top, height=self._viewport_height)

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

    def scroll_to(self, scroll_top: float) -> None:
        self._scroll_top = max(0.0, scroll_top)
        for handler in list(self._scroll_handlers):
            handler()

    def replace_html(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")
        for handler in list(self._mutation_handlers):
            handler()

    def navigate(self, url: str, html: str) -> None:
        self._url = url
        self._soup = BeautifulSoup(html, "html.parser")
        self._scroll_top = 0.0
        for handler in list(self._navigation_handlers):
            handler(url)

    def _geometry_for(self, index: int) -> tuple[float | None, float | None]:
        if self._geometry is None:
            return index * self._row_height, self._row_height
        box = self._geometry.get(index)
        if box is None:
            return None, None
        return box
