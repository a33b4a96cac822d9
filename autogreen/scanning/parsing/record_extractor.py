"""
Turn candidate listing elements into validated product records.
"""

from __future__ import annotations

import logging
import math
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from autogreen.scanning.classifiers import (
    NameValidator,
    ProductNameClassifier,
    TextClassifier,
    looks_like_price,
    looks_like_rating,
)
from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import SiteSelectorConfig, ValidationSettings
from autogreen.scanning.errors import ExtractionMiss
from autogreen.scanning.logging_utils import log_event, preview
from autogreen.scanning.parsing.html_utils import node_text, select_all, select_first
from autogreen.scanning.surface import CandidateElement
from autogreen.scanning.types import ProductRecord

logger = logging.getLogger(__name__)

DEFAULT_LAYOUT_TITLE_SELECTORS: tuple[str, ...] = (
    "span[title]",
    "span[style*='-webkit-line-clamp: 2']",
    "span[numberoflines='2']",
    "span[style*='height: 40px']",
    "div[style*='height: 40px'] span",
    "span:not([class*='price'])",
)
TEXT_BEARING_TAGS = ("a", "span", "div", "p", "h1", "h2", "h3", "h4", "h5", "h6")
LAYOUT_MIN_LENGTH = 10


def _string_hash(value: str) -> int:
    """
    32-bit rolling hash (h * 31 + c) folded to a non-negative int.
    """

    hashed = 0
    for char in value:
        hashed = (hashed * 31 + ord(char)) & 0xFFFFFFFF
    if hashed >= 0x80000000:
        hashed -= 0x100000000
    return abs(hashed)


def product_id(source_url: str, top: float, index: int) -> str:
    """
    Identity of a listing element: page, rounded vertical offset, index.
    """

    return f"product-{_string_hash(source_url)}-{math.floor(top + 0.5)}-{index}"


class RecordExtractor:
    """
    Prioritized name/link heuristics for one site's listing cards.
    """

    def __init__(
        self,
        site: SiteSelectorConfig,
        validation: ValidationSettings,
        *,
        clock: Clock,
        name_validator: TextClassifier | None = None,
        name_classifier: TextClassifier | None = None,
    ) -> None:
        self._site = site
        self._clock = clock
        self._name_validator = name_validator or NameValidator(validation)
        self._name_classifier = name_classifier or ProductNameClassifier()
        self._layout_selectors = list(site.layout_title_selectors) or list(
            DEFAULT_LAYOUT_TITLE_SELECTORS
        )

    @property
    def site(self) -> SiteSelectorConfig:
        return self._site

    def extract(self, candidate: CandidateElement, *, source_url: str) -> ProductRecord | None:
        """
        Return a record, or `None` when the candidate is not a product.
        """

        try:
            return self._extract(candidate, source_url=source_url)
        except ExtractionMiss as exc:
            log_event(
                logger,
                logging.DEBUG,
                "record_extraction_miss",
                index=candidate.index,
                reason=str(exc),
            )
            return None

    def extract_many(
        self,
        candidates: list[CandidateElement],
        *,
        source_url: str,
    ) -> list[ProductRecord]:
        records = [
            record
            for record in (self.extract(candidate, source_url=source_url) for candidate in candidates)
            if record is not None
        ]
        log_event(
            logger,
            logging.DEBUG,
            "records_extracted",
            candidates=len(candidates),
            records=len(records),
            site=self._site.name,
        )
        return records

    def _extract(self, candidate: CandidateElement, *, source_url: str) -> ProductRecord:
        if candidate.top is None:
            raise ExtractionMiss("candidate geometry unavailable")

        link = self.extract_link(candidate, source_url=source_url)
        if link is None:
            raise ExtractionMiss("no usable product link")

        name = self.extract_name(candidate)
        if not self._is_valid_name(name):
            raise ExtractionMiss(f"invalid product name {preview(name)!r}")

        if self._site.require_corroboration:
            self._corroborate(candidate.node, link=link, name=name)

        record = ProductRecord(
            id=product_id(source_url, candidate.top, candidate.index),
            name=name,
            link=link,
            position=candidate.top,
            source_url=source_url,
            site_kind=self._site.name,
            extracted_at=self._clock.utcnow(),
        )
        log_event(
            logger,
            logging.DEBUG,
            "record_extracted",
            id=record.id,
            name=preview(record.name),
            link=record.link,
        )
        return record

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def extract_link(self, candidate: CandidateElement, *, source_url: str) -> str | None:
        node = candidate.node
        raw_href: str | None = None

        if node.name == "a" and node.get("href"):
            raw_href = node.get("href")
        if raw_href is None:
            raw_href = self._href_of(select_first(node, self._site.product_link))
        if raw_href is None:
            raw_href = self._href_of(select_first(node, self._site.product_link_fallback))
        if raw_href is None:
            raw_href = self._href_of(node.find("a", href=True))
        if raw_href is None:
            raw_href = candidate.ancestor_href

        return self._absolute_link(raw_href, source_url=source_url)

    @staticmethod
    def _href_of(anchor: Tag | None) -> str | None:
        if anchor is None:
            return None
        href = anchor.get("href")
        if not href or not str(href).strip():
            return None
        return str(href).strip()

    @staticmethod
    def _absolute_link(raw_href: str | None, *, source_url: str) -> str | None:
        if not raw_href:
            return None
        absolute = urljoin(source_url, raw_href)
        parsed = urlparse(absolute)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            return None
        return absolute

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def extract_name(self, candidate: CandidateElement) -> str:
        node = candidate.node

        title = self._title_attribute(candidate)
        if title and self._is_valid_name(title):
            return title

        for selector in self._site.title_selectors:
            title_node = select_first(node, [selector])
            if title_node is None:
                continue
            text = self._attribute_or_text(title_node)
            if text and self._is_valid_name(text):
                return text

        for title_node in select_all(node, self._site.home_page_title):
            text = node_text(title_node)
            if text and self._is_valid_name(text):
                return text

        layout_name = self._name_from_layout(node)
        if layout_name:
            return layout_name

        return self._longest_product_like_text(node)

    def _title_attribute(self, candidate: CandidateElement) -> str:
        attr = self._site.title_attr
        node = candidate.node
        if node.name == "a" and node.get(attr):
            return str(node.get(attr)).strip()
        titled = node.find("a", attrs={attr: True})
        if titled is not None and str(titled.get(attr)).strip():
            return str(titled.get(attr)).strip()
        if candidate.ancestor_title:
            return candidate.ancestor_title.strip()
        return ""

    def _attribute_or_text(self, node: Tag) -> str:
        if node.has_attr(self._site.title_attr):
            return str(node.get(self._site.title_attr)).strip()
        return node_text(node)

    def _name_from_layout(self, node: Tag) -> str:
        for selector in self._layout_selectors:
            for element in select_all(node, [selector]):
                text = node_text(element) or str(element.get("title") or "").strip()
                if (
                    text
                    and len(text) >= LAYOUT_MIN_LENGTH
                    and not looks_like_price(text)
                    and not looks_like_rating(text)
                    and self._name_classifier.classify(text).accepted
                ):
                    return text
        return ""

    def _longest_product_like_text(self, node: Tag) -> str:
        longest = ""
        for element in node.find_all(TEXT_BEARING_TAGS):
            text = node_text(element)
            if (
                len(text) > len(longest)
                and len(text) >= LAYOUT_MIN_LENGTH
                and self._name_classifier.classify(text).accepted
            ):
                longest = text
        return longest

    def _is_valid_name(self, name: str) -> bool:
        return self._name_validator.classify(name).accepted

    # ------------------------------------------------------------------
    # Secondary validation
    # ------------------------------------------------------------------

    def _corroborate(self, node: Tag, *, link: str, name: str) -> None:
        site = self._site
        if site.link_markers and not any(marker in link for marker in site.link_markers):
            raise ExtractionMiss("link is not on the site's domain")
        if site.product_path_markers and not any(
            marker in link for marker in site.product_path_markers
        ):
            raise ExtractionMiss("link is not a product page")
        if not site.price_selectors and not site.image_selectors:
            return
        has_price = select_first(node, site.price_selectors) is not None
        has_image = select_first(node, site.image_selectors) is not None
        if not (has_price or has_image):
            raise ExtractionMiss(f"no price or image next to {preview(name)!r}")
