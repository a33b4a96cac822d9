"""
Product detail page parsing: highlights, ingredients, specifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from autogreen.scanning.classifiers import KeywordBucketClassifier, TextClassifier
from autogreen.scanning.clock import Clock
from autogreen.scanning.config.models import DetailSelectorConfig
from autogreen.scanning.errors import ContainerNotFound
from autogreen.scanning.logging_utils import log_event
from autogreen.scanning.parsing.html_utils import (
    dedupe_texts,
    descendant_ids,
    node_text,
    select_all,
    select_first,
)
from autogreen.scanning.types import ExtractionMethod, ScanResult

logger = logging.getLogger(__name__)

FALLBACK_TEXT_TAGS = ("p", "div", "span", "li")
SPEC_NAME_MAX_LENGTH = 50
SPEC_VALUE_MAX_LENGTH = 200


@dataclass(frozen=True)
class SectionRule:
    """
    Heading keywords that switch a section on and off.

    With `stop_at_off` the first "off" heading inside the section ends the
    scan; otherwise it only switches the section off until the next "on".
    """

    on_keywords: tuple[str, ...]
    off_keywords: tuple[str, ...]
    min_length: int
    limit: int
    stop_at_off: bool = False


HIGHLIGHT_SECTION = SectionRule(
    on_keywords=("highlights", "features"),
    off_keywords=("ingredients", "specifications"),
    min_length=10,
    limit=10,
)
INGREDIENT_SECTION = SectionRule(
    on_keywords=("ingredients",),
    off_keywords=("nutrition", "storage", "direction", "usage"),
    min_length=5,
    limit=20,
    stop_at_off=True,
)


def collect_section(
    elements: list[Tag],
    rule: SectionRule,
    *,
    container_ids: set[int],
) -> list[str]:
    """
    Walk `elements` in document order collecting text that sits inside an
    active section or inside a dedicated container.
    """

    collected: list[str] = []
    active = False
    for element in elements:
        text = node_text(element)
        lowered = text.lower()

        if any(keyword in lowered for keyword in rule.on_keywords):
            active = True
            continue

        if any(keyword in lowered for keyword in rule.off_keywords):
            if rule.stop_at_off:
                if active:
                    break
            else:
                active = False
                continue

        if (active or id(element) in container_ids) and len(text) > rule.min_length:
            collected.append(text)

    return collected[: rule.limit]


class DetailExtractor:
    """
    Structured extraction with a keyword-bucket fallback pass.
    """

    def __init__(
        self,
        selectors: DetailSelectorConfig | None = None,
        *,
        clock: Clock,
        bucket_classifier: TextClassifier | None = None,
    ) -> None:
        self._selectors = selectors or DetailSelectorConfig()
        self._clock = clock
        self._bucket_classifier = bucket_classifier or KeywordBucketClassifier()

    def extract(
        self,
        document: BeautifulSoup,
        *,
        selectors: DetailSelectorConfig | None = None,
        url: str | None = None,
    ) -> ScanResult:
        """
        Parse a fetched detail document.

        Raises `ContainerNotFound` when the detail container is missing and
        the fallback pass finds nothing either.
        """

        active = selectors or self._selectors
        container = select_first(document, active.detail_container)
        if container is not None:
            result = self._extract_structured(container, active)
            method = ExtractionMethod.STANDARD
        else:
            log_event(
                logger,
                logging.WARNING,
                "detail_container_missing",
                url=url,
                selectors=active.detail_container,
            )
            result = self._extract_alternative(document)
            method = ExtractionMethod.ALTERNATIVE
            if result is None:
                raise ContainerNotFound(f"Product detail container not found: {url or 'document'}")

        result.price = self._first_text(document, active.price_selectors)
        result.rating = self._first_text(document, active.rating_selectors)
        log_event(
            logger,
            logging.INFO,
            "detail_extracted",
            url=url,
            method=method,
            highlights=len(result.highlights),
            ingredients=len(result.ingredients),
            specifications=len(result.specifications),
        )
        return result

    def _extract_structured(self, container: Tag, selectors: DetailSelectorConfig) -> ScanResult:
        return ScanResult(
            highlights=self.extract_highlights(container, selectors),
            ingredients=self.extract_ingredients(container, selectors),
            specifications=self.extract_specifications(container, selectors),
            extracted_at=self._clock.utcnow(),
            extraction_method=ExtractionMethod.STANDARD,
        )

    def extract_highlights(self, container: Tag, selectors: DetailSelectorConfig) -> list[str]:
        item_selectors = [
            *selectors.highlight_selectors,
            *(f"{box} li" for box in selectors.highlight_containers),
        ]
        return collect_section(
            select_all(container, item_selectors),
            HIGHLIGHT_SECTION,
            container_ids=descendant_ids(container, selectors.highlight_containers),
        )

    def extract_ingredients(self, container: Tag, selectors: DetailSelectorConfig) -> list[str]:
        item_selectors = [
            *selectors.ingredient_selectors,
            *(f"{box} li" for box in selectors.ingredient_containers),
            *(f"{box} p" for box in selectors.ingredient_containers),
        ]
        return collect_section(
            select_all(container, item_selectors),
            INGREDIENT_SECTION,
            container_ids=descendant_ids(container, selectors.ingredient_containers),
        )

    def extract_specifications(
        self,
        container: Tag,
        selectors: DetailSelectorConfig,
    ) -> dict[str, str]:
        specifications: dict[str, str] = {}
        for item in select_all(container, selectors.spec_item_selectors):
            name_node = select_first(item, selectors.spec_name_selectors)
            value_node = select_first(item, selectors.spec_value_selectors)
            if name_node is None or value_node is None:
                continue
            self._add_spec(specifications, node_text(name_node), node_text(value_node))

        for row in container.select("table tr"):
            cells = row.find_all(["td", "th"])
            if len(cells) < 2:
                continue
            self._add_spec(specifications, node_text(cells[0]), node_text(cells[1]))
        return specifications

    @staticmethod
    def _add_spec(specifications: dict[str, str], name: str, value: str) -> None:
        if not name or not value:
            return
        if len(name) >= SPEC_NAME_MAX_LENGTH or len(value) >= SPEC_VALUE_MAX_LENGTH:
            return
        specifications[name] = value

    def _extract_alternative(self, document: BeautifulSoup) -> ScanResult | None:
        highlights: list[str] = []
        ingredients: list[str] = []
        specifications: dict[str, str] = {}

        texts = dedupe_texts(node_text(node) for node in document.find_all(FALLBACK_TEXT_TAGS))
        for text in texts:
            verdict = self._bucket_classifier.classify(text)
            if not verdict.accepted:
                continue
            if verdict.label == "ingredients":
                ingredients.append(text)
            elif verdict.label == "highlights":
                highlights.append(text)
            elif verdict.label == "specifications":
                key, _, value = text.partition(":")
                if key.strip() and value.strip():
                    specifications[key.strip()] = value.strip()

        if not (highlights or ingredients or specifications):
            return None
        return ScanResult(
            highlights=highlights,
            ingredients=ingredients,
            specifications=specifications,
            extracted_at=self._clock.utcnow(),
            extraction_method=ExtractionMethod.ALTERNATIVE,
        )

    @staticmethod
    def _first_text(document: BeautifulSoup, selectors: list[str]) -> str | None:
        node = select_first(document, selectors)
        if node is None:
            return None
        return node_text(node) or None
