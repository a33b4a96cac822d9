"""
Pluggable text classifiers used by the extractors.

Every heuristic table (rejection patterns, product-name indicators, detail
keyword buckets, eco keywords) lives here as data handed to a classifier
object, so control flow in the extractors never embeds pattern lists.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

from autogreen.scanning.config.models import ValidationSettings

PRICE_PATTERN = re.compile(r"^\$?\d+\.?\d*$|^\$?\?\.\d+")
RATING_PATTERN = re.compile(r"^\d+\.?\d*\s*\(\d+\.?\d*k?\)$|^\d+\.?\d*$")

PRODUCT_NAME_SKIP_PATTERNS: tuple[str, ...] = (
    r"^\$?\d+\.?\d*$|^\$?\?\.\d+",
    r"^\d+\.?\d*\s*\(\d+\.?\d*k?\)$",
    r"^\d+\.?\d*$",
    r"(?i)^(add to cart|buy now|shop now|view all|see more|load more)$",
    r"(?i)^(free shipping|fast delivery|sold)$",
    r"^.{1,4}$",
    r"^[\d\s\-\$\.\,\(\)]+$",
    r"(?i)^(sale|hot|new|trending|\d+% off)$",
    r"(?i)^(\d+ sold|\d+k reviews?|lazada|shopee)$",
)
PRODUCT_NAME_INDICATORS: tuple[str, ...] = (
    r"(?i)\b(pack|set|piece|pcs|ml|kg|gram|liter|size|color|model)\b",
    r"(?i)\b(for|with|and|the|of|in)\b",
    r"[a-zA-Z]{10,}",
)

ECO_KEYWORD_TIERS: dict[str, tuple[int, tuple[str, ...]]] = {
    "primary": (
        3,
        (
            "eco-friendly",
            "eco friendly",
            "eco",
            "green",
            "sustainable",
            "biodegradable",
            "compostable",
            "recyclable",
            "recycled",
            "organic",
            "natural",
            "bamboo",
            "hemp",
            "solar",
            "renewable",
            "zero waste",
            "carbon neutral",
            "eco-conscious",
        ),
    ),
    "secondary": (
        2,
        (
            "environmentally friendly",
            "earth friendly",
            "planet friendly",
            "reusable",
            "non-toxic",
            "chemical-free",
            "plastic-free",
            "vegan",
            "cruelty-free",
            "fair trade",
            "ethically sourced",
            "locally sourced",
            "energy efficient",
            "low carbon",
            "upcycled",
            "refillable",
            "minimal packaging",
        ),
    ),
    "materials": (
        1,
        (
            "cork",
            "jute",
            "linen",
            "cotton organic",
            "wood",
            "glass",
            "stainless steel",
            "silicone",
            "ceramic",
            "bio-based",
            "plant-based",
            "wheat straw",
            "coconut",
            "recycled plastic",
            "rpet",
            "fsc certified",
        ),
    ),
}


@dataclass(frozen=True)
class Classification:
    accepted: bool
    confidence: float
    label: str | None = None
    matched: tuple[str, ...] = ()


REJECTED = Classification(accepted=False, confidence=0.0)


class TextClassifier(ABC):
    """
    Common interface for swappable text heuristics.
    """

    @abstractmethod
    def classify(self, text: str) -> Classification:
        raise NotImplementedError


def looks_like_price(text: str) -> bool:
    return bool(PRICE_PATTERN.search(text.strip()))


def looks_like_rating(text: str) -> bool:
    return bool(RATING_PATTERN.search(text.strip())) and len(text) < 10


class NameValidator(TextClassifier):
    """
    Final acceptance gate for a product name.
    """

    def __init__(self, settings: ValidationSettings) -> None:
        self._min_length = settings.min_name_length
        self._skip = [re.compile(pattern) for pattern in settings.skip_patterns]
        self._required = [re.compile(pattern) for pattern in settings.required_patterns]

    def classify(self, text: str) -> Classification:
        if not text or len(text) < self._min_length:
            return REJECTED
        if any(pattern.search(text) for pattern in self._skip):
            return REJECTED
        if not any(pattern.search(text) for pattern in self._required):
            return REJECTED
        return Classification(accepted=True, confidence=1.0, label="product_name")


class ProductNameClassifier(TextClassifier):
    """
    Looser "does this read like a product title" check used while searching
    a card's descendants for a name.
    """

    def __init__(
        self,
        *,
        skip_patterns: Sequence[str] = PRODUCT_NAME_SKIP_PATTERNS,
        indicator_patterns: Sequence[str] = PRODUCT_NAME_INDICATORS,
        min_length: int = 5,
        max_length: int = 200,
    ) -> None:
        self._skip = [re.compile(pattern) for pattern in skip_patterns]
        self._indicators = [re.compile(pattern) for pattern in indicator_patterns]
        self._min_length = min_length
        self._max_length = max_length

    def classify(self, text: str) -> Classification:
        stripped = text.strip() if text else ""
        if len(stripped) < self._min_length or len(stripped) > self._max_length:
            return REJECTED
        if any(pattern.search(stripped) for pattern in self._skip):
            return REJECTED
        if not re.search(r"[a-zA-Z]{3,}", stripped):
            return REJECTED
        matched = tuple(
            pattern.pattern for pattern in self._indicators if pattern.search(stripped)
        )
        if not matched:
            return REJECTED
        return Classification(
            accepted=True,
            confidence=len(matched) / len(self._indicators),
            label="product_name",
            matched=matched,
        )


@dataclass(frozen=True)
class BucketRule:
    """
    One keyword bucket. Text length must fall strictly between the bounds.
    """

    label: str
    keywords: tuple[str, ...]
    min_length: int
    max_length: int
    require_colon: bool = False


DETAIL_BUCKET_RULES: tuple[BucketRule, ...] = (
    BucketRule(label="ingredients", keywords=("ingredient",), min_length=20, max_length=500),
    BucketRule(
        label="highlights",
        keywords=("feature", "benefit", "highlight", "description"),
        min_length=20,
        max_length=300,
    ),
    BucketRule(
        label="specifications",
        keywords=("brand", "weight", "size", "model"),
        min_length=5,
        max_length=100,
        require_colon=True,
    ),
)


class KeywordBucketClassifier(TextClassifier):
    """
    Assign free text to the first bucket whose keywords and length bounds fit.
    """

    def __init__(self, rules: Sequence[BucketRule] = DETAIL_BUCKET_RULES) -> None:
        self._rules = tuple(rules)

    def classify(self, text: str) -> Classification:
        lowered = text.lower()
        for rule in self._rules:
            if not rule.min_length < len(text) < rule.max_length:
                continue
            if rule.require_colon and ":" not in text:
                continue
            matched = tuple(keyword for keyword in rule.keywords if keyword in lowered)
            if matched:
                return Classification(
                    accepted=True,
                    confidence=1.0,
                    label=rule.label,
                    matched=matched,
                )
        return REJECTED


class EcoKeywordClassifier(TextClassifier):
    """
    Weighted keyword scoring for eco-friendly products.
    """

    def __init__(
        self,
        tiers: dict[str, tuple[int, tuple[str, ...]]] | None = None,
        *,
        min_score: int = 1,
        full_confidence_score: int = 3,
    ) -> None:
        self._tiers = tiers if tiers is not None else ECO_KEYWORD_TIERS
        self._min_score = min_score
        self._full_confidence_score = full_confidence_score

    def classify(self, text: str) -> Classification:
        lowered = text.lower()
        score = 0
        matched: list[str] = []
        for weight, keywords in self._tiers.values():
            for keyword in keywords:
                if keyword.lower() in lowered:
                    matched.append(keyword)
                    score += weight
        return Classification(
            accepted=score >= self._min_score,
            confidence=min(score / self._full_confidence_score, 1.0),
            label="eco" if score >= self._min_score else None,
            matched=tuple(matched),
        )
