"""
Small BeautifulSoup helpers shared by the record and detail extractors.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)


def clean_text(value: str | None) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value).strip()


def node_text(node: Tag) -> str:
    return clean_text(node.get_text(" ", strip=True))


def select_all(root: Tag | BeautifulSoup, selectors: Iterable[str]) -> list[Tag]:
    """
    Match a selector group in document order, each node once.

    When the combined group does not parse, each selector runs on its own
    and the ones soupsieve rejects are skipped.
    """

    selectors = [selector for selector in selectors if selector]
    if not selectors:
        return []
    try:
        return root.select(", ".join(selectors))
    except SelectorSyntaxError:
        pass

    found: list[Tag] = []
    seen: set[int] = set()
    for selector in selectors:
        try:
            matches = root.select(selector)
        except SelectorSyntaxError:
            logger.debug("Skipping unsupported selector %r", selector)
            continue
        for node in matches:
            if id(node) in seen:
                continue
            seen.add(id(node))
            found.append(node)
    return found


def select_first(root: Tag | BeautifulSoup, selectors: Iterable[str]) -> Tag | None:
    for selector in selectors:
        try:
            node = root.select_one(selector)
        except SelectorSyntaxError:
            logger.debug("Skipping unsupported selector %r", selector)
            continue
        if node is not None:
            return node
    return None


def descendant_ids(root: Tag | BeautifulSoup, selectors: Iterable[str]) -> set[int]:
    """
    Identity set of every element inside any node matched by `selectors`.
    """

    inside: set[int] = set()
    for container in select_all(root, selectors):
        inside.add(id(container))
        inside.update(id(node) for node in container.find_all(True))
    return inside


def dedupe_texts(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    deduped: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        deduped.append(item)
    return deduped
