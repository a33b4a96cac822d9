"""
Optional robots.txt gate for deep-scan fetches.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import requests

from autogreen.scanning.logging_utils import log_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RobotsVerdict:
    allowed: bool
    crawl_delay_seconds: float | None = None


class RobotsPolicyManager:
    """
    Caches parsed robots.txt per origin. Fetches run in a worker thread so
    the event loop keeps scheduling while rules download.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        session: requests.Session | None = None,
        timeout_seconds: float = 10.0,
        allow_when_unreachable: bool = True,
    ) -> None:
        self._user_agent = user_agent
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._allow_when_unreachable = allow_when_unreachable
        self._cache: dict[str, RobotFileParser] = {}

    async def check(self, url: str) -> RobotsVerdict:
        origin = self._origin(url)
        parser = self._cache.get(origin)
        if parser is None:
            parser = await asyncio.to_thread(self._load_parser, origin)
            self._cache[origin] = parser
        return RobotsVerdict(
            allowed=parser.can_fetch(self._user_agent, url),
            crawl_delay_seconds=self._crawl_delay(parser),
        )

    def _crawl_delay(self, parser: RobotFileParser) -> float | None:
        delay = parser.crawl_delay(self._user_agent)
        if delay is None:
            delay = parser.crawl_delay("*")
        return float(delay) if delay is not None else None

    def _load_parser(self, origin: str) -> RobotFileParser:
        parser = RobotFileParser()
        robots_url = urljoin(origin, "/robots.txt")
        try:
            response = self._session.get(
                robots_url,
                timeout=self._timeout_seconds,
                headers={"User-Agent": self._user_agent},
            )
        except requests.RequestException as exc:
            self._apply_fallback_policy(parser)
            log_event(
                logger,
                logging.WARNING,
                "robots_fetch_failed",
                origin=origin,
                robots_url=robots_url,
                fallback_allow=self._allow_when_unreachable,
                error=str(exc),
            )
            return parser

        if response.status_code == 404:
            parser.parse([])
            log_event(logger, logging.INFO, "robots_missing", origin=origin)
        elif response.ok:
            parser.set_url(robots_url)
            parser.parse(response.text.splitlines())
            log_event(logger, logging.INFO, "robots_loaded", origin=origin)
        else:
            self._apply_fallback_policy(parser)
            log_event(
                logger,
                logging.WARNING,
                "robots_unavailable",
                origin=origin,
                status_code=response.status_code,
                fallback_allow=self._allow_when_unreachable,
            )
        return parser

    def _apply_fallback_policy(self, parser: RobotFileParser) -> None:
        if self._allow_when_unreachable:
            parser.parse(["User-agent: *", "Allow: /"])
        else:
            parser.parse(["User-agent: *", "Disallow: /"])

    @staticmethod
    def _origin(url: str) -> str:
        parsed = urlparse(url)
        scheme = parsed.scheme or "https"
        return f"{scheme}://{parsed.netloc}"
