"""
Single allow/deny decision for which pages are scanned and deep-scanned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from autogreen.scanning.config.models import SiteSelectorConfig


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str
    site: SiteSelectorConfig | None = None


class DeepScanPolicy:
    """
    Maps URLs to configured sites and decides deep-scan eligibility.

    A link may be deep-scanned when it is an absolute http(s) URL, its host
    matches a site's domain patterns, that site has deep scan enabled, and
    its path/query matches one of the site's product-page patterns (an empty
    pattern list accepts any path).
    """

    def __init__(self, sites: list[SiteSelectorConfig]) -> None:
        self._sites = [site for site in sites if site.domain_patterns]
        self._fallback = next((site for site in sites if site.name == "common"), None)

    def site_for(self, url: str) -> SiteSelectorConfig | None:
        host = urlparse(url).netloc.lower()
        if not host:
            return None
        for site in self._sites:
            if any(re.search(pattern, host, flags=re.IGNORECASE) for pattern in site.domain_patterns):
                return site
        return None

    def listing_site_for(self, url: str) -> SiteSelectorConfig | None:
        """
        Site selectors for scanning a listing page, falling back to `common`.
        """

        return self.site_for(url) or self._fallback

    def is_supported_site(self, url: str) -> bool:
        return self.site_for(url) is not None

    def evaluate(self, link: str) -> PolicyDecision:
        parsed = urlparse(link)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            return PolicyDecision(allowed=False, reason="malformed_url")

        site = self.site_for(link)
        if site is None:
            return PolicyDecision(allowed=False, reason="unsupported_site")
        if not site.deep_scan_enabled:
            return PolicyDecision(allowed=False, reason="deep_scan_disabled_for_site", site=site)

        if site.product_page_patterns:
            target = parsed.path + (f"?{parsed.query}" if parsed.query else "")
            if not any(re.search(pattern, target) for pattern in site.product_page_patterns):
                return PolicyDecision(allowed=False, reason="not_a_product_page", site=site)

        return PolicyDecision(allowed=True, reason="allowed", site=site)

    def allows(self, link: str) -> bool:
        return self.evaluate(link).allowed
