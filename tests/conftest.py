"""
tests/conftest.py

Shared fixtures for the scanner test suite.
"""

from __future__ import annotations

import pytest

from autogreen.scanning.config import default_scanner_settings, load_site_configs
from autogreen.scanning.config.models import ScannerSettings, SiteSelectorConfig
from autogreen.scanning.storage import InMemoryKeyValueStore
from tests.support import FakeClock


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def settings() -> ScannerSettings:
    return default_scanner_settings()


@pytest.fixture()
def sites(settings: ScannerSettings) -> list[SiteSelectorConfig]:
    return load_site_configs(config_path=settings.sites_config_path)


@pytest.fixture()
def site_by_name(sites: list[SiteSelectorConfig]) -> dict[str, SiteSelectorConfig]:
    return {site.name: site for site in sites}


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()
