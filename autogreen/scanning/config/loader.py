"""
Environment + JSON config loader for the scanner.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path

from db.config import load_env_files

from autogreen.scanning.config.models import (
    DeepScanSettings,
    DetailSelectorConfig,
    PerformanceSettings,
    ReadinessSettings,
    ScannerSettings,
    SiteSelectorConfig,
    ValidationSettings,
)

DEFAULT_SITES_CONFIG_PATH = str(Path(__file__).resolve().with_name("sites.json"))


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


def default_scanner_settings() -> ScannerSettings:
    """
    Settings with every default applied and no environment lookups.
    """

    return ScannerSettings(sites_config_path=str(_resolve_config_path(DEFAULT_SITES_CONFIG_PATH)))


@lru_cache(maxsize=1)
def get_scanner_settings() -> ScannerSettings:
    """
    Return cached scanner settings from environment variables.
    """

    load_env_files()
    defaults = default_scanner_settings()
    performance = PerformanceSettings(
        batch_size=max(1, _get_int_env("AUTOGREEN_BATCH_SIZE", 10)),
        scroll_delay_seconds=max(0.0, _get_float_env("AUTOGREEN_SCROLL_DELAY_SECONDS", 0.5)),
        viewport_buffer_px=max(0.0, _get_float_env("AUTOGREEN_VIEWPORT_BUFFER_PX", 200.0)),
        batch_delay_seconds=max(0.0, _get_float_env("AUTOGREEN_BATCH_DELAY_SECONDS", 0.1)),
        init_delay_seconds=max(0.0, _get_float_env("AUTOGREEN_INIT_DELAY_SECONDS", 1.0)),
        mutation_delay_seconds=max(
            0.0,
            _get_float_env("AUTOGREEN_MUTATION_DELAY_SECONDS", 0.5),
        ),
    )
    validation = ValidationSettings(
        min_name_length=max(1, _get_int_env("AUTOGREEN_MIN_PRODUCT_NAME_LENGTH", 10)),
    )
    deep_scan = DeepScanSettings(
        enabled_by_default=_get_bool_env("AUTOGREEN_DEEP_SCAN_ENABLED", False),
        max_concurrent=max(1, _get_int_env("AUTOGREEN_DEEP_SCAN_MAX_CONCURRENT", 1)),
        delay_between_requests_seconds=max(
            0.0,
            _get_float_env("AUTOGREEN_DEEP_SCAN_DELAY_SECONDS", 5.0),
        ),
        max_retries=max(0, _get_int_env("AUTOGREEN_DEEP_SCAN_MAX_RETRIES", 1)),
        respect_robots_txt=_get_bool_env("AUTOGREEN_RESPECT_ROBOTS_TXT", False),
        user_agent=_get_str_env("AUTOGREEN_USER_AGENT", "AutoGreenScanner/1.0"),
    )
    readiness = ReadinessSettings(
        threshold=max(1, _get_int_env("AUTOGREEN_READINESS_THRESHOLD", 6)),
        settle_delay_seconds=max(0.0, _get_float_env("AUTOGREEN_READINESS_SETTLE_SECONDS", 0.5)),
        check_interval_seconds=max(
            0.05,
            _get_float_env("AUTOGREEN_READINESS_INTERVAL_SECONDS", 0.75),
        ),
        max_checks=max(0, _get_int_env("AUTOGREEN_READINESS_MAX_CHECKS", 8)),
        hard_timeout_seconds=max(
            1.0,
            _get_float_env("AUTOGREEN_FETCH_TIMEOUT_SECONDS", 12.0),
        ),
        post_ready_wait_seconds=max(
            0.0,
            _get_float_env("AUTOGREEN_POST_READY_WAIT_SECONDS", 2.0),
        ),
    )
    sites_path = _get_str_env("AUTOGREEN_SITES_CONFIG_PATH", DEFAULT_SITES_CONFIG_PATH)
    return ScannerSettings(
        sites_config_path=str(_resolve_config_path(sites_path)),
        performance=performance,
        validation=validation,
        deep_scan=deep_scan,
        readiness=readiness,
        storage_keys=defaults.storage_keys,
        storage=defaults.storage,
        init_retries=max(0, _get_int_env("AUTOGREEN_INIT_RETRIES", 3)),
        init_backoff_initial_seconds=max(
            0.1,
            _get_float_env("AUTOGREEN_INIT_BACKOFF_INITIAL_SECONDS", 0.5),
        ),
        init_backoff_multiplier=max(
            1.0,
            _get_float_env("AUTOGREEN_INIT_BACKOFF_MULTIPLIER", 2.0),
        ),
        headless=_get_bool_env("AUTOGREEN_HEADLESS", True),
    )


def load_site_configs(*, config_path: str) -> list[SiteSelectorConfig]:
    """
    Load per-site selector tables from a JSON file.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Site config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    sites = raw_data.get("sites", [])
    if not isinstance(sites, list):
        raise ValueError("Invalid site config: 'sites' must be a list.")

    parsed: list[SiteSelectorConfig] = []
    for entry in sites:
        if not isinstance(entry, dict):
            continue

        name = str(entry.get("name", "")).strip().lower()
        containers = _normalize_selector_list(entry.get("product_container"))
        if not name or not containers:
            continue

        parsed.append(
            SiteSelectorConfig(
                name=name,
                domain_patterns=_normalize_selector_list(entry.get("domain_patterns")),
                product_container=containers,
                product_link=_normalize_selector_list(entry.get("product_link")),
                product_link_fallback=_normalize_selector_list(entry.get("product_link_fallback")),
                title_attr=_optional_str(entry.get("title_attr")) or "title",
                title_selectors=_normalize_selector_list(entry.get("title_selectors")),
                home_page_title=_normalize_selector_list(entry.get("home_page_title")),
                layout_title_selectors=_normalize_selector_list(
                    entry.get("layout_title_selectors")
                ),
                price_selectors=_normalize_selector_list(entry.get("price_selectors")),
                image_selectors=_normalize_selector_list(entry.get("image_selectors")),
                require_corroboration=_optional_bool(entry.get("require_corroboration"), False),
                link_markers=_normalize_selector_list(entry.get("link_markers")),
                product_path_markers=_normalize_selector_list(entry.get("product_path_markers")),
                deep_scan_enabled=_optional_bool(entry.get("deep_scan_enabled"), True),
                product_page_patterns=_normalize_selector_list(
                    entry.get("product_page_patterns")
                ),
                detail=_parse_detail_selectors(entry.get("detail", {})),
            )
        )

    return parsed


def _parse_detail_selectors(raw: object) -> DetailSelectorConfig:
    if not isinstance(raw, dict):
        return DetailSelectorConfig()
    normalized = _normalize_selectors(raw)
    return DetailSelectorConfig(
        detail_container=normalized.get("detail_container", []),
        highlight_selectors=normalized.get("highlight_selectors", []),
        highlight_containers=normalized.get("highlight_containers", []),
        ingredient_selectors=normalized.get("ingredient_selectors", []),
        ingredient_containers=normalized.get("ingredient_containers", []),
        spec_item_selectors=normalized.get("spec_item_selectors", []),
        spec_name_selectors=normalized.get("spec_name_selectors", []),
        spec_value_selectors=normalized.get("spec_value_selectors", []),
        price_selectors=normalized.get("price_selectors", []),
        rating_selectors=normalized.get("rating_selectors", []),
    )


def _normalize_selectors(selectors: dict[object, object]) -> dict[str, list[str]]:
    normalized: dict[str, list[str]] = {}
    for key, value in selectors.items():
        if not isinstance(key, str):
            continue
        normalized[key.strip().lower()] = _normalize_selector_list(value)
    return normalized


def _normalize_selector_list(value: object) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return []


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default
