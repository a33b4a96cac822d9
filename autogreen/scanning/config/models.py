"""
Scanner configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DetailSelectorConfig:
    """
    Selectors used to read a product detail page.
    """

    detail_container: list[str] = field(default_factory=list)
    highlight_selectors: list[str] = field(default_factory=list)
    highlight_containers: list[str] = field(default_factory=list)
    ingredient_selectors: list[str] = field(default_factory=list)
    ingredient_containers: list[str] = field(default_factory=list)
    spec_item_selectors: list[str] = field(default_factory=list)
    spec_name_selectors: list[str] = field(default_factory=list)
    spec_value_selectors: list[str] = field(default_factory=list)
    price_selectors: list[str] = field(default_factory=list)
    rating_selectors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SiteSelectorConfig:
    """
    One supported shopping site: listing selectors plus deep-scan rules.
    """

    name: str
    domain_patterns: list[str]
    product_container: list[str]
    product_link: list[str] = field(default_factory=list)
    product_link_fallback: list[str] = field(default_factory=list)
    title_attr: str = "title"
    title_selectors: list[str] = field(default_factory=list)
    home_page_title: list[str] = field(default_factory=list)
    layout_title_selectors: list[str] = field(default_factory=list)
    price_selectors: list[str] = field(default_factory=list)
    image_selectors: list[str] = field(default_factory=list)
    require_corroboration: bool = False
    link_markers: list[str] = field(default_factory=list)
    product_path_markers: list[str] = field(default_factory=list)
    deep_scan_enabled: bool = True
    product_page_patterns: list[str] = field(default_factory=list)
    detail: DetailSelectorConfig = field(default_factory=DetailSelectorConfig)


@dataclass(frozen=True)
class PerformanceSettings:
    batch_size: int = 10
    scroll_delay_seconds: float = 0.5
    viewport_buffer_px: float = 200.0
    batch_delay_seconds: float = 0.1
    init_delay_seconds: float = 1.0
    mutation_delay_seconds: float = 0.5


@dataclass(frozen=True)
class ValidationSettings:
    """
    Name acceptance rules applied to every extracted record.
    """

    min_name_length: int = 10
    skip_patterns: tuple[str, ...] = (
        r"(?i)^(view all|see more|load more|show more)$",
        r"(?i)^(home|shop|cart|login|register|search)$",
        r"(?i)^(breadcrumb|navigation|menu)$",
        r"^\s*$",
        r"^[0-9]+$",
        r"(?i)^(loading|error|404)$",
        r"^(.*\.\.\.)$",
    )
    required_patterns: tuple[str, ...] = (r"[a-zA-Z]{3,}",)


@dataclass(frozen=True)
class DeepScanSettings:
    enabled_by_default: bool = False
    max_concurrent: int = 1
    delay_between_requests_seconds: float = 5.0
    max_retries: int = 1
    respect_robots_txt: bool = False
    user_agent: str = "AutoGreenScanner/1.0"


@dataclass(frozen=True)
class ReadinessSettings:
    """
    Weights and timings of the detail-page readiness heuristic.
    """

    min_body_text_length: int = 150
    min_node_count: int = 50
    content_markers: tuple[str, ...] = (
        ".pdp-block",
        "#module_product_detail",
        ".pdp-product-detail",
        ".product-detail",
        ".product-info",
        ".item-detail",
        "[data-spm*='product']",
        ".product-title",
        ".price-section",
    )
    content_keywords: tuple[str, ...] = (
        "product",
        "price",
        "description",
        "add to cart",
        "buy now",
        "rating",
    )
    body_text_weight: int = 2
    ready_state_weight: int = 3
    content_marker_weight: int = 3
    content_keyword_weight: int = 1
    node_count_weight: int = 1
    threshold: int = 6
    settle_delay_seconds: float = 0.5
    check_interval_seconds: float = 0.75
    max_checks: int = 8
    hard_timeout_seconds: float = 12.0
    post_ready_wait_seconds: float = 2.0
    navigation_timeout_seconds: float = 10.0
    min_document_text_length: int = 100

    @property
    def max_score(self) -> int:
        return (
            self.body_text_weight
            + self.ready_state_weight
            + self.content_marker_weight
            + self.content_keyword_weight
            + self.node_count_weight
        )


@dataclass(frozen=True)
class StorageKeys:
    products: str = "autogreen_products"
    deep_scan_enabled: str = "autogreen_deep_scan_enabled"
    deep_scan_data: str = "autogreen_deep_scan_data"
    fallback_results: str = "autogreen_fallback_deep_scan_results"
    fallback_failures: str = "autogreen_fallback_failed_scans"

    @property
    def products_backup(self) -> str:
        return f"{self.products}_backup"


@dataclass(frozen=True)
class StorageSettings:
    max_bytes: int = int(4.5 * 1024 * 1024)
    healthy_bytes: int = 4 * 1024 * 1024
    oversize_cleanup_days: int = 7
    max_failure_ratio: float = 0.8


@dataclass(frozen=True)
class ScannerSettings:
    """
    Runtime settings for the scanning pipeline.
    """

    sites_config_path: str
    performance: PerformanceSettings = field(default_factory=PerformanceSettings)
    validation: ValidationSettings = field(default_factory=ValidationSettings)
    deep_scan: DeepScanSettings = field(default_factory=DeepScanSettings)
    readiness: ReadinessSettings = field(default_factory=ReadinessSettings)
    storage_keys: StorageKeys = field(default_factory=StorageKeys)
    storage: StorageSettings = field(default_factory=StorageSettings)
    init_retries: int = 3
    init_backoff_initial_seconds: float = 0.5
    init_backoff_multiplier: float = 2.0
    headless: bool = True
