"""
Config helpers for product scanning.
"""

from autogreen.scanning.config.loader import (
    default_scanner_settings,
    get_scanner_settings,
    load_site_configs,
)
from autogreen.scanning.config.models import (
    DeepScanSettings,
    DetailSelectorConfig,
    PerformanceSettings,
    ReadinessSettings,
    ScannerSettings,
    SiteSelectorConfig,
    StorageKeys,
    StorageSettings,
    ValidationSettings,
)

__all__ = [
    "DeepScanSettings",
    "DetailSelectorConfig",
    "PerformanceSettings",
    "ReadinessSettings",
    "ScannerSettings",
    "SiteSelectorConfig",
    "StorageKeys",
    "StorageSettings",
    "ValidationSettings",
    "default_scanner_settings",
    "get_scanner_settings",
    "load_site_configs",
]
