"""
autogreen/services package marker.
"""

from autogreen.services.scanner_service import (
    ScannerService,
    build_key_value_store,
    get_scanner_service,
)

__all__ = [
    "ScannerService",
    "build_key_value_store",
    "get_scanner_service",
]
