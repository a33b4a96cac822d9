"""
autogreen/domain package marker.
"""

from autogreen.domain.scan_session import ScanSession

__all__ = ["ScanSession"]
