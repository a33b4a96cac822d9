"""
autogreen/api/routers package marker.
"""

from autogreen.api.routers.scanner import router as scanner_router

__all__ = ["scanner_router"]
