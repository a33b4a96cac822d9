"""
autogreen/domain/scan_session.py

Domain model for one live page-scanning session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ScanSession:
    """
    The page currently observed by the scanner service.
    """

    url: str
    site: str
    started_at: datetime
    deep_scan_enabled: bool
