"""
db/models/scan_store_entry.py

Key-value rows backing the scanner's ledger and result store.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class ScanStoreEntry(Base, TimestampMixin):
    __tablename__ = "scan_store_entries"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Store key, e.g. autogreen_deep_scan_data",
    )
    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=True,
        comment="JSON-serialisable payload",
    )
