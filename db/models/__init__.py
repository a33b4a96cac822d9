"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.scan_store_entry import ScanStoreEntry

__all__ = [
    "ScanStoreEntry",
]
