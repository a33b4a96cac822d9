"""
Scanner exception hierarchy.
"""

from __future__ import annotations


class ScannerError(Exception):
    """Base exception for scanner failures."""


class ExtractionMiss(ScannerError):
    """Raised internally when a candidate element does not yield a valid record."""


class FetchError(ScannerError):
    """Base exception for detail-page fetch failures."""


class FetchTimeout(FetchError):
    """Raised when a detail page does not load within the hard timeout."""


class FetchBlocked(FetchError):
    """Raised when navigation is denied or the page comes back empty."""


class ContainerNotFound(ScannerError):
    """Raised when neither structured nor fallback detail extraction finds anything."""


class StorageError(ScannerError):
    """Base exception for key-value store failures."""


class StorageWriteFailure(StorageError):
    """Raised when a key-value store rejects a write."""


class StorageReadFailure(StorageError):
    """Raised when a key-value store cannot be read."""


class ScannerNotRunningError(ScannerError):
    """Raised when a session-bound operation runs without an active session."""
