"""
Key-value store interface shared by the product ledger and result store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class KeyValueStore(ABC):
    """
    Get/set by string key over JSON-serialisable values.

    `set` and `delete` raise `StorageWriteFailure` when the backend rejects
    the write; `get` raises `StorageReadFailure` when it cannot be read.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the stored value or `default` when the key is absent.
        """

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Persist `value` under `key`, replacing any previous value.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove `key`; missing keys are ignored.
        """
