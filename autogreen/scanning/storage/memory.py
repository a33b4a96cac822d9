"""
Process-local key-value store.
"""

from __future__ import annotations

import json
from typing import Any

from autogreen.scanning.errors import StorageWriteFailure
from autogreen.scanning.storage.base import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """
    Values are JSON round-tripped on write, so callers never share mutable
    state with the store and non-serialisable payloads fail like they would
    on a durable backend. `quota_bytes` caps the total encoded size.
    """

    def __init__(self, *, quota_bytes: int | None = None) -> None:
        self._quota_bytes = quota_bytes
        self._encoded: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        encoded = self._encoded.get(key)
        if encoded is None:
            return default
        return json.loads(encoded)

    def set(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageWriteFailure(f"Value for {key!r} is not JSON serialisable: {exc}") from exc

        if self._quota_bytes is not None:
            used = sum(len(item) for name, item in self._encoded.items() if name != key)
            if used + len(encoded) > self._quota_bytes:
                raise StorageWriteFailure(
                    f"Quota exceeded writing {key!r}: {used + len(encoded)} > {self._quota_bytes} bytes"
                )
        self._encoded[key] = encoded

    def delete(self, key: str) -> None:
        self._encoded.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._encoded)
