from __future__ import annotations

from typing import Dict, Optional

from domain.errors import StorageUnavailable, StorageWriteFailure
from domain.repositories import StorageMedium


class InMemoryStorageMedium(StorageMedium):
    """
    Dict-backed storage medium.

    `quota_bytes` caps the total size of keys and values, mimicking a
    browser's storage quota. `disabled` makes every access fail.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._items: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.disabled = False

    def _usage_with(self, key: str, value: str) -> int:
        items = dict(self._items)
        items[key] = value
        return sum(len(k) + len(v) for k, v in items.items())

    def get_item(self, key: str) -> Optional[str]:
        if self.disabled:
            raise StorageUnavailable("storage is disabled")
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.disabled:
            raise StorageWriteFailure("storage is disabled")
        if self.quota_bytes is not None and self._usage_with(key, value) > self.quota_bytes:
            raise StorageWriteFailure(
                f"quota of {self.quota_bytes} bytes exceeded writing {key!r}"
            )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        if self.disabled:
            raise StorageWriteFailure("storage is disabled")
        self._items.pop(key, None)
