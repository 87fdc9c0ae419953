from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Fired by the storage medium itself, for every tab except the writer.
STORAGE_EVENT = "storage"

# Fired by the store after its own writes, for every tab including the writer.
LOCAL_STORAGE_EVENT = "local-storage"


@dataclass(frozen=True)
class StorageEvent:
    """
    Notification that a storage key changed.

    The payload deliberately carries no value: receivers re-read the key
    from storage, so duplicate or reordered events are harmless.
    `key` is None when the whole storage area changed.
    """

    type: str
    key: Optional[str]
    origin_tab_id: Optional[str] = None


StorageListener = Callable[[StorageEvent], None]


class CrossTabEventBus:
    """
    Delivers storage events to listeners registered by the tabs of one
    browser context.
    """

    def __init__(self) -> None:
        # event type -> [(tab_id, listener)]
        self._listeners: Dict[str, List[Tuple[str, StorageListener]]] = {}

    def add_listener(
        self,
        event_type: str,
        tab_id: str,
        listener: StorageListener,
    ) -> Callable[[], None]:
        """Register `listener` for `tab_id`; returns a deregistration function."""

        entry = (tab_id, listener)
        self._listeners.setdefault(event_type, []).append(entry)

        def remove() -> None:
            entries = self._listeners.get(event_type, [])
            if entry in entries:
                entries.remove(entry)

        return remove

    def remove_tab(self, tab_id: str) -> None:
        for event_type, entries in self._listeners.items():
            self._listeners[event_type] = [e for e in entries if e[0] != tab_id]

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch(self, event: StorageEvent, include_origin: bool = True) -> int:
        """
        Deliver `event` to every registered listener of its type.

        With `include_origin=False` listeners of the originating tab are
        skipped. Returns the number of listeners invoked.
        """

        # Snapshot: listeners may deregister while being notified.
        entries = list(self._listeners.get(event.type, []))
        delivered = 0
        for tab_id, listener in entries:
            if not include_origin and tab_id == event.origin_tab_id:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Storage listener in tab %s failed on %s event for key %r",
                    tab_id,
                    event.type,
                    event.key,
                )
            delivered += 1
        return delivered
