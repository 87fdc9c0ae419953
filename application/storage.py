from __future__ import annotations

import copy
import itertools
import json
import logging
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

from application.events import (
    LOCAL_STORAGE_EVENT,
    STORAGE_EVENT,
    CrossTabEventBus,
    StorageEvent,
    StorageListener,
)
from domain.errors import (
    DeserializationFailure,
    PlanningPokerError,
    StorageWriteFailure,
)
from domain.repositories import StorageMedium

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Stored text that stands for "no value".
UNDEFINED = "undefined"

_tab_ids = itertools.count(1)


class BrowserContext:
    """
    A group of tabs sharing one storage medium and one event bus.

    This is the unit that a durable identity belongs to: every tab opened
    from the same context sees the same stored values and is notified of
    the other tabs' writes.
    """

    def __init__(
        self,
        storage: StorageMedium,
        bus: Optional[CrossTabEventBus] = None,
    ) -> None:
        self.storage = storage
        self.bus = bus or CrossTabEventBus()
        self._tabs: Dict[str, Tab] = {}

    @property
    def tabs(self) -> List["Tab"]:
        return list(self._tabs.values())

    def open_tab(self) -> "Tab":
        tab = Tab(self, f"tab-{next(_tab_ids)}")
        self._tabs[tab.tab_id] = tab
        return tab

    def _forget(self, tab: "Tab") -> None:
        self._tabs.pop(tab.tab_id, None)
        self.bus.remove_tab(tab.tab_id)


class TabStorage:
    """
    A tab's view of the shared storage medium.

    Every committed write fires the native `storage` event in all other
    tabs of the context, never in the writing tab itself.
    """

    def __init__(self, tab: "Tab") -> None:
        self._tab = tab

    @property
    def _medium(self) -> StorageMedium:
        return self._tab.context.storage

    def get_item(self, key: str) -> Optional[str]:
        return self._medium.get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._medium.set_item(key, value)
        self._notify_other_tabs(key)

    def remove_item(self, key: str) -> None:
        self._medium.remove_item(key)
        self._notify_other_tabs(key)

    def _notify_other_tabs(self, key: str) -> None:
        event = StorageEvent(STORAGE_EVENT, key, self._tab.tab_id)
        self._tab.context.bus.dispatch(event, include_origin=False)


class Tab:
    """One browser tab: a storage view plus event listener registration."""

    def __init__(self, context: BrowserContext, tab_id: str) -> None:
        self.context = context
        self.tab_id = tab_id
        self.storage = TabStorage(self)
        self.closed = False

    def add_event_listener(
        self,
        event_type: str,
        listener: StorageListener,
    ) -> Callable[[], None]:
        return self.context.bus.add_listener(event_type, self.tab_id, listener)

    def dispatch_event(self, event: StorageEvent) -> int:
        return self.context.bus.dispatch(event, include_origin=True)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.context._forget(self)


class SessionStorageValue(Generic[T]):
    """
    A single JSON-serialisable value persisted under `key` in a tab's
    storage, exposed as a reactive value.

    Writes go to storage first and are then announced with a
    `local-storage` event to every tab (including this one). Other tabs'
    writes arrive through the native `storage` event. Both channels are
    handled the same way: re-read the key and apply the current stored
    value, so redundant or out-of-order notifications never corrupt state.

    Without a tab (server-side rendering, background jobs) every read
    yields the initial value and writes are rejected with a warning.

    With `initialize_with_value=False` the value starts as the initial
    value and is hydrated from storage on `mount()`.
    """

    def __init__(
        self,
        key: str,
        initial_value: Union[T, Callable[[], T]],
        tab: Optional[Tab] = None,
        *,
        serializer: Optional[Callable[[T], str]] = None,
        deserializer: Optional[Callable[[str], T]] = None,
        initialize_with_value: bool = True,
    ) -> None:
        self._key = key
        self._initial_value = initial_value
        self._tab = tab
        self._serializer = serializer or json.dumps
        self._deserializer = deserializer
        self._subscribers: List[Callable[[T], None]] = []
        self._removers: List[Callable[[], None]] = []
        self._mounted = False
        # Set while the in-memory value differs from storage after a failed write.
        self._unsaved = False

        if initialize_with_value:
            self._value = self.read()
        else:
            self._value = self._default()

    def __enter__(self) -> "SessionStorageValue[T]":
        self.mount()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unmount()

    @property
    def key(self) -> str:
        return self._key

    @property
    def value(self) -> T:
        return self._value

    @property
    def is_server(self) -> bool:
        return self._tab is None or self._tab.closed

    @property
    def mounted(self) -> bool:
        return self._mounted

    def _default(self) -> T:
        if callable(self._initial_value):
            return self._initial_value()
        return copy.deepcopy(self._initial_value)

    def _deserialize(self, raw: str) -> T:
        if self._deserializer is not None:
            try:
                return self._deserializer(raw)
            except DeserializationFailure:
                raise
            except Exception as exc:
                raise DeserializationFailure(str(exc)) from exc
        if raw == UNDEFINED:
            return None  # type: ignore[return-value]
        return json.loads(raw)

    def read(self) -> T:
        """Return the stored value, or the initial value if none is usable."""

        default = self._default()
        if self.is_server:
            return default

        try:
            raw = self._tab.storage.get_item(self._key)
        except PlanningPokerError as exc:
            logger.warning("Error reading storage key %r: %s", self._key, exc)
            return default

        if not raw:
            return default

        try:
            return self._deserialize(raw)
        except (ValueError, TypeError, RecursionError, DeserializationFailure) as exc:
            logger.error("Error parsing stored value for key %r: %s", self._key, exc)
            return default

    def set(self, value: Union[T, Callable[[T], T]]) -> None:
        """
        Persist `value` and update the reactive value.

        `value` may be a function of the current value: the stored one, or
        the in-memory one while a failed write has left storage behind.
        """

        if self.is_server:
            logger.warning(
                "Tried setting storage key %r even though environment is not a client",
                self._key,
            )
            return

        if callable(value):
            current = self._value if self._unsaved else self.read()
            new_value = value(current)
        else:
            new_value = value

        try:
            text = self._serializer(new_value)
        except (TypeError, ValueError) as exc:
            logger.warning("Error serialising value for storage key %r: %s", self._key, exc)
            return

        try:
            self._tab.storage.set_item(self._key, text)
        except StorageWriteFailure as exc:
            # The in-memory value stays authoritative for this tab.
            logger.warning("Error setting storage key %r: %s", self._key, exc)
            self._unsaved = True
            self._apply(new_value)
            return

        self._unsaved = False
        self._apply(new_value)
        self._announce()

    def remove(self) -> T:
        """Remove the key from storage and reset to the initial value."""

        default = self._default()
        if self.is_server:
            logger.warning(
                "Tried removing storage key %r even though environment is not a client",
                self._key,
            )
            return default

        try:
            self._tab.storage.remove_item(self._key)
        except StorageWriteFailure as exc:
            logger.warning("Error removing storage key %r: %s", self._key, exc)
            self._unsaved = True
            self._apply(default)
            return default

        self._unsaved = False
        self._apply(default)
        self._announce()
        return default

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Call `callback(new_value)` whenever the reactive value changes."""

        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def mount(self) -> None:
        """Start listening for storage changes and hydrate from storage."""

        if self._mounted:
            return
        self._mounted = True
        if not self.is_server:
            self._removers = [
                self._tab.add_event_listener(STORAGE_EVENT, self._handle_storage_change),
                self._tab.add_event_listener(LOCAL_STORAGE_EVENT, self._handle_storage_change),
            ]
        self.refresh()

    def unmount(self) -> None:
        for remove in self._removers:
            remove()
        self._removers = []
        self._mounted = False

    def refresh(self) -> bool:
        """Re-read storage; returns True if the reactive value changed."""

        return self._apply(self.read())

    def _handle_storage_change(self, event: StorageEvent) -> None:
        if event.key is not None and event.key != self._key:
            return
        self.refresh()

    def _announce(self) -> None:
        event = StorageEvent(LOCAL_STORAGE_EVENT, self._key, self._tab.tab_id)
        self._tab.dispatch_event(event)

    def _apply(self, new_value: T) -> bool:
        if new_value == self._value:
            return False
        self._value = new_value
        for callback in list(self._subscribers):
            callback(new_value)
        return True
