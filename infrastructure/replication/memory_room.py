from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, TypeVar

from domain.models import EstimationState, Presence
from domain.repositories import ReplicationLayer, RoomSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRESENCE_FIELDS = ("id", "username", "is_spectator")


@dataclass
class _Room:
    room_id: str
    state: EstimationState
    sessions: Dict[int, "InMemoryRoomSession"] = field(default_factory=dict)


class InMemoryRoomSession(RoomSession):
    """
    A connection to a room hosted by `InMemoryReplicationHub`.

    Every committed change is delivered to the subscribers of every
    session in the room, including this one.
    """

    def __init__(
        self,
        hub: "InMemoryReplicationHub",
        room: _Room,
        connection_id: int,
        presence: Presence,
    ) -> None:
        self._hub = hub
        self._room = room
        self.connection_id = connection_id
        self.room_id = room.room_id
        self._presence = presence
        self._subscribers: List[Callable[[], None]] = []
        self.connected = True

    @property
    def presence(self) -> Presence:
        with self._hub._lock:
            return self._presence.copy()

    def update_presence(self, **patch: Any) -> None:
        unknown = set(patch) - set(PRESENCE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown presence fields: {sorted(unknown)}")
        if not self.connected:
            logger.warning("Ignoring presence update on closed connection %s", self.connection_id)
            return

        with self._hub._lock:
            for name, value in patch.items():
                setattr(self._presence, name, value)
        self._hub._notify(self._room)

    def mutate_shared_state(self, fn: Callable[[EstimationState], None]) -> None:
        if not self.connected:
            logger.warning("Ignoring mutation on closed connection %s", self.connection_id)
            return

        with self._hub._lock:
            working = self._room.state.copy()
            fn(working)
            self._room.state = working
        self._hub._notify(self._room)

    def observe_shared_state(self, selector: Callable[[EstimationState], T]) -> T:
        with self._hub._lock:
            return selector(self._room.state.copy())

    def observe_others_presence(self, selector: Callable[[List[Presence]], T]) -> T:
        with self._hub._lock:
            others = [
                session._presence.copy()
                for connection_id, session in self._room.sessions.items()
                if connection_id != self.connection_id
            ]
        return selector(others)

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def disconnect(self) -> None:
        if not self.connected:
            return
        self.connected = False
        self._subscribers = []
        self._hub._leave(self)


class InMemoryReplicationHub(ReplicationLayer):
    """
    In-process replication layer.

    Rooms live in a dict keyed by room id. Mutations run against a copy
    of the room state and are committed in one step under a lock, so
    observers only ever see whole mutations. Delivery to subscribers
    happens after the lock is released.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rooms: Dict[str, _Room] = {}
        self._connection_ids = itertools.count(1)

    def connect(
        self,
        room_id: str,
        initial_presence: Presence,
        initial_state: EstimationState,
    ) -> InMemoryRoomSession:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = _Room(room_id=room_id, state=initial_state.copy())
                self._rooms[room_id] = room
                logger.info("Created room %s", room_id)
            session = InMemoryRoomSession(
                self,
                room,
                next(self._connection_ids),
                initial_presence.copy(),
            )
            room.sessions[session.connection_id] = session
        logger.info(
            "Connection %s joined room %s as %s",
            session.connection_id,
            room_id,
            initial_presence.username,
        )
        self._notify(room)
        return session

    def room_ids(self) -> List[str]:
        with self._lock:
            return list(self._rooms)

    def _leave(self, session: InMemoryRoomSession) -> None:
        with self._lock:
            room = self._rooms.get(session.room_id)
            if room is None:
                return
            room.sessions.pop(session.connection_id, None)
        logger.info("Connection %s left room %s", session.connection_id, session.room_id)
        self._notify(room)

    def _notify(self, room: _Room) -> None:
        with self._lock:
            callbacks = [
                callback
                for session in room.sessions.values()
                for callback in list(session._subscribers)
            ]
        for callback in callbacks:
            callback()
