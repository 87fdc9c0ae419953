from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, TypeVar

from .models import EstimationState, Presence

T = TypeVar("T")


class StorageMedium(Protocol):
    """
    Abstraction over a per-tab-group text storage area (the Python
    counterpart of a browser's `sessionStorage`).

    Implementations are responsible for:
    - Persisting plain text under string keys within one namespace.
    - Raising `StorageWriteFailure` when a write cannot be committed.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored text for `key`, or None if absent."""

        ...

    def set_item(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous text."""

        ...

    def remove_item(self, key: str) -> None:
        """Remove `key`; removing an absent key is not an error."""

        ...


class RoomSession(Protocol):
    """
    One participant's live connection to a replicated room.

    The replication layer owns ordering and merging of concurrent writes;
    this protocol is everything the core needs from it.
    """

    room_id: str

    @property
    def presence(self) -> Presence:
        """Return a copy of this connection's own presence."""

        ...

    def update_presence(self, **patch: Any) -> None:
        """
        Merge a partial presence patch (`id`, `username`, `is_spectator`)
        and deliver it to every participant.
        """

        ...

    def mutate_shared_state(self, fn: Callable[[EstimationState], None]) -> None:
        """
        Apply `fn` to the shared state as one atomic mutation.

        Implementations should never expose a half-applied mutation.
        """

        ...

    def observe_shared_state(self, selector: Callable[[EstimationState], T]) -> T:
        """Return a projection of the current shared state."""

        ...

    def observe_others_presence(self, selector: Callable[[List[Presence]], T]) -> T:
        """Return a projection of the other participants' presences."""

        ...

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Call `callback` after every committed presence or shared-state
        change in the room. Returns a function that removes the callback.
        """

        ...

    def disconnect(self) -> None:
        ...


class ReplicationLayer(Protocol):
    """Entry point of the replication layer: opens room sessions."""

    def connect(
        self,
        room_id: str,
        initial_presence: Presence,
        initial_state: EstimationState,
    ) -> RoomSession:
        """
        Join `room_id` with `initial_presence`. `initial_state` seeds the
        room's shared state only if the room does not exist yet.
        """

        ...
