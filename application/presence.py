from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from application.identity import IdentityStore
from domain.models import Identity, Presence
from domain.repositories import RoomSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    """
    Outcome of comparing the persisted identity with the network presence.

    `identity` is the identity to persist, or None when it is unchanged.
    `presence_patch` holds the fields to push to the network presence.
    """

    identity: Optional[Identity] = None
    presence_patch: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_noop(self) -> bool:
        return self.identity is None and not self.presence_patch


def reconcile(identity: Identity, presence: Presence) -> Reconciliation:
    """
    Converge a persisted identity and a network presence.

    The persisted identity wins whenever it has a value; the network
    presence only seeds fields the persisted identity does not have yet.
    Username and id are decided together so the identity is written once.
    """

    changes: Dict[str, str] = {}
    patch: Dict[str, Any] = {}

    if identity.username:
        if identity.username != presence.username:
            patch["username"] = identity.username
    elif presence.username:
        changes["username"] = presence.username

    if not identity.id:
        # Nothing to adopt until the network assigns an id.
        if presence.id:
            changes["id"] = presence.id
    elif identity.id != presence.id:
        patch["id"] = identity.id

    new_identity = identity.with_changes(**changes) if changes else None
    return Reconciliation(identity=new_identity, presence_patch=patch)


class PresenceReconciler:
    """
    Keeps an `IdentityStore` and a `RoomSession` presence converged.

    Runs on every identity change and every room change. A change that
    arrives while a run is applying its own writes schedules one more
    pass instead of recursing.
    """

    def __init__(self, identity_store: IdentityStore, session: RoomSession) -> None:
        self._identity_store = identity_store
        self._session = session
        self._unsubscribers: List[Callable[[], None]] = []
        self._running = False
        self._pending = False

    @property
    def started(self) -> bool:
        return bool(self._unsubscribers)

    def start(self) -> None:
        if self.started:
            return
        self._unsubscribers = [
            self._identity_store.subscribe(lambda _identity: self.sync()),
            self._session.subscribe(self.sync),
        ]
        self.sync()

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def sync(self) -> None:
        if self._running:
            self._pending = True
            return

        self._running = True
        try:
            self._pending = True
            while self._pending:
                self._pending = False
                self._apply(
                    reconcile(self._identity_store.identity, self._session.presence)
                )
        finally:
            self._running = False

    def _apply(self, result: Reconciliation) -> None:
        if result.is_noop:
            return

        if result.identity is not None:
            current = self._identity_store.identity
            changes = {
                name: getattr(result.identity, name)
                for name in ("id", "username")
                if getattr(result.identity, name) != getattr(current, name)
            }
            logger.info(
                "Adopting network %s into persisted identity",
                ", ".join(sorted(changes)),
            )
            self._identity_store.update(**changes)

        if result.presence_patch:
            logger.info(
                "Pushing persisted %s to presence in room %s",
                ", ".join(sorted(result.presence_patch)),
                self._session.room_id,
            )
            self._session.update_presence(**result.presence_patch)
