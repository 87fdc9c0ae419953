from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from application.room import RoomClient
from application.storage import BrowserContext
from domain.models import ESTIMATE_LABELS, UNKNOWN_ESTIMATE, Presence
from domain.repositories import ReplicationLayer, StorageMedium

logger = logging.getLogger(__name__)


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (Telegram, Discord).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    provider_user_id: str
    display_name: str = ""

    @property
    def namespace(self) -> str:
        return f"{self.provider}:{self.provider_user_id}"


@dataclass
class BroadcastMessage:
    """A message that should be posted to everyone in a room."""

    room_id: str
    text: str


@dataclass
class OperationResult:
    """Generic result type for simple operations."""

    success: bool
    error_message: Optional[str] = None
    broadcasts: List[BroadcastMessage] = field(default_factory=list)


class RoomDirectory:
    """
    Keeps one live `RoomClient` per (external user, room).

    Every external user gets their own browser context, backed by a
    storage namespace, so their durable identity survives restarts and
    is shared by all the rooms they are in.
    """

    def __init__(
        self,
        replication: ReplicationLayer,
        storage_factory: Callable[[str], StorageMedium],
        presence_factory: Callable[[], Presence],
        on_celebrate: Optional[Callable[[str, str], None]] = None,
    ) -> None:
        self._replication = replication
        self._storage_factory = storage_factory
        self._presence_factory = presence_factory
        self._on_celebrate = on_celebrate
        self._contexts: Dict[str, BrowserContext] = {}
        self._clients: Dict[Tuple[str, str], RoomClient] = {}

    def _context_for(self, external_ctx: ExternalContext) -> BrowserContext:
        namespace = external_ctx.namespace
        context = self._contexts.get(namespace)
        if context is None:
            context = BrowserContext(self._storage_factory(namespace))
            self._contexts[namespace] = context
        return context

    def find(self, external_ctx: ExternalContext, room_id: str) -> Optional[RoomClient]:
        return self._clients.get((external_ctx.namespace, room_id))

    def get_or_join(self, external_ctx: ExternalContext, room_id: str) -> RoomClient:
        key = (external_ctx.namespace, room_id)
        client = self._clients.get(key)
        if client is not None:
            return client

        tab = self._context_for(external_ctx).open_tab()
        def on_celebrate(label: str) -> None:
            if self._on_celebrate is not None:
                self._on_celebrate(room_id, label)

        client = RoomClient(
            room_id,
            tab,
            self._replication,
            self._presence_factory,
            on_celebrate=on_celebrate,
        )
        # A chat display name seeds an identity that has no name yet.
        if external_ctx.display_name and not client.identity.username:
            client.identity_store.update(username=external_ctx.display_name)

        client.join()
        self._clients[key] = client
        return client

    def leave(self, external_ctx: ExternalContext, room_id: str) -> bool:
        client = self._clients.pop((external_ctx.namespace, room_id), None)
        if client is None:
            return False
        client.leave()
        if client.tab is not None:
            client.tab.close()
        return True

    def leave_all(self) -> None:
        for client in list(self._clients.values()):
            client.leave()
            if client.tab is not None:
                client.tab.close()
        self._clients.clear()


def _validate_label(label: str) -> Optional[str]:
    if label not in ESTIMATE_LABELS:
        return f"Estimate must be one of: {' '.join(ESTIMATE_LABELS)}"
    return None


def describe_table(client: RoomClient) -> str:
    """Render the table as the given participant sees it."""

    lines = []
    for index, view in enumerate(client.table()):
        name = view.username + (" (you)" if index == 0 else "")
        if view.is_spectator:
            status = "spectating"
        elif view.estimate is None:
            status = "?" if client.estimates_revealed else "thinking"
        elif view.estimate == UNKNOWN_ESTIMATE:
            status = "voted"
        else:
            status = view.estimate
        lines.append(f"{name}: {status}")
    header = "Estimates revealed" if client.estimates_revealed else "Estimates hidden"
    return "\n".join([header] + lines)


def submit_estimate(client: RoomClient, label: str) -> OperationResult:
    """
    Record the caller's estimate.

    Spectators cannot vote; the label must come from the fixed deck.
    """

    error = _validate_label(label)
    if error:
        return OperationResult(success=False, error_message=error)

    if client.presence.is_spectator:
        return OperationResult(
            success=False,
            error_message="Spectators cannot vote. Use spectate again to participate.",
        )

    client.estimation.set_estimate(client.participant_id, label)

    # Only announce that a vote happened; the value stays hidden until reveal.
    text = f"{client.presence.username} has voted."
    return OperationResult(
        success=True,
        broadcasts=[BroadcastMessage(room_id=client.room_id, text=text)],
    )


def toggle_reveal(client: RoomClient) -> OperationResult:
    """
    Flip the reveal flag. Revealing may trigger the consensus celebration,
    which is reported as an extra broadcast.
    """

    celebrations_before = client.celebration.fire_count
    revealed = not client.estimates_revealed
    client.estimation.set_revealed(revealed)

    broadcasts = [BroadcastMessage(room_id=client.room_id, text=describe_table(client))]
    if client.celebration.fire_count > celebrations_before:
        text = f"Consensus on {client.celebration.last_label}! \U0001f389"
        broadcasts.append(BroadcastMessage(room_id=client.room_id, text=text))

    return OperationResult(success=True, broadcasts=broadcasts)


def clear_estimate(client: RoomClient) -> OperationResult:
    client.estimation.clear_estimate(client.participant_id)
    return OperationResult(success=True)


def clear_all(client: RoomClient) -> OperationResult:
    """Start a new round: hide everything, then empty the estimate map."""

    client.estimation.new_round()
    text = f"{client.presence.username} started a new round."
    return OperationResult(
        success=True,
        broadcasts=[BroadcastMessage(room_id=client.room_id, text=text)],
    )


def toggle_spectator(client: RoomClient) -> OperationResult:
    """Switch between voting and spectating; the caller's estimate is dropped."""

    spectating = not client.presence.is_spectator
    client.session.update_presence(is_spectator=spectating)
    client.estimation.clear_estimate(client.participant_id)

    verb = "is now spectating" if spectating else "is participating again"
    return OperationResult(
        success=True,
        broadcasts=[
            BroadcastMessage(
                room_id=client.room_id,
                text=f"{client.presence.username} {verb}.",
            )
        ],
    )


def change_username(client: RoomClient, username: str) -> OperationResult:
    """
    Persist a new username. The presence reconciler pushes it to the
    network presence.
    """

    username = (username or "").strip()
    if not username:
        return OperationResult(success=False, error_message="Username must not be empty.")

    old_username = client.presence.username
    client.identity_store.update(username=username)
    logger.info("Participant %s renamed to %s", client.participant_id, username)

    return OperationResult(
        success=True,
        broadcasts=[
            BroadcastMessage(
                room_id=client.room_id,
                text=f"{old_username} is now known as {client.presence.username}.",
            )
        ],
    )
