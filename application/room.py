from __future__ import annotations

import logging
from typing import Callable, List, Optional

from application.celebration import ConsensusCelebrationTrigger
from application.estimation import (
    SharedEstimationState,
    active_participant_ids,
    visible_estimate,
)
from application.identity import IdentityStore
from application.presence import PresenceReconciler
from application.storage import Tab
from domain.models import EstimationState, Identity, ParticipantView, Presence
from domain.repositories import ReplicationLayer, RoomSession

logger = logging.getLogger(__name__)


def dedupe_others(others: List[Presence], self_id: Optional[str]) -> List[Presence]:
    """
    Other participants as shown at the table: one entry per presence id,
    never the viewer's own id, and only presences with an id and a name.
    """

    result: List[Presence] = []
    seen = set()
    for presence in others:
        if not presence.id or not presence.username:
            continue
        if presence.id == self_id or presence.id in seen:
            continue
        seen.add(presence.id)
        result.append(presence)
    return result


class RoomClient:
    """
    One participant's connection to a room.

    Wires the durable identity of a tab, the presence reconciler, the
    shared estimation state and the celebration trigger together.
    """

    def __init__(
        self,
        room_id: str,
        tab: Optional[Tab],
        replication: ReplicationLayer,
        presence_factory: Callable[[], Presence],
        on_celebrate: Optional[Callable[[str], None]] = None,
        initialize_with_value: bool = True,
    ) -> None:
        self.room_id = room_id
        self.tab = tab
        self.identity_store = IdentityStore(tab, initialize_with_value=initialize_with_value)
        self._replication = replication
        self._presence_factory = presence_factory
        self._on_celebrate = on_celebrate
        self.session: Optional[RoomSession] = None
        self.estimation: Optional[SharedEstimationState] = None
        self.celebration = ConsensusCelebrationTrigger()
        self._reconciler: Optional[PresenceReconciler] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def joined(self) -> bool:
        return self.session is not None

    def join(self) -> "RoomClient":
        if self.session is not None:
            return self

        self.session = self._replication.connect(
            self.room_id,
            self._presence_factory(),
            EstimationState(),
        )
        self.estimation = SharedEstimationState(self.session)
        self.celebration = ConsensusCelebrationTrigger(
            self._on_celebrate,
            initially_revealed=self.estimation.estimates_revealed,
        )
        self.identity_store.mount()
        self._reconciler = PresenceReconciler(self.identity_store, self.session)
        self._reconciler.start()
        self._unsubscribe = self.session.subscribe(self._observe_room)
        logger.info("Joined room %s as %s", self.room_id, self.participant_id)
        return self

    def leave(self) -> None:
        if self.session is None:
            return
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._reconciler is not None:
            self._reconciler.stop()
            self._reconciler = None
        self.identity_store.unmount()
        self.session.disconnect()
        logger.info("Left room %s", self.room_id)
        self.session = None
        self.estimation = None

    def _require_session(self) -> RoomSession:
        if self.session is None:
            raise RuntimeError(f"Not connected to room {self.room_id}")
        return self.session

    @property
    def identity(self) -> Identity:
        return self.identity_store.identity

    @property
    def presence(self) -> Presence:
        return self._require_session().presence

    @property
    def participant_id(self) -> str:
        """The key this participant's estimate is stored under."""

        return self.identity.id or self.presence.id

    @property
    def self_estimate(self) -> Optional[str]:
        self._require_session()
        return self.estimation.estimate_of(self.participant_id)

    @property
    def estimates_revealed(self) -> bool:
        self._require_session()
        return self.estimation.estimates_revealed

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call `callback` after every change in the room or to the identity."""

        session = self._require_session()
        unsubscribers = [
            session.subscribe(callback),
            self.identity_store.subscribe(lambda _identity: callback()),
        ]

        def unsubscribe() -> None:
            for remove in unsubscribers:
                remove()

        return unsubscribe

    def others(self) -> List[Presence]:
        session = self._require_session()
        return session.observe_others_presence(
            lambda others: dedupe_others(others, self.presence.id)
        )

    def active_participant_ids(self) -> List[str]:
        return active_participant_ids([self.presence] + self.others())

    def table(self) -> List[ParticipantView]:
        """The viewer first, then the others, with what the viewer may see."""

        self._require_session()
        state = self.estimation.snapshot()
        me = self.presence
        views = []
        for presence in [me] + self.others():
            views.append(
                ParticipantView(
                    id=presence.id,
                    username=presence.username,
                    is_spectator=presence.is_spectator,
                    has_estimate=presence.id in state.estimates,
                    estimate=visible_estimate(state, me.id, presence.id),
                )
            )
        return views

    def _observe_room(self) -> None:
        if self.session is None:
            return
        state = self.estimation.snapshot()
        self.celebration.observe(
            state.estimates_revealed,
            state.estimates,
            self.active_participant_ids(),
        )
