from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional

from domain.errors import IllegalEstimateLabel
from domain.models import (
    ESTIMATE_LABELS,
    UNKNOWN_ESTIMATE,
    EstimationState,
    Presence,
)
from domain.repositories import RoomSession

logger = logging.getLogger(__name__)


def validate_label(label: str) -> str:
    if label not in ESTIMATE_LABELS:
        raise IllegalEstimateLabel(label)
    return label


def visible_estimate(
    state: EstimationState,
    viewer_id: Optional[str],
    participant_id: str,
) -> Optional[str]:
    """
    Return what `viewer_id` may see of `participant_id`'s estimate.

    A viewer always sees their own entry. Other entries are replaced by
    `UNKNOWN_ESTIMATE` until the room is revealed; nothing is hidden for
    participants who have not estimated (None).
    """

    estimate = state.estimates.get(participant_id)
    if estimate is None:
        return None
    if participant_id == viewer_id or state.estimates_revealed:
        return estimate
    return UNKNOWN_ESTIMATE


def active_participant_ids(presences: Iterable[Presence]) -> List[str]:
    """Ids of the non-spectating participants, without duplicates."""

    seen: List[str] = []
    for presence in presences:
        if presence.is_spectator or not presence.id or presence.id in seen:
            continue
        seen.append(presence.id)
    return seen


def consensus_label(
    estimates: Mapping[str, str],
    active_ids: Iterable[str],
) -> Optional[str]:
    """
    Return the label every active participant with an estimate agrees on.

    Entries of spectators and of participants who left are ignored. None
    if nobody active has estimated or the estimates differ.
    """

    labels = {estimates[pid] for pid in active_ids if pid in estimates}
    if len(labels) != 1:
        return None
    return labels.pop()


class SharedEstimationState:
    """
    The mutation vocabulary of a room's replicated estimate map and
    reveal flag.

    Every operation is a single `mutate_shared_state` call; ordering and
    merging between participants is left to the replication layer.
    """

    def __init__(self, session: RoomSession) -> None:
        self._session = session

    def snapshot(self) -> EstimationState:
        return self._session.observe_shared_state(lambda state: state.copy())

    @property
    def estimates_revealed(self) -> bool:
        return self._session.observe_shared_state(lambda state: state.estimates_revealed)

    def estimate_of(self, participant_id: Optional[str]) -> Optional[str]:
        if participant_id is None:
            return None
        return self._session.observe_shared_state(
            lambda state: state.estimates.get(participant_id)
        )

    def visible_estimate(
        self,
        viewer_id: Optional[str],
        participant_id: str,
    ) -> Optional[str]:
        return visible_estimate(self.snapshot(), viewer_id, participant_id)

    def set_estimate(self, participant_id: str, label: str) -> None:
        validate_label(label)

        def mutation(state: EstimationState) -> None:
            state.estimates[participant_id] = label

        self._session.mutate_shared_state(mutation)

    def clear_estimate(self, participant_id: str) -> None:
        def mutation(state: EstimationState) -> None:
            state.estimates.pop(participant_id, None)

        self._session.mutate_shared_state(mutation)

    def clear_all(self) -> None:
        def mutation(state: EstimationState) -> None:
            # Replace the map wholesale so no partial clear is observable.
            state.estimates = {}

        self._session.mutate_shared_state(mutation)

    def set_revealed(self, revealed: bool) -> None:
        def mutation(state: EstimationState) -> None:
            state.estimates_revealed = bool(revealed)

        self._session.mutate_shared_state(mutation)

    def new_round(self) -> None:
        """Hide the estimates, then empty the map."""

        logger.info("Starting a new round in room %s", self._session.room_id)
        self.set_revealed(False)
        self.clear_all()
