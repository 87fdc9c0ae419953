from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple


# Fixed estimate deck. "/" means "cannot estimate".
ESTIMATE_LABELS: Tuple[str, ...] = ("/", "0", "1", "2", "3", "5", "8", "13")

# Shown in place of an estimate that the viewer is not allowed to see.
UNKNOWN_ESTIMATE = "?"


@dataclass(frozen=True)
class Identity:
    """
    Durable, locally persisted participant identity.

    Both fields start empty on a first visit and are filled lazily by the
    presence reconciliation. Once `id` is set it is the participant's key
    into the shared estimate map.
    """

    id: Optional[str] = None
    username: Optional[str] = None

    def with_changes(self, **changes: Any) -> "Identity":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, str]:
        data: Dict[str, str] = {}
        if self.id is not None:
            data["id"] = self.id
        if self.username is not None:
            data["username"] = self.username
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Identity":
        if not isinstance(data, Mapping):
            return cls()
        raw_id = data.get("id")
        raw_username = data.get("username")
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            username=str(raw_username) if raw_username is not None else None,
        )


@dataclass
class Presence:
    """
    Ephemeral, network-visible status of one connected participant.

    Recreated on every (re)connection and never persisted.
    """

    id: str
    username: str
    is_spectator: bool = False

    def copy(self) -> "Presence":
        return replace(self)


@dataclass
class EstimationState:
    """
    Shared state of one room: participant id -> estimate label, plus the
    reveal flag. An absent key means "no estimate submitted".
    """

    estimates: Dict[str, str] = field(default_factory=dict)
    estimates_revealed: bool = False

    def copy(self) -> "EstimationState":
        return EstimationState(
            estimates=dict(self.estimates),
            estimates_revealed=self.estimates_revealed,
        )


@dataclass(frozen=True)
class ParticipantView:
    """What one participant sees about another at the table."""

    id: str
    username: str
    is_spectator: bool
    has_estimate: bool
    estimate: Optional[str]
