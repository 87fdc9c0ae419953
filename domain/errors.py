from __future__ import annotations


class PlanningPokerError(Exception):
    """Base class for all errors raised by the planning poker core."""


class StorageUnavailable(PlanningPokerError):
    """Storage was used outside a browser-capable (tab) context."""


class DeserializationFailure(PlanningPokerError):
    """Stored text could not be decoded by the configured codec."""


class StorageWriteFailure(PlanningPokerError):
    """
    The storage medium rejected a write (quota exceeded, medium disabled,
    database error).
    """


class IllegalEstimateLabel(PlanningPokerError, ValueError):
    """An estimate outside the fixed deck of labels was submitted."""

    def __init__(self, label: object) -> None:
        super().__init__(f"Illegal estimate label: {label!r}")
        self.label = label
