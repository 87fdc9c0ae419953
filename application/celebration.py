from __future__ import annotations

import logging
from typing import Callable, Iterable, Mapping, Optional

from application.estimation import consensus_label

logger = logging.getLogger(__name__)


class ConsensusCelebrationTrigger:
    """
    Edge-triggered observer of the reveal flag.

    Fires `on_celebrate(label)` once per hidden -> revealed transition in
    which every active participant with an estimate holds the same label.
    Observing the same revealed state again, or the transition back to
    hidden, never fires.
    """

    def __init__(
        self,
        on_celebrate: Optional[Callable[[str], None]] = None,
        initially_revealed: bool = False,
    ) -> None:
        self._on_celebrate = on_celebrate
        self._last_revealed = initially_revealed
        self._fire_count = 0
        self._last_label: Optional[str] = None

    @property
    def fire_count(self) -> int:
        return self._fire_count

    @property
    def last_label(self) -> Optional[str]:
        """Label of the most recent celebration, if any."""

        return self._last_label

    def observe(
        self,
        revealed: bool,
        estimates: Mapping[str, str],
        active_ids: Iterable[str],
    ) -> Optional[str]:
        """Record the current state; returns the label if this call fired."""

        was_revealed = self._last_revealed
        self._last_revealed = revealed
        if not revealed or was_revealed:
            return None

        label = consensus_label(estimates, active_ids)
        if label is None:
            return None

        self._fire_count += 1
        self._last_label = label
        logger.info("Consensus reached on %r", label)
        if self._on_celebrate is not None:
            self._on_celebrate(label)
        return label
