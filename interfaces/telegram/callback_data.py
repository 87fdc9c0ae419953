from __future__ import annotations

from domain.models import ESTIMATE_LABELS

ACTIONS = ("reveal", "clear", "clearall", "spectate")


def encode_estimate_choice(label: str) -> str:
    """
    Encode a "pick this estimate" callback.

    Format: est:{label}
    """

    return f"est:{label}"


def parse_estimate_choice(data: str) -> str:
    parts = data.split(":")
    if len(parts) != 2 or parts[0] != "est" or parts[1] not in ESTIMATE_LABELS:
        raise ValueError(f"Invalid estimate callback data: {data}")

    return parts[1]


def encode_action(action: str) -> str:
    """
    Encode a table action button.

    Format: act:{action}
    """

    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    return f"act:{action}"


def parse_action(data: str) -> str:
    parts = data.split(":")
    if len(parts) != 2 or parts[0] != "act" or parts[1] not in ACTIONS:
        raise ValueError(f"Invalid action callback data: {data}")

    return parts[1]
