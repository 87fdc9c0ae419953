from __future__ import annotations

import random
import secrets
import time
from typing import Optional

from domain.models import Presence

ADJECTIVES = (
    "brave", "calm", "clever", "eager", "fancy", "gentle", "happy", "jolly",
    "kind", "lively", "lucky", "mighty", "nimble", "polite", "quick", "quiet",
    "shiny", "silly", "swift", "witty",
)

COLORS = (
    "amber", "azure", "black", "blue", "coral", "crimson", "gold", "green",
    "indigo", "ivory", "lime", "magenta", "olive", "orange", "pink", "purple",
    "red", "silver", "teal", "white",
)

ANIMALS = (
    "badger", "beaver", "camel", "cobra", "crane", "dolphin", "falcon", "ferret",
    "fox", "gecko", "heron", "koala", "lemur", "moose", "otter", "panda",
    "penguin", "rabbit", "tiger", "walrus",
)


def generate_presence_id(now_ms: Optional[int] = None) -> str:
    """Millisecond clock in hex, plus a short suffix for same-millisecond joins."""

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms:x}{secrets.token_hex(2)}"


def generate_username(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"{rng.choice(ADJECTIVES)}-{rng.choice(ANIMALS)}"


def generate_room_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "-".join([rng.choice(ADJECTIVES), rng.choice(COLORS), rng.choice(ANIMALS)])


def generate_room_token(nbytes: int = 4) -> str:
    return secrets.token_hex(nbytes)


def new_presence() -> Presence:
    return Presence(id=generate_presence_id(), username=generate_username())
