from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Union

from application.storage import UNDEFINED, SessionStorageValue, Tab
from domain.errors import DeserializationFailure
from domain.models import Identity

logger = logging.getLogger(__name__)

IDENTITY_STORAGE_KEY = "userData"


def _serialize_identity(identity: Identity) -> str:
    return json.dumps(identity.to_dict())


def _deserialize_identity(raw: str) -> Identity:
    if raw == UNDEFINED:
        return Identity()
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as exc:
        raise DeserializationFailure(str(exc)) from exc
    if not isinstance(data, dict):
        raise DeserializationFailure(f"Expected a JSON object, got {type(data).__name__}")
    return Identity.from_dict(data)


class IdentityStore:
    """
    The durable participant identity of one tab-group.

    Thin wrapper over `SessionStorageValue` that stores `Identity` as a
    JSON object under a single well-known key.
    """

    def __init__(
        self,
        tab: Optional[Tab],
        *,
        initialize_with_value: bool = True,
    ) -> None:
        self._value: SessionStorageValue[Identity] = SessionStorageValue(
            IDENTITY_STORAGE_KEY,
            Identity,
            tab,
            serializer=_serialize_identity,
            deserializer=_deserialize_identity,
            initialize_with_value=initialize_with_value,
        )

    def __enter__(self) -> "IdentityStore":
        self.mount()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unmount()

    @property
    def identity(self) -> Identity:
        return self._value.value

    def set(self, identity: Union[Identity, Callable[[Identity], Identity]]) -> None:
        self._value.set(identity)

    def update(self, **changes: Any) -> None:
        """Apply all `changes` to the stored identity in one write."""

        if not changes:
            return
        logger.debug("Updating identity fields %s", sorted(changes))
        self._value.set(lambda current: current.with_changes(**changes))

    def remove(self) -> Identity:
        return self._value.remove()

    def subscribe(self, callback: Callable[[Identity], None]) -> Callable[[], None]:
        return self._value.subscribe(callback)

    def mount(self) -> None:
        self._value.mount()

    def unmount(self) -> None:
        self._value.unmount()
