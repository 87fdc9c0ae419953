from __future__ import annotations

import logging
from typing import Callable

from application.services import RoomDirectory
from domain.repositories import StorageMedium
from infrastructure.config import Settings
from infrastructure.db.storage_postgres import PostgresStorageMedium
from infrastructure.db.storage_sqlite import SqliteStorageMedium
from infrastructure.names import new_presence
from infrastructure.replication.memory_room import InMemoryReplicationHub

logger = logging.getLogger(__name__)


def build_storage_factory(settings: Settings) -> Callable[[str], StorageMedium]:
    """Return namespace -> storage medium for the configured database."""

    if settings.use_postgres:
        logger.info("Persisting identities in Postgres at %s", settings.pg_params["host"])
        return lambda namespace: PostgresStorageMedium(settings.pg_params, namespace)

    logger.info("Persisting identities in SQLite at %s", settings.db_path)
    return lambda namespace: SqliteStorageMedium(settings.db_path, namespace)


def _log_celebration(room_id: str, label: str) -> None:
    logger.info("Room %s reached consensus on %s", room_id, label)


def build_room_directory(settings: Settings) -> RoomDirectory:
    return RoomDirectory(
        InMemoryReplicationHub(),
        build_storage_factory(settings),
        new_presence,
        on_celebrate=_log_celebration,
    )
