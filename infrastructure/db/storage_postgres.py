from __future__ import annotations

from typing import Optional

import psycopg2

from domain.errors import StorageUnavailable, StorageWriteFailure
from domain.repositories import StorageMedium


class PostgresStorageMedium(StorageMedium):
    """
    Postgres-backed implementation of `StorageMedium`.

    Uses the same `session_storage` layout as `SqliteStorageMedium`, so
    a deployment can move between the two without changing the stored
    identity format.
    """

    def __init__(self, db_params: dict, namespace: str) -> None:
        self._db_params = db_params
        self._namespace = namespace
        self._ensure_table()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_table(self) -> None:
        """
        Ensure that the `session_storage` table exists.

        Schema (minimal):
          - namespace TEXT  -- one tab-group, e.g. "discord:1234"
          - key TEXT
          - value TEXT      -- serialized value
        """

        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS session_storage (
                        namespace TEXT NOT NULL,
                        key TEXT NOT NULL,
                        value TEXT NOT NULL,
                        PRIMARY KEY (namespace, key)
                    )
                    """
                )
                conn.commit()

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        SELECT value
                        FROM session_storage
                        WHERE namespace = %s AND key = %s
                        """,
                        (self._namespace, key),
                    )
                    row = cur.fetchone()
        except psycopg2.Error as exc:
            raise StorageUnavailable(str(exc)) from exc
        if not row:
            return None
        return str(row[0])

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        INSERT INTO session_storage (namespace, key, value)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (namespace, key)
                        DO UPDATE SET value = EXCLUDED.value
                        """,
                        (self._namespace, key, value),
                    )
                    conn.commit()
        except psycopg2.Error as exc:
            raise StorageWriteFailure(str(exc)) from exc

    def remove_item(self, key: str) -> None:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        DELETE FROM session_storage
                        WHERE namespace = %s AND key = %s
                        """,
                        (self._namespace, key),
                    )
                    conn.commit()
        except psycopg2.Error as exc:
            raise StorageWriteFailure(str(exc)) from exc
