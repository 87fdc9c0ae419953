from __future__ import annotations

import sqlite3
from typing import Optional

from domain.errors import StorageUnavailable, StorageWriteFailure
from domain.repositories import StorageMedium


class SqliteStorageMedium(StorageMedium):
    """
    SQLite-backed implementation of `StorageMedium`.

    Stores text values in a `session_storage` table. Each instance is
    scoped to one `namespace`, which plays the role of a browser
    tab-group: several namespaces can share one database file.
    """

    def __init__(self, db_path: str, namespace: str) -> None:
        self._db_path = db_path
        self._namespace = namespace
        self._ensure_table()

    @property
    def namespace(self) -> str:
        return self._namespace

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
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
                cur = conn.cursor()
                cur.execute(
                    "SELECT value FROM session_storage WHERE namespace = ? AND key = ?",
                    (self._namespace, key),
                )
                row = cur.fetchone()
        except sqlite3.Error as exc:
            raise StorageUnavailable(str(exc)) from exc
        if not row:
            return None
        return str(row[0])

    def set_item(self, key: str, value: str) -> None:
        """
        Upsert the value stored under `key`.
        """

        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    INSERT INTO session_storage (namespace, key, value)
                    VALUES (?, ?, ?)
                    ON CONFLICT (namespace, key)
                    DO UPDATE SET value = excluded.value
                    """,
                    (self._namespace, key, value),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageWriteFailure(str(exc)) from exc

    def remove_item(self, key: str) -> None:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    DELETE FROM session_storage
                    WHERE namespace = ? AND key = ?
                    """,
                    (self._namespace, key),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageWriteFailure(str(exc)) from exc

