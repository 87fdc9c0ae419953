"""
Runtime settings, read from the environment (and a `.env` file if present).
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    discord_token: Optional[str]
    telegram_token: Optional[str]
    db_path: str
    pg_params: Optional[Dict[str, str]]

    @property
    def use_postgres(self) -> bool:
        return self.pg_params is not None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    if environ is None:
        load_dotenv()
        environ = os.environ

    pghost = environ.get("PGHOST")
    pguser = environ.get("PGUSER")
    pgdatabase = environ.get("PGDATABASE")
    pgpassword = environ.get("PGPASSWORD")

    pg_params = None
    if all([pghost, pguser, pgdatabase, pgpassword]):
        pg_params = {
            "host": pghost,
            "user": pguser,
            "port": environ.get("PGPORT", "5432"),
            "dbname": pgdatabase,
            "password": pgpassword,
        }

    return Settings(
        discord_token=environ.get("DISCORD_TOKEN"),
        telegram_token=environ.get("TELEGRAM_TOKEN"),
        db_path=environ.get("DB_PATH", "planning_poker.db"),
        pg_params=pg_params,
    )
