"""Settings database configuration via Pydantic settings."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel


class DatabaseSettings(BaseModel):
    url: str = "sqlite+pysqlite:///resource/mysql-service.sqlite"
    echo: bool = False


@lru_cache
def get_settings() -> DatabaseSettings:
    return DatabaseSettings(
        url=os.getenv("SETTINGS_DATABASE_URL", DatabaseSettings().url),
        echo=os.getenv("SETTINGS_DATABASE_ECHO", "false").lower() == "true",
    )
