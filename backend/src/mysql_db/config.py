"""Settings for the MySQL command-line tools and credential files."""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class MysqlToolSettings(BaseModel):
    mysql_bin: str = "mysql"
    mysqldump_bin: str = "mysqldump"
    adhoc_credentials_path: Path = Path("/root/.my.cnf")
    dump_credentials_path: Path = Path("/etc/mysql/omv-mysqldump.cnf")
    admin_user: str = "omvadmin"
    admin_host: str = "localhost"
    login_user: str = "root"
    temp_dir: Optional[Path] = None  # None falls back to the system temp directory
    verify_dumps: bool = True
    shared_folders: dict[str, Path] = Field(default_factory=dict)


class ServiceSettings(BaseModel):
    """Persisted service options exposed through the settings RPC."""

    enabled: bool = False
    port: int = Field(3306, ge=1, le=65535)
    bind_address: str = "127.0.0.1"
    skip_networking: bool = False
    extra_options: str = ""

    model_config = {
        "extra": "forbid",
    }


def _parse_shared_folders(raw: Optional[str]) -> dict[str, Path]:
    if not raw:
        return {}
    try:
        folders = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring MYSQL_SHARED_FOLDERS: invalid JSON (%s)", exc)
        return {}
    if not isinstance(folders, dict):
        logger.warning("Ignoring MYSQL_SHARED_FOLDERS: expected a JSON object, got %s", type(folders).__name__)
        return {}
    return {str(name): Path(path) for name, path in folders.items()}


@lru_cache
def get_tool_settings() -> MysqlToolSettings:
    defaults = MysqlToolSettings()
    temp_dir_env = os.getenv("MYSQL_DUMP_TEMP_DIR")
    return MysqlToolSettings(
        mysql_bin=os.getenv("MYSQL_CLIENT_BIN", defaults.mysql_bin),
        mysqldump_bin=os.getenv("MYSQLDUMP_BIN", defaults.mysqldump_bin),
        adhoc_credentials_path=Path(
            os.getenv("MYSQL_ADHOC_CREDENTIALS_FILE", str(defaults.adhoc_credentials_path))
        ),
        dump_credentials_path=Path(
            os.getenv("MYSQL_DUMP_CREDENTIALS_FILE", str(defaults.dump_credentials_path))
        ),
        admin_user=os.getenv("MYSQL_ADMIN_USER", defaults.admin_user),
        admin_host=os.getenv("MYSQL_ADMIN_HOST", defaults.admin_host),
        login_user=os.getenv("MYSQL_LOGIN_USER", defaults.login_user),
        temp_dir=Path(temp_dir_env) if temp_dir_env else None,
        verify_dumps=os.getenv("MYSQL_BACKUP_VERIFY", "true").lower() == "true",
        shared_folders=_parse_shared_folders(os.getenv("MYSQL_SHARED_FOLDERS")),
    )
