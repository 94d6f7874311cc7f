"""Restore a full-server dump through the mysql client."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from mysql_db.config import MysqlToolSettings, get_tool_settings
from mysql_db.credentials import CredentialKind, CredentialStore
from mysql_db.errors import ValidationError
from mysql_db.runner import CommandRunner

logger = logging.getLogger(__name__)


class RestoreManager:
    def __init__(
        self,
        settings: Optional[MysqlToolSettings] = None,
        *,
        runner: Optional[CommandRunner] = None,
        store: Optional[CredentialStore] = None,
    ) -> None:
        self.settings = settings or get_tool_settings()
        self.runner = runner or CommandRunner()
        self.store = store or CredentialStore()

    def restore(self, dump_path: str | Path, password: str) -> None:
        """Feed *dump_path* to the mysql client as the login account.

        The login credentials only exist on disk while the client runs; the
        ad-hoc credentials file is removed afterwards whatever the outcome.
        """
        candidate = Path(dump_path)
        if not candidate.is_file():
            raise ValidationError(f"Backup not found: {candidate}")

        settings = self.settings
        logger.info("Restoring databases from %s", candidate)
        with self.store.temporary(
            settings.adhoc_credentials_path,
            settings.login_user,
            password,
            CredentialKind.AD_HOC,
        ) as credentials_path:
            self.runner.run(
                settings.mysql_bin,
                [f"--defaults-file={credentials_path}"],
                stdin_path=candidate,
                secrets=[password],
            )
        logger.info("Restore from %s completed", candidate)
