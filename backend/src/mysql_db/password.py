"""Administrative password rotation."""

from __future__ import annotations

import logging
from typing import Optional

from .config import MysqlToolSettings, get_tool_settings
from .credentials import CredentialKind, CredentialStore, encode_option_value
from .errors import CredentialPersistenceError, ValidationError
from .runner import CommandRunner

logger = logging.getLogger(__name__)


def quote_sql_string(value: str) -> str:
    """Quote *value* as a SQL string literal.

    Backslashes are escaped, so the server must run with the default sql_mode;
    under NO_BACKSLASH_ESCAPES the doubled backslashes would be stored verbatim.
    """
    escaped = value.replace("\\", "\\\\").replace("'", "''")
    return f"'{escaped}'"


def build_provisioning_sql(user: str, host: str, password: str) -> str:
    """Return the statements that create, authorize and set the password of *user*.

    They are submitted as one batch; the client stops at the first failing
    statement.
    """

    account = f"{quote_sql_string(user)}@{quote_sql_string(host)}"
    secret = quote_sql_string(password)
    return (
        f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {secret};\n"
        f"ALTER USER {account} IDENTIFIED BY {secret};\n"
        f"GRANT ALL PRIVILEGES ON *.* TO {account} WITH GRANT OPTION;\n"
        "FLUSH PRIVILEGES;\n"
    )


class PasswordManager:
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

    def reset_password(self, new_password: str) -> None:
        if not new_password:
            raise ValidationError("Password must not be empty")
        # Reject values the credentials file cannot hold before touching the server.
        encode_option_value(new_password)

        settings = self.settings
        logger.info("Resetting password for MySQL account %s@%s", settings.admin_user, settings.admin_host)
        self.runner.run(
            settings.mysql_bin,
            ["--batch"],
            input_text=build_provisioning_sql(settings.admin_user, settings.admin_host, new_password),
            secrets=[new_password],
        )

        try:
            self.store.write(
                settings.dump_credentials_path,
                settings.admin_user,
                new_password,
                CredentialKind.SCHEDULED_DUMP,
            )
        except OSError as exc:
            logger.error(
                "Password for %s was changed on the server but %s could not be updated: %s",
                settings.admin_user,
                settings.dump_credentials_path,
                exc,
            )
            raise CredentialPersistenceError(str(settings.dump_credentials_path), exc) from exc
        logger.info("Password reset for %s completed", settings.admin_user)
