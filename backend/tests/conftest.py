from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Callable, Optional

# Keep the settings engine created at import time off the working directory.
os.environ.setdefault("SETTINGS_DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest

from mysql_db.config import MysqlToolSettings
from mysql_db.credentials import CredentialKind, CredentialStore
from mysql_db.errors import ExecutionError
from mysql_db.runner import CommandResult


class FakeRunner:
    """Stand-in for CommandRunner that records calls and delegates to a handler."""

    def __init__(self, handler: Optional[Callable[..., str]] = None) -> None:
        self.handler = handler
        self.calls: list[dict] = []

    def run(self, executable, args=(), *, stdin_path=None, input_text=None, secrets=()):
        command = [executable, *(str(arg) for arg in args)]
        call = {
            "command": command,
            "stdin_path": stdin_path,
            "input_text": input_text,
            "secrets": list(secrets),
        }
        self.calls.append(call)
        output = ""
        if self.handler is not None:
            output = self.handler(**call) or ""
        return CommandResult(command=command, returncode=0, output=output)


def option_value(command: list[str], option: str) -> Optional[str]:
    prefix = f"{option}="
    for arg in command:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


class FakeMysqlServer:
    """Tiny model of a server: one admin password, dumps that authenticate against it."""

    _PASSWORD = re.compile(r"ALTER USER .* IDENTIFIED BY '((?:[^'\\]|\\.|'')*)';")

    def __init__(self, admin_user: str = "omvadmin") -> None:
        self.admin_user = admin_user
        self.admin_password: Optional[str] = None
        self.store = CredentialStore()

    def __call__(self, command, stdin_path=None, input_text=None, secrets=()):
        if command[0] == "mysql" and input_text is not None:
            match = self._PASSWORD.search(input_text)
            assert match is not None
            self.admin_password = match.group(1).replace("''", "'").replace("\\\\", "\\")
            return ""
        if command[0] == "mysqldump":
            defaults = option_value(command, "--defaults-file")
            if defaults is None:
                raise ExecutionError(command, 2, "Access denied for user (using password: NO)")
            credentials = self.store.read(defaults, CredentialKind.SCHEDULED_DUMP)
            if credentials.username != self.admin_user or credentials.password != self.admin_password:
                raise ExecutionError(command, 2, "Access denied for user")
            Path(option_value(command, "--result-file")).write_text("-- MySQL dump\n")
            return ""
        raise AssertionError(f"unexpected command {command}")


@pytest.fixture
def tool_settings(tmp_path) -> MysqlToolSettings:
    shares = tmp_path / "shares" / "backup"
    shares.mkdir(parents=True)
    return MysqlToolSettings(
        adhoc_credentials_path=tmp_path / "root" / ".my.cnf",
        dump_credentials_path=tmp_path / "etc" / "mysql" / "omv-mysqldump.cnf",
        temp_dir=tmp_path / "tmp",
        shared_folders={"backup": shares},
    )


@pytest.fixture
def fake_runner_factory():
    return FakeRunner


@pytest.fixture
def mysql_server() -> FakeMysqlServer:
    return FakeMysqlServer()
