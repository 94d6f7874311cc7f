from __future__ import annotations

import stat

import pytest

from backup.manager import MysqlBackupManager
from mysql_db.credentials import CredentialKind, CredentialStore
from mysql_db.errors import CredentialPersistenceError, ExecutionError, ValidationError
from mysql_db.password import PasswordManager, build_provisioning_sql, quote_sql_string


def test_reset_password_writes_scheduled_dump_credentials(tool_settings, fake_runner_factory):
    runner = fake_runner_factory()
    PasswordManager(tool_settings, runner=runner).reset_password("Sn3w")

    path = tool_settings.dump_credentials_path
    assert path.read_text() == "[mysqldump]\nuser=omvadmin\npassword=Sn3w\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600

    (call,) = runner.calls
    assert call["command"] == ["mysql", "--batch"]
    assert "Sn3w" not in " ".join(call["command"])
    assert call["secrets"] == ["Sn3w"]


def test_provisioning_batch_creates_grants_and_flushes():
    sql = build_provisioning_sql("omvadmin", "localhost", "Sn3w")
    statements = [line for line in sql.splitlines() if line]

    assert statements[0].startswith("CREATE USER IF NOT EXISTS 'omvadmin'@'localhost'")
    assert statements[1] == "ALTER USER 'omvadmin'@'localhost' IDENTIFIED BY 'Sn3w';"
    assert statements[2] == "GRANT ALL PRIVILEGES ON *.* TO 'omvadmin'@'localhost' WITH GRANT OPTION;"
    assert statements[3] == "FLUSH PRIVILEGES;"


def test_sql_literals_are_escaped():
    assert quote_sql_string("o'neil") == "'o''neil'"
    assert quote_sql_string("a\\b") == "'a\\\\b'"


def test_failed_server_update_leaves_credentials_untouched(tool_settings, fake_runner_factory):
    store = CredentialStore()
    store.write(tool_settings.dump_credentials_path, "omvadmin", "old", CredentialKind.SCHEDULED_DUMP)

    def reject(command, **_):
        raise ExecutionError(command, 1, "ERROR 1396 (HY000)")

    with pytest.raises(ExecutionError):
        PasswordManager(tool_settings, runner=fake_runner_factory(reject)).reset_password("new")

    assert store.read(tool_settings.dump_credentials_path, CredentialKind.SCHEDULED_DUMP).password == "old"


def test_persistence_failure_is_reported_distinctly(tool_settings, fake_runner_factory):
    class BrokenStore(CredentialStore):
        def write(self, path, username, password, kind):
            raise PermissionError(13, "Permission denied")

    manager = PasswordManager(tool_settings, runner=fake_runner_factory(), store=BrokenStore())
    with pytest.raises(CredentialPersistenceError) as excinfo:
        manager.reset_password("Sn3w")

    assert isinstance(excinfo.value.__cause__, PermissionError)
    assert "stale" in str(excinfo.value)
    assert len(manager.runner.calls) == 1


@pytest.mark.parametrize("password", ["", "two\nlines"])
def test_invalid_passwords_never_reach_the_server(tool_settings, fake_runner_factory, password):
    runner = fake_runner_factory()
    with pytest.raises(ValidationError):
        PasswordManager(tool_settings, runner=runner).reset_password(password)
    assert runner.calls == []


def test_rotated_password_authenticates_scheduled_dump(tool_settings, fake_runner_factory, mysql_server):
    runner = fake_runner_factory(mysql_server)
    PasswordManager(tool_settings, runner=runner).reset_password("first")
    PasswordManager(tool_settings, runner=runner).reset_password("it's-second")
    assert mysql_server.admin_password == "it's-second"

    manager = MysqlBackupManager(
        tool_settings,
        runner=runner,
        credentials_path=tool_settings.dump_credentials_path,
    )
    artifact = manager.dump_to_managed_location("backup")

    assert artifact.path.read_text() == "-- MySQL dump\n"
