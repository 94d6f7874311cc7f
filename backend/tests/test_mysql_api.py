from __future__ import annotations

import datetime as dt
import stat
from pathlib import Path
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from api import server
from api.routes import mysql as mysql_routes
from backup.manager import MysqlBackupManager
from backup.restore import RestoreManager
from db.repository import ServiceSettingsRepository
from db.session import build_engine, build_session_factory
from mysql_db.errors import ExecutionError
from mysql_db.password import PasswordManager

TOKEN = "s3cret-admin-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}
FROZEN = dt.datetime(2026, 10, 18, 9, 30, 15, tzinfo=dt.timezone.utc)


def _write_dump(command, **_):
    (arg,) = [arg for arg in command if arg.startswith("--result-file=")]
    Path(arg.split("=", 1)[1]).write_text("-- MySQL dump\n")
    return ""


@pytest.fixture
def api(tmp_path, monkeypatch, tool_settings, fake_runner_factory):
    monkeypatch.setenv("MYSQL_SERVICE_ADMIN_TOKEN", TOKEN)

    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'settings.sqlite'}")
    repository = ServiceSettingsRepository(engine, build_session_factory(engine))
    runner = fake_runner_factory(_write_dump)

    monkeypatch.setattr(mysql_routes, "get_tool_settings", lambda: tool_settings)
    monkeypatch.setattr(mysql_routes, "_get_settings_repository", lambda: repository)
    monkeypatch.setattr(
        mysql_routes,
        "_get_backup_manager",
        lambda: MysqlBackupManager(tool_settings, runner=runner, clock=lambda: FROZEN),
    )
    monkeypatch.setattr(
        mysql_routes,
        "_get_restore_manager",
        lambda: RestoreManager(tool_settings, runner=runner),
    )
    monkeypatch.setattr(
        mysql_routes,
        "_get_password_manager",
        lambda: PasswordManager(tool_settings, runner=runner),
    )

    client = TestClient(server.create_app())
    client.runner = runner
    return client


def test_health_does_not_require_auth(api):
    response = api.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": TOKEN}])
def test_routes_require_administrator(api, headers):
    response = api.get("/api/mysql/settings", headers=headers)
    assert response.status_code == 403


def test_routes_denied_without_configured_token(api, monkeypatch):
    monkeypatch.delenv("MYSQL_SERVICE_ADMIN_TOKEN")
    response = api.get("/api/mysql/settings", headers=AUTH)
    assert response.status_code == 403


def test_settings_get_and_put(api):
    response = api.get("/api/mysql/settings", headers=AUTH)
    assert response.status_code == 200
    assert response.json()["enabled"] is False

    response = api.put("/api/mysql/settings", json={"enabled": True, "port": 3307}, headers=AUTH)
    assert response.status_code == 200
    assert response.json()["port"] == 3307

    assert api.get("/api/mysql/settings", headers=AUTH).json()["enabled"] is True


def test_settings_put_rejects_invalid_payload(api):
    response = api.put("/api/mysql/settings", json={"port": 70000}, headers=AUTH)
    assert response.status_code == 400
    assert "port" in response.json()["detail"]


def test_download_streams_dump_and_removes_temp_file(api, tool_settings):
    response = api.get("/api/mysql/backup/download", headers=AUTH)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/sql")
    assert "mysql-2026-10-18T09:30:15+00:00.sql" in unquote(response.headers["content-disposition"])
    assert response.text == "-- MySQL dump\n"
    assert list(tool_settings.temp_dir.iterdir()) == []


def test_download_failure_reports_tool_output(api, monkeypatch, tool_settings, fake_runner_factory):
    def failing(command, **_):
        raise ExecutionError(command, 2, "mysqldump: Got error: 2002")

    runner = fake_runner_factory(failing)
    monkeypatch.setattr(mysql_routes, "_get_backup_manager", lambda: MysqlBackupManager(tool_settings, runner=runner))

    response = api.get("/api/mysql/backup/download", headers=AUTH)
    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["returncode"] == 2
    assert "2002" in detail["output"]


def test_shared_folder_dump_and_conflict(api, tool_settings):
    response = api.post("/api/mysql/backup/shared-folder", json={"location": "backup"}, headers=AUTH)
    assert response.status_code == 200
    payload = response.json()
    assert payload["filename"] == "mysql-2026-10-18T09:30:15+00:00.sql"
    assert Path(payload["path"]).exists()

    response = api.post("/api/mysql/backup/shared-folder", json={"location": "backup"}, headers=AUTH)
    assert response.status_code == 409


def test_shared_folder_unknown_location(api):
    response = api.post("/api/mysql/backup/shared-folder", json={"location": "elsewhere"}, headers=AUTH)
    assert response.status_code == 400


def test_upload_restores_and_cleans_up(api, tool_settings):
    seen = {}

    def client(command, stdin_path=None, **_):
        seen["content"] = Path(stdin_path).read_bytes()
        seen["upload"] = Path(stdin_path)
        seen["credentials_exist"] = tool_settings.adhoc_credentials_path.exists()
        return ""

    api.runner.handler = client
    response = api.post(
        "/api/mysql/backup/upload",
        files={"file": ("backup.sql", b"CREATE DATABASE demo;\n", "application/sql")},
        data={"password": "r00t"},
        headers=AUTH,
    )

    assert response.status_code == 204
    assert seen["content"] == b"CREATE DATABASE demo;\n"
    assert seen["credentials_exist"] is True
    assert not seen["upload"].exists()
    assert not tool_settings.adhoc_credentials_path.exists()


def test_upload_failure_still_cleans_up(api, tool_settings):
    uploads = []

    def client(command, stdin_path=None, **_):
        uploads.append(Path(stdin_path))
        raise ExecutionError(command, 1, "ERROR 1064 (42000)")

    api.runner.handler = client
    response = api.post(
        "/api/mysql/backup/upload",
        files={"file": ("backup.sql", b"garbage", "application/sql")},
        data={"password": "r00t"},
        headers=AUTH,
    )

    assert response.status_code == 500
    assert uploads and not uploads[0].exists()
    assert not tool_settings.adhoc_credentials_path.exists()


def test_reset_password_persists_scheduled_credentials(api, tool_settings):
    response = api.post("/api/mysql/password", json={"password": "Sn3w"}, headers=AUTH)

    assert response.status_code == 204
    path = tool_settings.dump_credentials_path
    assert path.read_text() == "[mysqldump]\nuser=omvadmin\npassword=Sn3w\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_reset_password_rejects_empty(api):
    response = api.post("/api/mysql/password", json={"password": ""}, headers=AUTH)
    assert response.status_code == 422
