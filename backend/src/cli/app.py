"""Typer application entrypoint."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print as rprint
from rich.table import Table

from backup.manager import MysqlBackupManager
from backup.restore import RestoreManager
from logging_config import configure_logging
from mysql_db.config import get_tool_settings
from mysql_db.errors import CredentialPersistenceError, ServiceError
from mysql_db.password import PasswordManager


configure_logging()


app = typer.Typer(help="Local MySQL service management CLI")
backup_app = typer.Typer(help="Dump and restore the databases")
settings_app = typer.Typer(help="Inspect and change service settings")

app.add_typer(backup_app, name="backup")
app.add_typer(settings_app, name="settings")


@backup_app.command("dump")
def backup_dump(location: str = typer.Argument(..., help="Shared folder name to dump into")) -> None:
    settings = get_tool_settings()
    manager = MysqlBackupManager(settings, credentials_path=settings.dump_credentials_path)
    try:
        artifact = manager.dump_to_managed_location(location)
    except (ServiceError, OSError) as exc:
        typer.echo(f"Backup failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Backup created at {artifact.path} ({artifact.size_bytes} bytes)")


@backup_app.command("restore")
def backup_restore(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Dump file to restore"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password of the login account"),
) -> None:
    manager = RestoreManager(get_tool_settings())
    try:
        manager.restore(file.resolve(), password)
    except (ServiceError, OSError) as exc:
        typer.echo(f"Restore failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Restore completed from {file}")


@app.command("reset-password")
def reset_password(
    password: str = typer.Option(
        ...,
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="New password for the administrative account",
    ),
) -> None:
    manager = PasswordManager(get_tool_settings())
    try:
        manager.reset_password(password)
    except CredentialPersistenceError as exc:
        typer.echo(f"Warning: {exc}", err=True)
        raise typer.Exit(code=2)
    except (ServiceError, OSError) as exc:
        typer.echo(f"Password reset failed: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Password for {manager.settings.admin_user} updated.")


@settings_app.command("show")
def settings_show() -> None:
    from db.repository import ServiceSettingsRepository
    from db.session import SessionLocal, engine

    current = ServiceSettingsRepository(engine, SessionLocal).get()
    table = Table(title="MySQL service settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in current.model_dump().items():
        table.add_row(key, str(value))
    rprint(table)


@settings_app.command("set")
def settings_set(
    enabled: bool = typer.Option(None, "--enabled/--disabled", help="Enable or disable the service"),
    port: int = typer.Option(None, help="TCP port"),
    bind_address: str = typer.Option(None, help="Address to listen on"),
    skip_networking: bool = typer.Option(None, "--skip-networking/--networking", help="Disable TCP entirely"),
    extra_options: str = typer.Option(None, help="Extra my.cnf options"),
) -> None:
    from db.repository import ServiceSettingsRepository
    from db.session import SessionLocal, engine

    repository = ServiceSettingsRepository(engine, SessionLocal)
    updates = {
        "enabled": enabled,
        "port": port,
        "bind_address": bind_address,
        "skip_networking": skip_networking,
        "extra_options": extra_options,
    }
    payload = repository.get().model_dump()
    payload.update({key: value for key, value in updates.items() if value is not None})
    try:
        saved = repository.save(payload)
    except ServiceError as exc:
        typer.echo(f"Invalid settings: {exc}", err=True)
        raise typer.Exit(code=1)
    rprint(saved.model_dump())


@app.command("serve")
def serve(host: str = typer.Option("127.0.0.1"), port: int = typer.Option(8000)) -> None:
    import uvicorn

    from api.server import create_app

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    app()
