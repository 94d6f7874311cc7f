"""MySQL settings, backup, restore and password API routes."""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
from functools import lru_cache
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from api.auth import require_administrator
from api.models.mysql import DumpInfo, ResetPasswordPayload, SharedFolderDumpPayload
from backup.manager import MysqlBackupManager
from backup.restore import RestoreManager
from db.repository import ServiceSettingsRepository
from mysql_db.config import ServiceSettings, get_tool_settings
from mysql_db.errors import (
    AuthorizationError,
    ConflictError,
    CredentialPersistenceError,
    ExecutionError,
    ProcessError,
    ServiceError,
    ValidationError,
)
from mysql_db.password import PasswordManager

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/mysql",
    tags=["mysql"],
    dependencies=[Depends(require_administrator)],
)

_UPLOAD_CHUNK = 1024 * 1024


@lru_cache(maxsize=1)
def _get_settings_repository() -> ServiceSettingsRepository:
    from db.session import SessionLocal, engine

    return ServiceSettingsRepository(engine, SessionLocal)


def _get_backup_manager() -> MysqlBackupManager:
    return MysqlBackupManager(get_tool_settings())


def _get_restore_manager() -> RestoreManager:
    return RestoreManager(get_tool_settings())


def _get_password_manager() -> PasswordManager:
    return PasswordManager(get_tool_settings())


def _http_error(exc: Exception) -> HTTPException:
    """Translate service and filesystem errors into HTTP responses."""
    if isinstance(exc, AuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ExecutionError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": str(exc), "returncode": exc.returncode, "output": exc.output},
        )
    if isinstance(exc, (ProcessError, CredentialPersistenceError, ServiceError)):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"I/O error: {exc}")


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError:
        logger.warning("Failed to remove temporary file %s", path, exc_info=True)


@router.get("/settings", response_model=ServiceSettings)
def get_settings():
    """Return the persisted service settings."""
    return _get_settings_repository().get()


@router.put("/settings", response_model=ServiceSettings)
def set_settings(payload: dict):
    """Validate and persist the service settings."""
    try:
        return _get_settings_repository().save(payload)
    except ValidationError as exc:
        raise _http_error(exc)


@router.get("/backup/download")
def download_backup():
    """Dump all databases and stream the result; the temporary file is removed afterwards."""
    manager = _get_backup_manager()
    try:
        artifact = manager.prepare_download()
    except (ServiceError, OSError) as exc:
        logger.exception("Preparing database download failed")
        raise _http_error(exc)
    descriptor = manager.download_descriptor(artifact)
    return FileResponse(
        descriptor.filepath,
        media_type=descriptor.content_type,
        filename=descriptor.filename,
        background=BackgroundTask(_discard, descriptor.filepath),
    )


@router.post("/backup/shared-folder", response_model=DumpInfo)
def dump_database_to_shared_folder(payload: SharedFolderDumpPayload):
    """Dump all databases into a shared folder without overwriting existing files."""
    manager = _get_backup_manager()
    try:
        artifact = manager.dump_to_managed_location(payload.location)
    except (ServiceError, OSError) as exc:
        logger.exception("Dump to shared folder %s failed", payload.location)
        raise _http_error(exc)
    return DumpInfo.from_artifact(artifact)


@router.post("/backup/upload", status_code=status.HTTP_204_NO_CONTENT)
def upload_backup(file: UploadFile = File(...), password: str = Form(...)):
    """Restore the databases from an uploaded dump."""
    settings = get_tool_settings()
    if settings.temp_dir is not None:
        settings.temp_dir.mkdir(parents=True, exist_ok=True)
    fd, raw_path = tempfile.mkstemp(prefix="mysql-upload-", suffix=".sql", dir=settings.temp_dir)
    upload_path = Path(raw_path)
    try:
        with os.fdopen(fd, "wb") as target:
            shutil.copyfileobj(file.file, target, _UPLOAD_CHUNK)
        _get_restore_manager().restore(upload_path, password)
    except (ServiceError, OSError) as exc:
        logger.exception("Restore from uploaded dump %s failed", file.filename)
        raise _http_error(exc)
    finally:
        file.file.close()
        _discard(upload_path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
def reset_password(payload: ResetPasswordPayload):
    """Rotate the administrative account password."""
    try:
        _get_password_manager().reset_password(payload.password)
    except CredentialPersistenceError as exc:
        logger.error("Password rotation left a stale credentials file: %s", exc)
        raise _http_error(exc)
    except (ServiceError, OSError) as exc:
        logger.exception("Password reset failed")
        raise _http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
