"""mysqldump orchestration for downloads and shared-folder backups."""

from __future__ import annotations

import datetime as dt
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from mysql_db.config import MysqlToolSettings, get_tool_settings
from mysql_db.credentials import CredentialStore
from mysql_db.errors import ConflictError, EmptyDumpError, ProcessError
from mysql_db.runner import CommandRunner

from .locations import SharedFolderResolver, StorageLocationResolver

logger = logging.getLogger(__name__)

DUMP_CONTENT_TYPE = "application/sql"
DUMP_PREFIX = "mysql-"
DUMP_SUFFIX = ".sql"
MANAGED_DUMP_MODE = 0o640


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True)
class DumpArtifact:
    path: Path
    filename: str
    created_at: dt.datetime
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class DownloadDescriptor:
    """What the RPC layer needs to stream a dump; it deletes ``filepath`` afterwards."""

    content_type: str
    filename: str
    filepath: Path


class MysqlBackupManager:
    """Produce full-server dumps with mysqldump.

    Output is written through ``--result-file`` so that no shell redirection is
    ever needed.
    """

    def __init__(
        self,
        settings: Optional[MysqlToolSettings] = None,
        *,
        runner: Optional[CommandRunner] = None,
        store: Optional[CredentialStore] = None,
        resolver: Optional[StorageLocationResolver] = None,
        credentials_path: Optional[Path] = None,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.settings = settings or get_tool_settings()
        self.runner = runner or CommandRunner()
        self.store = store or CredentialStore()
        self.resolver = resolver or SharedFolderResolver(self.settings.shared_folders)
        # Scheduled dumps authenticate with the file written by password rotation.
        self.credentials_path = credentials_path or self.settings.adhoc_credentials_path
        self.clock = clock

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _dump_filename(self, created_at: dt.datetime) -> str:
        return f"{DUMP_PREFIX}{created_at.isoformat()}{DUMP_SUFFIX}"

    def _now(self) -> dt.datetime:
        return self.clock().replace(microsecond=0)

    def _dump(self, target: Path) -> None:
        credentials_path = self.credentials_path
        with self.store.locked(credentials_path):
            args: list[str] = []
            # mysqldump refuses a missing --defaults-file; without one it uses socket authentication.
            if self.store.exists(credentials_path):
                args.append(f"--defaults-file={credentials_path}")
            else:
                logger.debug("No credentials file at %s; relying on local socket authentication", credentials_path)
            args.extend(["--all-databases", f"--result-file={target}"])
            self.runner.run(self.settings.mysqldump_bin, args)

    def _verify(self, target: Path, command: list[str]) -> int:
        size = target.stat().st_size
        if self.settings.verify_dumps and size == 0:
            raise EmptyDumpError(command, 0, "dump produced no data")
        return size

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def prepare_download(self) -> DumpArtifact:
        created_at = self._now()
        temp_dir = self.settings.temp_dir
        if temp_dir is not None:
            temp_dir.mkdir(parents=True, exist_ok=True)
        fd, raw_path = tempfile.mkstemp(prefix=DUMP_PREFIX, suffix=DUMP_SUFFIX, dir=temp_dir)
        os.close(fd)
        target = Path(raw_path)

        logger.info("Dumping all databases to %s for download", target)
        try:
            self._dump(target)
            size = self._verify(target, [self.settings.mysqldump_bin])
        except Exception:
            try:
                target.unlink()
            except FileNotFoundError:
                pass
            logger.info("Removed incomplete dump %s", target)
            raise

        return DumpArtifact(
            path=target,
            filename=self._dump_filename(created_at),
            created_at=created_at,
            size_bytes=size,
        )

    def download_descriptor(self, artifact: DumpArtifact) -> DownloadDescriptor:
        return DownloadDescriptor(
            content_type=DUMP_CONTENT_TYPE,
            filename=artifact.filename,
            filepath=artifact.path,
        )

    def dump_to_managed_location(self, location: str) -> DumpArtifact:
        directory = self.resolver.resolve(location)
        created_at = self._now()
        target = directory / self._dump_filename(created_at)

        # Claiming the name with O_EXCL also catches a concurrent caller racing for it.
        try:
            fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_EXCL, MANAGED_DUMP_MODE)
        except FileExistsError as exc:
            raise ConflictError(f"Backup already exists: {target}") from exc
        os.close(fd)

        logger.info("Dumping all databases to %s", target)
        try:
            self._dump(target)
            size = self._verify(target, [self.settings.mysqldump_bin])
        except ProcessError:
            # The tool never ran, so the file is only our empty placeholder.
            target.unlink()
            raise
        except Exception:
            logger.warning("Dump to %s failed; leaving the partial file for inspection", target)
            raise
        logger.info("Dump %s completed (%d bytes)", target, size)
        return DumpArtifact(path=target, filename=target.name, created_at=created_at, size_bytes=size)
