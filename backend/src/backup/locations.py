"""Resolve managed storage locations (shared folders) to directories."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Protocol

from mysql_db.errors import ValidationError


class StorageLocationResolver(Protocol):
    def resolve(self, location: str) -> Path:
        """Return the absolute directory for *location*."""


class SharedFolderResolver:
    """Map configured shared-folder names to their directories."""

    def __init__(self, folders: Mapping[str, str | Path]) -> None:
        self.folders = {name: Path(path) for name, path in folders.items()}

    def resolve(self, location: str) -> Path:
        name = (location or "").strip()
        if not name:
            raise ValidationError("A shared folder must be selected")
        try:
            directory = self.folders[name]
        except KeyError as exc:
            raise ValidationError(f"Unknown shared folder: {name}") from exc
        directory = directory.expanduser().resolve()
        if not directory.is_dir():
            raise ValidationError(f"Shared folder directory does not exist: {directory}")
        return directory
