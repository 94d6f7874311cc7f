"""Backup and restore of the local MySQL server."""

from .locations import SharedFolderResolver, StorageLocationResolver
from .manager import (
    DownloadDescriptor,
    DumpArtifact,
    MysqlBackupManager,
)
from .restore import RestoreManager

__all__ = [
    "DownloadDescriptor",
    "DumpArtifact",
    "MysqlBackupManager",
    "RestoreManager",
    "SharedFolderResolver",
    "StorageLocationResolver",
]
