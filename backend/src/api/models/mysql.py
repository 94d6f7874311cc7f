"""Pydantic schemas for the MySQL service API."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from backup.manager import DumpArtifact

__all__ = ["DumpInfo", "ResetPasswordPayload", "SharedFolderDumpPayload"]


class SharedFolderDumpPayload(BaseModel):
    location: str = Field(..., min_length=1)


class ResetPasswordPayload(BaseModel):
    password: str = Field(..., min_length=1)


class DumpInfo(BaseModel):
    filename: str
    path: str
    created_at: dt.datetime
    size_bytes: Optional[int] = None

    @classmethod
    def from_artifact(cls, artifact: DumpArtifact) -> "DumpInfo":
        return cls(
            filename=artifact.filename,
            path=str(artifact.path),
            created_at=artifact.created_at,
            size_bytes=artifact.size_bytes,
        )
