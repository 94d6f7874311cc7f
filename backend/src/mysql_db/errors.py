"""Exceptions raised by the MySQL backup, restore and credential workflows.

Filesystem failures are not wrapped: they surface as the ``OSError`` raised by
the failing call.
"""

from __future__ import annotations

from typing import Optional, Sequence


class ServiceError(RuntimeError):
    """Base class for errors reported to the RPC layer."""


class AuthorizationError(ServiceError):
    """Raised when the caller lacks the administrator role."""


class ValidationError(ServiceError):
    """Raised for malformed request parameters."""


class ConflictError(ServiceError):
    """Raised when a dump would overwrite an existing file."""


class ProcessError(ServiceError):
    """Raised when an external command cannot be spawned."""

    def __init__(self, executable: str, message: Optional[str] = None) -> None:
        self.executable = executable
        super().__init__(message or f"Required command could not be started: {executable}")


class ExecutionError(ServiceError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, output: str) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        detail = output.strip() or "no output"
        super().__init__(f"{self.command[0]} exited with status {returncode}: {detail}")


class EmptyDumpError(ExecutionError):
    """Raised when the dump tool succeeded but produced no data."""


class CredentialPersistenceError(ServiceError):
    """Raised when the live password changed but the durable credentials file was not updated."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        super().__init__(
            f"Administrative password was changed, but writing {path} failed ({cause}); "
            "scheduled dumps will use a stale password until it is rewritten"
        )
