"""MySQL credential files, command execution and password rotation."""

from .credentials import CredentialKind, Credentials, CredentialStore
from .errors import (
    AuthorizationError,
    ConflictError,
    CredentialPersistenceError,
    EmptyDumpError,
    ExecutionError,
    ProcessError,
    ServiceError,
    ValidationError,
)
from .password import PasswordManager
from .runner import CommandResult, CommandRunner

__all__ = [
    "AuthorizationError",
    "CommandResult",
    "CommandRunner",
    "ConflictError",
    "CredentialKind",
    "CredentialPersistenceError",
    "Credentials",
    "CredentialStore",
    "EmptyDumpError",
    "ExecutionError",
    "PasswordManager",
    "ProcessError",
    "ServiceError",
    "ValidationError",
]
