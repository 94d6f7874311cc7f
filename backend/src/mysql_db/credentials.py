"""Owner-only MySQL option files holding a single user/password pair."""

from __future__ import annotations

import configparser
import enum
import logging
import os
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from .errors import ValidationError

logger = logging.getLogger(__name__)

CREDENTIALS_FILE_MODE = 0o600

_OPEN_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_NOFOLLOW", 0)
_FORBIDDEN_CHARACTERS = ("\n", "\r", "\0")
_ESCAPES = {"\\": "\\", "n": "\n", "t": "\t", "r": "\r", "b": "\b", "s": " "}
_ESCAPE_PATTERN = re.compile(r"\\(.)")

_path_locks: dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


class CredentialKind(str, enum.Enum):
    AD_HOC = "ad_hoc"
    SCHEDULED_DUMP = "scheduled_dump"

    @property
    def section(self) -> str:
        return "mysqldump" if self is CredentialKind.SCHEDULED_DUMP else "mysql"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str
    kind: CredentialKind

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***', kind={self.kind.value})"


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _registry_lock:
        lock = _path_locks.get(key)
        if lock is None:
            lock = _path_locks[key] = threading.RLock()
        return lock


def encode_option_value(value: str) -> str:
    """Encode *value* for a MySQL option file.

    Backslashes are escaped; values the option-file parser would otherwise
    trim or cut at a comment are wrapped in double quotes.
    """

    if any(char in value for char in _FORBIDDEN_CHARACTERS):
        raise ValidationError("Credential values must not contain line breaks or NUL characters")
    escaped = value.replace("\\", "\\\\")
    needs_quotes = (
        value != value.strip()
        or "#" in value
        or (len(value) >= 2 and value[0] in "'\"" and value[0] == value[-1])
    )
    return f'"{escaped}"' if needs_quotes else escaped


def decode_option_value(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value[0] in "'\"" and value[0] == value[-1]:
        value = value[1:-1]
    return _ESCAPE_PATTERN.sub(lambda match: _ESCAPES.get(match.group(1), match.group(0)), value)


def render_credentials(username: str, password: str, kind: CredentialKind) -> str:
    if not username:
        raise ValidationError("Credential username must not be empty")
    return (
        f"[{kind.section}]\n"
        f"user={encode_option_value(username)}\n"
        f"password={encode_option_value(password)}\n"
    )


class CredentialStore:
    """Sole reader and writer of the credentials files.

    Writers to the same path are serialized with a per-path lock, and files are
    restricted to mode 0600 before any secret is written to them.
    """

    def write(self, path: str | Path, username: str, password: str, kind: CredentialKind) -> None:
        path = Path(path)
        data = render_credentials(username, password, kind).encode("utf-8")
        with _lock_for(path):
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, _OPEN_FLAGS, CREDENTIALS_FILE_MODE)
            try:
                # The file may predate this call with looser permissions.
                os.fchmod(fd, CREDENTIALS_FILE_MODE)
                view = memoryview(data)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
                os.fsync(fd)
            except OSError:
                os.close(fd)
                logger.error("Failed to write credentials file %s; removing partial file", path)
                self.remove(path)
                raise
            os.close(fd)
        logger.info("Wrote %s credentials for user %s to %s", kind.value, username, path)

    def read(self, path: str | Path, kind: CredentialKind) -> Credentials:
        path = Path(path)
        parser = configparser.ConfigParser(interpolation=None)
        with _lock_for(path):
            with path.open(encoding="utf-8") as handle:
                parser.read_file(handle)
        section = kind.section
        if not parser.has_section(section):
            raise ValidationError(f"Credentials file {path} has no [{section}] section")
        try:
            username = parser.get(section, "user")
            password = parser.get(section, "password")
        except configparser.NoOptionError as exc:
            raise ValidationError(f"Credentials file {path} is missing '{exc.option}'") from exc
        return Credentials(
            username=decode_option_value(username),
            password=decode_option_value(password),
            kind=kind,
        )

    def remove(self, path: str | Path) -> bool:
        path = Path(path)
        with _lock_for(path):
            try:
                path.unlink()
            except FileNotFoundError:
                return False
        logger.debug("Removed credentials file %s", path)
        return True

    def exists(self, path: str | Path) -> bool:
        return Path(path).is_file()

    @contextmanager
    def locked(self, path: str | Path) -> Iterator[Path]:
        """Keep other writers away from *path* while a tool reads it."""

        path = Path(path)
        with _lock_for(path):
            yield path

    @contextmanager
    def temporary(
        self,
        path: str | Path,
        username: str,
        password: str,
        kind: CredentialKind,
    ) -> Iterator[Path]:
        """Hold a credentials file at *path* for the duration of the block.

        The file is deleted on every exit path, and no other writer can touch
        *path* while the block runs.
        """

        path = Path(path)
        with _lock_for(path):
            try:
                self.write(path, username, password, kind)
                yield path
            finally:
                self.remove(path)
