"""Run the MySQL command-line tools without a shell."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .errors import ExecutionError, ProcessError

logger = logging.getLogger(__name__)


def mask_sensitive(value: str, secrets: Iterable[str]) -> str:
    """Replace occurrences of secret values in *value* with '***'."""

    masked = value
    for secret in secrets:
        if secret:
            masked = masked.replace(secret, "***")
    return masked


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    output: str


class CommandRunner:
    """Execute external processes from argument vectors.

    Arguments are never interpreted by a shell. Input comes from a file
    (``stdin_path``), from text (``input_text``) or from ``/dev/null``, so the
    tools can never block on an interactive prompt. stdout and stderr are
    captured together.
    """

    def run(
        self,
        executable: str,
        args: Sequence[str] = (),
        *,
        stdin_path: Optional[str | Path] = None,
        input_text: Optional[str] = None,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        if stdin_path is not None and input_text is not None:
            raise ValueError("stdin_path and input_text are mutually exclusive")

        command = [executable, *(str(arg) for arg in args)]
        logger.debug("Running %s", mask_sensitive(" ".join(command), secrets))

        if stdin_path is not None:
            with open(stdin_path, "rb") as stdin:
                completed = self._spawn(command, stdin=stdin)
        elif input_text is not None:
            completed = self._spawn(command, input=input_text.encode("utf-8"))
        else:
            completed = self._spawn(command, stdin=subprocess.DEVNULL)

        output = mask_sensitive(completed.stdout.decode("utf-8", errors="replace"), secrets)
        if completed.returncode != 0:
            logger.warning("%s exited with status %d", executable, completed.returncode)
            raise ExecutionError(command, completed.returncode, output)
        return CommandResult(command=command, returncode=completed.returncode, output=output)

    def _spawn(self, command: list[str], **kwargs) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
                **kwargs,
            )
        except OSError as exc:
            raise ProcessError(command[0], f"Required command could not be started: {command[0]} ({exc})") from exc
