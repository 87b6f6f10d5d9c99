"""
core/process.py
---------------
Synchronous execution of external utilities (``psql``, ``bcp``, ``sqlcmd``).

Every invocation runs to completion with an explicit timeout; stdout, stderr
and the exit code are captured in full. Nothing is streamed and nothing is
retried. A non-zero exit or a timeout surfaces as
:class:`ExternalProcessError` carrying the captured stderr.
"""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from core.errors import MigrationToolError
from logger import get_logger

log = get_logger(__name__)

_SECRET_FLAGS = frozenset({"-P", "--password"})


class ExternalProcessError(MigrationToolError):
    """An external utility failed to start, exited non-zero, or timed out."""

    def __init__(
        self,
        message: str,
        command: str = "",
        returncode: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


@dataclass(frozen=True)
class ProcessResult:
    """Captured outcome of one external command."""
    command: str
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def check(self) -> "ProcessResult":
        """Return self, or raise :class:`ExternalProcessError` on a non-zero exit."""
        if not self.ok:
            detail = self.stderr.strip() or self.stdout.strip()
            raise ExternalProcessError(
                f"Command exited with code {self.returncode}: {detail}",
                command=self.command,
                returncode=self.returncode,
                stderr=self.stderr,
            )
        return self


# Signature shared by run_command and test doubles
CommandRunner = Callable[..., ProcessResult]


def redact(args: Sequence[str]) -> str:
    """Render an argument list for logs, masking the value after a password flag."""
    shown: list[str] = []
    hide_next = False
    for arg in args:
        if hide_next:
            shown.append("***")
            hide_next = False
            continue
        shown.append(arg)
        hide_next = arg in _SECRET_FLAGS
    return " ".join(shown)


def run_command(
    path: str,
    args: Sequence[str],
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> ProcessResult:
    """
    Run ``<path> <args…>`` and capture its output.

    Args:
        path:    Executable to run.
        args:    Arguments, passed without a shell.
        timeout: Seconds before the child is killed; None waits forever.
        env:     Extra environment variables layered over ``os.environ``.

    Returns:
        :class:`ProcessResult`. A non-zero exit is *not* raised here; call
        :meth:`ProcessResult.check` for that.

    Raises:
        ExternalProcessError: If the executable cannot be started or the
                              timeout expires.
    """
    argv = [path, *args]
    shown = redact(argv)
    child_env = None
    if env:
        child_env = dict(os.environ)
        child_env.update(env)

    log.debug("Running: %s", shown)
    try:
        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=child_env,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr.decode(errors="replace") if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        raise ExternalProcessError(
            f"Command timed out after {timeout}s: {shown}",
            command=shown,
            stderr=stderr,
            timed_out=True,
        ) from exc
    except OSError as exc:
        raise ExternalProcessError(
            f"Could not start '{path}': {exc}", command=shown
        ) from exc

    result = ProcessResult(
        command=shown,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if not result.ok:
        log.debug("Command exited %d: %s", result.returncode, result.stderr.strip())
    return result
