"""
core/schema_applier.py
----------------------
Executes generated ``.sql`` scripts against SQL Server with ``sqlcmd``.

``-b`` makes sqlcmd exit non-zero on the first error inside a script and
``-I`` turns on QUOTED_IDENTIFIER, which the double-quoted names in the
generated DDL rely on. The password travels in ``SQLCMDPASSWORD``, never
on the command line.
"""
from __future__ import annotations

from pathlib import Path

from core.process import CommandRunner, ProcessResult, run_command
from logger import get_logger
from models.connection import TargetConnection

log = get_logger(__name__)


class SchemaApplier:
    def __init__(
        self,
        target: TargetConnection,
        sqlcmd_path: str = "sqlcmd",
        timeout: float | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self._target = target
        self._sqlcmd_path = sqlcmd_path
        self._timeout = timeout
        self._run = runner or run_command

    def build_args(self, script: Path) -> list[str]:
        tgt = self._target
        return [
            "-S", tgt.server_address,
            "-d", tgt.database,
            *tgt.auth_args(include_password=False),
            "-b",
            "-I",
            "-i", str(script),
        ]

    def apply_script(self, script: Path | str) -> ProcessResult:
        """
        Run one script file.

        Raises:
            ExternalProcessError: If sqlcmd reports an error or times out.
        """
        script = Path(script)
        log.info("Applying %s", script)
        return self._run(
            self._sqlcmd_path,
            self.build_args(script),
            timeout=self._timeout,
            env=self._target.password_env() or None,
        ).check()
