"""
core/exporter.py
----------------
Exports table contents to delimited files through ``psql \\copy``.

One invocation per table, run to completion before the call returns. The
password travels in ``PGPASSWORD`` rather than on the command line.

psql writes the text COPY format to a staging file beside the destination;
:func:`core.datafile.convert_copy_text` then rewrites it into the file
``bcp -c`` loads, and the staging file is removed.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from core.datafile import DataFileError, convert_copy_text, validate_delimiter
from core.ddl_generator import qualify
from core.process import CommandRunner, run_command
from logger import get_logger
from models.catalog import split_qualified_name
from models.connection import SourceConnection

log = get_logger(__name__)

STAGING_SUFFIX = ".pgcopy"


@dataclass
class ExportResult:
    """Outcome of exporting one table."""
    table_name: str
    path: Path
    rows_exported: int | None = None
    elapsed_seconds: float = 0.0


def staging_path(destination: Path) -> Path:
    """Where psql writes the raw COPY output for *destination*."""
    return destination.with_name(destination.name + STAGING_SUFFIX)


def _path_literal(path: Path) -> str:
    # psql parses the \copy file name itself: plain quotes, no E'' form
    return "'" + str(path).replace("'", "''") + "'"


def _option_literal(value: str) -> str:
    """Quote a COPY option value for the server (``E''`` form for control characters)."""
    escaped = value.replace("\\", "\\\\").replace("'", "''")
    if any(ch in value for ch in "\t\n\r\\"):
        escaped = escaped.replace("\t", "\\t").replace("\n", "\\n").replace("\r", "\\r")
        return f"E'{escaped}'"
    return f"'{escaped}'"


def build_copy_command(qualified_name: str, destination: Path, delimiter: str = "\t") -> str:
    """
    Build the ``\\copy`` meta-command for one table.

    Example::

        build_copy_command("public.orders", Path("data/orders.csv.pgcopy"), ",")
        → \\copy (SELECT * FROM "public"."orders") TO 'data/orders.csv.pgcopy' WITH (FORMAT text, DELIMITER ',')
    """
    schema, table = split_qualified_name(qualified_name)
    return (
        f"\\copy (SELECT * FROM {qualify(schema, table)}) "
        f"TO {_path_literal(destination)} "
        f"WITH (FORMAT text, DELIMITER {_option_literal(delimiter)})"
    )


class Exporter:
    """
    Drives the source engine's bulk export.

    Args:
        source:    Source connection parameters.
        psql_path: ``psql`` executable.
        delimiter: Field delimiter (``\\t`` or ``,``) shared with the loader.
        timeout:   Seconds allowed per table.
        runner:    Command runner; defaults to :func:`core.process.run_command`.
    """

    def __init__(
        self,
        source: SourceConnection,
        psql_path: str = "psql",
        delimiter: str = "\t",
        timeout: float | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self._source = source
        self._psql_path = psql_path
        self._delimiter = validate_delimiter(delimiter)
        self._timeout = timeout
        self._run = runner or run_command

    def build_args(self, qualified_name: str, destination: Path) -> list[str]:
        src = self._source
        return [
            "-h", src.host,
            "-p", str(src.port),
            "-U", src.user,
            "-d", src.database,
            "-v", "ON_ERROR_STOP=1",
            "-c", build_copy_command(qualified_name, destination, self._delimiter),
        ]

    def export_table(self, qualified_name: str, destination: Path) -> ExportResult:
        """
        Export ``SELECT * FROM <table>`` to *destination*, overwriting it.

        Raises:
            ExternalProcessError: If ``psql`` exits non-zero or times out.
            DataFileError:        If the output cannot be rewritten for
                                  loading, or its row count disagrees with
                                  the count psql reported.
        """
        start = time.monotonic()
        staged = staging_path(destination)
        log.info("Exporting %s → %s", qualified_name, destination)
        env = {"PGCLIENTENCODING": "UTF8"}
        if self._source.password:
            env["PGPASSWORD"] = self._source.password
        try:
            result = self._run(
                self._psql_path,
                self.build_args(qualified_name, staged),
                timeout=self._timeout,
                env=env,
            ).check()
            rows = convert_copy_text(staged, destination, self._delimiter)
        finally:
            staged.unlink(missing_ok=True)

        reported = _parse_copy_count(result.stdout)
        if reported is not None and reported != rows:
            raise DataFileError(
                f"psql reported {reported} row(s) for {qualified_name} "
                f"but {rows} were written to '{destination}'."
            )
        elapsed = time.monotonic() - start
        log.info("Exported %s: %d row(s) in %.2fs.", qualified_name, rows, elapsed)
        return ExportResult(
            table_name=qualified_name,
            path=destination,
            rows_exported=rows,
            elapsed_seconds=elapsed,
        )


def _parse_copy_count(stdout: str) -> int | None:
    """Pick the row count out of psql's ``COPY <n>`` status line."""
    for line in reversed(stdout.splitlines()):
        parts = line.strip().split()
        if len(parts) == 2 and parts[0] == "COPY" and parts[1].isdigit():
            return int(parts[1])
    return None
