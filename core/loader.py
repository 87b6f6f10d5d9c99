"""
core/loader.py
--------------
Loads delimited data files into SQL Server tables through ``bcp … in``.

The target table is derived from the file name. Files follow the layout
written by :mod:`core.datafile`: raw character fields, the shared field
delimiter, LF row terminator, empty field for NULL. Batches are committed by
``bcp`` itself (``-b``); this module adds no transaction of its own, so a
failure part-way through leaves the batches already committed in place.

bcp has no password environment variable, so with SQL authentication the
password is passed as ``-P`` and is visible in the process list for the
duration of the load. Use ``--trusted`` (``-T``) where that matters.
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path

from core.artifacts import decode_file_stem
from core.datafile import ROW_TERMINATOR, validate_delimiter
from core.process import CommandRunner, run_command
from logger import get_logger
from models.connection import TargetConnection

log = get_logger(__name__)

DEFAULT_BATCH_SIZE = 5000

_ROWS_COPIED_RE = re.compile(r"^\s*(\d+)\s+rows?\s+copied", re.IGNORECASE | re.MULTILINE)


@dataclass
class LoadResult:
    """Outcome of loading one data file."""
    table_name: str
    path: Path
    rows_loaded: int | None = None
    elapsed_seconds: float = 0.0


def table_for_file(path: Path | str) -> str:
    """
    Derive the target table from a data file name.

    Examples::

        table_for_file("data/orders.csv")          →  "orders"
        table_for_file("data/sales.orders.csv")    →  "orders"
        table_for_file("data/my%2Etable.csv")      →  "my.table"
    """
    stem = Path(path).stem
    return decode_file_stem(stem.rsplit(".", 1)[-1])


def bracket_identifier(name: str) -> str:
    """Quote an identifier the way bcp parses object names: ``[name]``, ``]`` doubled."""
    return "[" + name.replace("]", "]]") + "]"


# bcp understands the \t escape and hex notation; a raw LF argument is not portable
_BCP_TERMINATORS = {"\t": "\\t", "\n": "0x0a", "\r": "0x0d"}


def bcp_terminator(value: str) -> str:
    return "".join(_BCP_TERMINATORS.get(ch, ch) for ch in value)


class Loader:
    """
    Drives the target engine's bulk load.

    Args:
        target:     Target connection parameters (schema included).
        bcp_path:   ``bcp`` executable.
        delimiter:  Field delimiter used when the files were exported.
        batch_size: Rows per committed batch.
        timeout:    Seconds allowed per file.
        runner:     Command runner; defaults to :func:`core.process.run_command`.
    """

    def __init__(
        self,
        target: TargetConnection,
        bcp_path: str = "bcp",
        delimiter: str = "\t",
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout: float | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._target = target
        self._bcp_path = bcp_path
        self._delimiter = validate_delimiter(delimiter)
        self._batch_size = batch_size
        self._timeout = timeout
        self._run = runner or run_command

    def build_args(self, table: str, path: Path) -> list[str]:
        tgt = self._target
        return [
            f"{bracket_identifier(tgt.schema_name)}.{bracket_identifier(table)}",
            "in", str(path),
            "-S", tgt.server_address,
            "-d", tgt.database,
            *tgt.auth_args(),
            "-c",
            "-t", bcp_terminator(self._delimiter),
            "-r", bcp_terminator(ROW_TERMINATOR),
            "-b", str(self._batch_size),
            "-k",
        ]

    def load_file(self, path: Path | str) -> LoadResult:
        """
        Load one data file into the table named by its base name.

        Raises:
            ExternalProcessError: If ``bcp`` exits non-zero or times out.
        """
        path = Path(path)
        table = table_for_file(path)
        start = time.monotonic()
        log.info("Loading %s → %s.%s", path.name, self._target.schema_name, table)
        result = self._run(
            self._bcp_path,
            self.build_args(table, path),
            timeout=self._timeout,
        ).check()

        match = _ROWS_COPIED_RE.search(result.stdout)
        rows = int(match.group(1)) if match else None
        elapsed = time.monotonic() - start
        log.info(
            "Loaded %s.%s: %s row(s) in %.2fs.",
            self._target.schema_name, table, rows if rows is not None else "?", elapsed,
        )
        return LoadResult(table_name=table, path=path, rows_loaded=rows, elapsed_seconds=elapsed)
