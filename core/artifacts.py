"""
core/artifacts.py
-----------------
The on-disk migration artifact tree, which is the only contract between
phases::

    <script_dir>/1_Tables/<table>.sql
    <script_dir>/2_Constraints/1_check_constraints.sql
    <script_dir>/2_Constraints/2_primary_foreign_unique_key.sql
    <script_dir>/3_Sequences/sequences.sql
    <data_dir>/<table>.<ext>

Folder names sort in application order, so executing scripts in
directory-then-filename order creates tables before constraints and
sequences last.
"""
from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote

from core.errors import MigrationToolError
from logger import get_logger

log = get_logger(__name__)

TABLES_DIR = "1_Tables"
CONSTRAINTS_DIR = "2_Constraints"
SEQUENCES_DIR = "3_Sequences"
CHECK_CONSTRAINTS_FILE = "1_check_constraints.sql"
KEYS_FILE = "2_primary_foreign_unique_key.sql"
SEQUENCES_FILE = "sequences.sql"


class FileSystemError(MigrationToolError):
    """An artifact directory or file could not be created, written or found."""


def local_table_name(qualified_name: str) -> str:
    """Strip the schema prefix: ``"public.orders"`` → ``"orders"``."""
    return qualified_name.split(".", 1)[1] if "." in qualified_name else qualified_name


# Characters that would change how a file name splits into path, schema and
# table segments; "%" first so decoding is the exact inverse
_STEM_ESCAPES = (("%", "%25"), (".", "%2E"), ("/", "%2F"), ("\\", "%5C"))


def encode_file_stem(table: str) -> str:
    """
    Make a local table name safe to use as a file stem.

    Dots are escaped so the loader, which takes the segment after the last
    dot, recovers the table name exactly: ``my.table`` → ``my%2Etable``.
    """
    for raw, escaped in _STEM_ESCAPES:
        table = table.replace(raw, escaped)
    return table


def decode_file_stem(stem: str) -> str:
    """Inverse of :func:`encode_file_stem`."""
    return unquote(stem)


class ArtifactLayout:
    """
    Resolves every artifact path and performs the writes.

    Args:
        script_dir:     Root of the generated DDL tree.
        data_dir:       Directory holding one delimited file per table.
        data_extension: Extension of the data files (without the dot).
    """

    def __init__(self, script_dir: Path | str, data_dir: Path | str, data_extension: str = "csv") -> None:
        self.script_dir = Path(script_dir)
        self.data_dir = Path(data_dir)
        self.data_extension = data_extension.lstrip(".")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def tables_dir(self) -> Path:
        return self.script_dir / TABLES_DIR

    @property
    def constraints_dir(self) -> Path:
        return self.script_dir / CONSTRAINTS_DIR

    @property
    def sequences_dir(self) -> Path:
        return self.script_dir / SEQUENCES_DIR

    def table_script(self, qualified_name: str) -> Path:
        return self.tables_dir / f"{encode_file_stem(local_table_name(qualified_name))}.sql"

    @property
    def check_constraints_script(self) -> Path:
        return self.constraints_dir / CHECK_CONSTRAINTS_FILE

    @property
    def keys_script(self) -> Path:
        return self.constraints_dir / KEYS_FILE

    @property
    def sequences_script(self) -> Path:
        return self.sequences_dir / SEQUENCES_FILE

    def data_file(self, qualified_name: str) -> Path:
        return self.data_dir / f"{encode_file_stem(local_table_name(qualified_name))}.{self.data_extension}"

    # ------------------------------------------------------------------
    # Directory management
    # ------------------------------------------------------------------

    def ensure_script_dirs(self) -> None:
        """Create the three script sub-folders. Raises :class:`FileSystemError`."""
        for folder in (self.tables_dir, self.constraints_dir, self.sequences_dir):
            _mkdir(folder)

    def ensure_data_dir(self) -> None:
        _mkdir(self.data_dir)

    # ------------------------------------------------------------------
    # Reads / writes
    # ------------------------------------------------------------------

    def write_script(self, path: Path, text: str) -> Path:
        """
        Write *text* (plus a final newline) to *path* atomically.

        Identical text always produces identical bytes, so re-running an
        export over an unchanged catalog leaves the files byte-for-byte equal.
        """
        payload = text if text.endswith("\n") or not text else text + "\n"
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8", newline="\n")
            tmp.replace(path)
        except OSError as exc:
            raise FileSystemError(f"Cannot write '{path}': {exc}") from exc
        log.debug("Wrote %s (%d bytes).", path, len(payload.encode("utf-8")))
        return path

    def schema_scripts(self) -> list[Path]:
        """
        Every ``.sql`` file under the script tree, in directory-then-filename
        order.

        Raises:
            FileSystemError: If the script directory does not exist.
        """
        if not self.script_dir.is_dir():
            raise FileSystemError(f"Script directory '{self.script_dir}' does not exist.")
        return sorted(
            (p for p in self.script_dir.rglob("*.sql") if p.is_file()),
            key=lambda p: (p.parent.relative_to(self.script_dir).parts, p.name),
        )

    def data_files(self) -> list[Path]:
        """Every data file with the configured extension, sorted by name."""
        if not self.data_dir.is_dir():
            raise FileSystemError(f"Data directory '{self.data_dir}' does not exist.")
        return sorted(
            p for p in self.data_dir.glob(f"*.{self.data_extension}") if p.is_file()
        )


def _mkdir(folder: Path) -> None:
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f"Cannot create directory '{folder}': {exc}") from exc
