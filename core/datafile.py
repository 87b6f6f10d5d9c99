"""
core/datafile.py
----------------
The data file contract between the export and the load.

``psql \\copy`` writes PostgreSQL's text COPY format: one line per row,
fields split by the delimiter, ``\\N`` for NULL and backslash escapes for
backslash, the delimiter, tab, CR and LF. ``bcp -c`` reads raw character
data and never unescapes anything, so the export is staged in the COPY
format and rewritten here into the file bcp expects::

    field <delimiter> field ... LF

    * NULL         → empty field (kept as NULL by ``bcp -k``)
    * empty string → a single NUL byte (bcp's character-mode empty string)
    * anything else → the decoded value, written verbatim

A value that contains the delimiter, CR, LF or NUL cannot be written in
that format. It raises :class:`DataFileError` naming the row and column, so
the table fails instead of loading shifted or truncated values.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterator

from core.errors import MigrationToolError
from logger import get_logger

log = get_logger(__name__)

ROW_TERMINATOR = "\n"
BCP_EMPTY_STRING = "\x00"
COPY_NULL = "\\N"

_SIMPLE_ESCAPES = {
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
}
_OCTAL_DIGITS = frozenset("01234567")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class DataFileError(MigrationToolError):
    """A staged export could not be read, decoded or rewritten for loading."""


def validate_delimiter(delimiter: str) -> str:
    """
    Check that *delimiter* works for both text COPY and ``bcp -c``.

    Raises:
        ValueError: Unless it is one character other than backslash, CR,
                    LF or NUL.
    """
    if len(delimiter) != 1 or delimiter in "\\\r\n\x00":
        raise ValueError(f"Unsupported field delimiter {delimiter!r}; use a single character such as tab or a comma.")
    return delimiter


def split_copy_line(line: str, delimiter: str) -> list[str]:
    """
    Split one text-format COPY line on unescaped delimiters.

    Escape sequences are left in place; :func:`decode_copy_field` resolves
    them per field.
    """
    fields: list[str] = []
    current: list[str] = []
    chars = iter(line)
    for ch in chars:
        if ch == "\\":
            current.append(ch)
            current.append(next(chars, ""))
        elif ch == delimiter:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


def decode_copy_field(raw: str) -> str | None:
    """
    Decode one text-format COPY field; ``\\N`` decodes to None.

    Handles the one-letter escapes (``\\t``, ``\\n`` ...), octal ``\\ooo``,
    hex ``\\xhh`` and a backslash before any other character, which stands
    for that character.
    """
    if raw == COPY_NULL:
        return None
    if "\\" not in raw:
        return raw

    out: list[str] = []
    i, n = 0, len(raw)
    while i < n:
        ch = raw[i]
        if ch != "\\" or i + 1 == n:
            out.append(ch)
            i += 1
            continue
        nxt = raw[i + 1]
        if nxt in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt in _OCTAL_DIGITS:
            j = i + 1
            while j < n and j < i + 4 and raw[j] in _OCTAL_DIGITS:
                j += 1
            out.append(chr(int(raw[i + 1:j], 8)))
            i = j
        elif nxt == "x" and i + 2 < n and raw[i + 2] in _HEX_DIGITS:
            j = i + 2
            while j < n and j < i + 4 and raw[j] in _HEX_DIGITS:
                j += 1
            out.append(chr(int(raw[i + 2:j], 16)))
            i = j
        else:
            # \\ and an escaped delimiter both stand for the character itself
            out.append(nxt)
            i += 2
    return "".join(out)


def encode_bcp_field(value: str | None, delimiter: str) -> str:
    """
    Render one value for ``bcp -c``.

    Raises:
        ValueError: If *value* contains a character the file format reserves.
    """
    if value is None:
        return ""
    if value == "":
        return BCP_EMPTY_STRING
    for reserved, label in ((delimiter, "the field delimiter"), ("\n", "LF"), ("\r", "CR"), ("\x00", "NUL")):
        if reserved in value:
            raise ValueError(f"value contains {label}")
    return value


def _copy_lines(path: Path) -> Iterator[str]:
    # Text-format COPY escapes CR and LF inside values, so LF always ends a row
    with path.open("r", encoding="utf-8", newline="\n") as fh:
        for line in fh:
            yield line[:-1] if line.endswith("\n") else line


def convert_copy_text(source: Path, destination: Path, delimiter: str) -> int:
    """
    Rewrite a staged text-format COPY file into the file ``bcp -c`` loads.

    Args:
        source:      Staged ``\\copy ... (FORMAT text)`` output.
        destination: Data file to (over)write.
        delimiter:   Field delimiter, the same for both files.

    Returns:
        Number of rows written.

    Raises:
        DataFileError: If the staged file cannot be read or a value cannot be
                       represented in the load format.
    """
    rows = 0
    tmp = destination.with_suffix(destination.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="") as out:
            for rows, line in enumerate(_copy_lines(source), start=1):
                fields = []
                for column, raw in enumerate(split_copy_line(line, delimiter), start=1):
                    try:
                        fields.append(encode_bcp_field(decode_copy_field(raw), delimiter))
                    except ValueError as exc:
                        raise DataFileError(
                            f"{source.name}: row {rows}, column {column}: {exc}; "
                            f"it cannot be loaded with delimiter {delimiter!r}."
                        ) from exc
                out.write(delimiter.join(fields))
                out.write(ROW_TERMINATOR)
        tmp.replace(destination)
    except OSError as exc:
        raise DataFileError(f"Cannot convert '{source}' to '{destination}': {exc}") from exc
    except UnicodeDecodeError as exc:
        raise DataFileError(f"'{source}' is not valid UTF-8: {exc}") from exc
    finally:
        if tmp.exists():
            tmp.unlink()
    log.debug("Converted %s → %s (%d row(s)).", source.name, destination.name, rows)
    return rows
