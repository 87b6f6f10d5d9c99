"""
core/type_mapper.py
-------------------
PostgreSQL → SQL Server column type mapping.

Pure functions with no side effects: the same (udt name, data type, length)
always yields the same :class:`TargetType`. The mapping table is data, not an
if/else tree. Anything not in the table is passed through unchanged so the
function is total; pass-throughs that SQL Server does not understand natively
are flagged ``is_fallback`` so the caller can warn about them.
"""
from __future__ import annotations

from models.catalog import ColumnDescriptor, TargetType

USER_DEFINED = "USER-DEFINED"
WIDE_TEXT = "varchar(max)"

_UDT_MAP: dict[str, str] = {
    "int8": "bigint",
    "int4": "int",
    "int2": "smallint",
    "bytea": "varbinary(max)",
    "timestamptz": "datetime2",
    "timestamp": "datetime",
    "bool": "varchar(5)",
    "text": WIDE_TEXT,
    "bpchar": "char",
}

# Stored as text on the target regardless of the declared type
_WIDE_TEXT_UDTS = frozenset({"tsvector", "_text"})

# Names that mean the same thing in both dialects; passing them through is fine
_NATIVE_PASSTHROUGH = frozenset(
    {"varchar", "char", "date", "time", "numeric", "decimal", "real", "float", "money", "xml"}
)


class UnmappedTypeWarning(UserWarning):
    """A source type had no mapping and was passed through unchanged."""


def map_type(udt_name: str, data_type: str = "", length: int | None = None) -> TargetType:
    """
    Map a source column type onto its SQL Server equivalent.

    Args:
        udt_name:  ``information_schema.columns.udt_name`` (``int4``, ``bpchar`` …).
        data_type: ``information_schema.columns.data_type`` (``USER-DEFINED`` …).
        length:    Accepted for signature symmetry with the catalog row; the
                   suffix itself is applied by :meth:`TargetType.render`.

    Returns:
        :class:`TargetType` whose ``literal`` is never empty.

    Examples::

        map_type("int4").literal                    →  "int"
        map_type("bpchar").render(50)               →  "char(50)"
        map_type("mood", "USER-DEFINED").literal    →  "varchar(max)"
        map_type("uuid").literal                    →  "uuid"  (fallback)
    """
    if not udt_name:
        return TargetType(WIDE_TEXT, needs_length=False, is_fallback=True)

    key = udt_name.lower()
    if key in _UDT_MAP:
        literal = _UDT_MAP[key]
        return TargetType(literal, needs_length="(" not in literal)

    if data_type == USER_DEFINED or key in _WIDE_TEXT_UDTS:
        return TargetType(WIDE_TEXT, needs_length=False)

    return TargetType(
        udt_name,
        needs_length="(" not in udt_name,
        is_fallback=key not in _NATIVE_PASSTHROUGH,
    )


def map_column(column: ColumnDescriptor) -> str:
    """Return the fully rendered target type (including any length) for *column*."""
    return map_type(column.udt_name, column.data_type, column.length).render(column.length)


def is_known_type(udt_name: str, data_type: str = "") -> bool:
    """Return True if *udt_name* maps without falling back."""
    return not map_type(udt_name, data_type).is_fallback


def unmapped_columns(columns) -> list[ColumnDescriptor]:
    """Return the columns whose type would be passed through unmapped."""
    return [c for c in columns if not is_known_type(c.udt_name, c.data_type)]
