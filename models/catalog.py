"""
models/catalog.py
-----------------
Typed descriptors for the objects read from the source catalog.

All descriptors are frozen dataclasses: they are built fresh by the catalog
reader, handed to the DDL generator and then discarded. Nothing here talks to
a database or the file system.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

DEFAULT_SOURCE_SCHEMA = "public"


def split_qualified_name(qualified_name: str) -> tuple[str, str]:
    """
    Split ``"schema.table"`` into its parts.

    An unqualified name belongs to the ``public`` schema. Only the first dot
    separates the schema, so table names that themselves contain dots survive.

    Examples::

        split_qualified_name("sales.orders")  →  ("sales", "orders")
        split_qualified_name("orders")        →  ("public", "orders")
    """
    if "." in qualified_name:
        schema, _, table = qualified_name.partition(".")
        return schema, table
    return DEFAULT_SOURCE_SCHEMA, qualified_name


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    One column as reported by ``information_schema.columns``.

    Attributes:
        name:        Column name.
        udt_name:    Underlying type name (``int4``, ``bpchar``, ``_text`` …).
        data_type:   SQL-standard type name (``integer``, ``USER-DEFINED`` …).
        is_nullable: True when the column accepts NULL.
        length:      ``character_maximum_length`` when the source reports one.
        default:     Default expression, carried along but not rendered.
    """
    name: str
    udt_name: str
    data_type: str = ""
    is_nullable: bool = True
    length: int | None = None
    default: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Column name must not be empty.")


@dataclass(frozen=True)
class TableDescriptor:
    """A base table and its columns in catalog (ordinal) order."""
    schema: str
    name: str
    columns: tuple[ColumnDescriptor, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Table name must not be empty.")
        # Accept any iterable of columns but store an immutable tuple
        object.__setattr__(self, "columns", tuple(self.columns))
        seen: set[str] = set()
        for col in self.columns:
            if col.name in seen:
                raise ValueError(
                    f"Duplicate column '{col.name}' in table '{self.qualified_name}'."
                )
            seen.add(col.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"


class ConstraintKind(str, Enum):
    """``pg_constraint.contype`` codes."""
    PRIMARY_KEY = "p"
    FOREIGN_KEY = "f"
    UNIQUE = "u"
    CHECK = "c"
    EXCLUSION = "x"


@dataclass(frozen=True)
class ConstraintRecord:
    """
    A key constraint with its definition pre-rendered by the source engine.

    Attributes:
        namespace:  Schema the owning table lives in.
        table:      Owning table (local name).
        name:       Constraint name.
        kind:       :class:`ConstraintKind`.
        definition: ``pg_get_constraintdef()`` output, e.g. ``PRIMARY KEY (id)``.
    """
    namespace: str
    table: str
    name: str
    kind: ConstraintKind
    definition: str

    @property
    def is_foreign_key(self) -> bool:
        return self.kind == ConstraintKind.FOREIGN_KEY

    @property
    def sort_key(self) -> tuple[bool, str, str, str, str]:
        """Key used (descending) to order constraints for sequential application."""
        return (self.is_foreign_key, self.kind.value, self.namespace, self.table, self.name)


@dataclass(frozen=True)
class CheckConstraintRecord:
    """A CHECK constraint; ``clause`` is the source's rendered boolean expression."""
    namespace: str
    table: str
    name: str
    clause: str


@dataclass(frozen=True)
class SequenceDescriptor:
    """
    Numeric parameters of one sequence, as read from ``pg_sequences``.

    ``last_value`` is None when the sequence has never been advanced.
    """
    namespace: str
    name: str
    start_value: int
    increment: int
    min_value: int
    max_value: int
    cycle: bool = False
    last_value: int | None = None
    data_type: str = "int8"

    @property
    def restart_value(self) -> int:
        return self.start_value if self.last_value is None else self.last_value


@dataclass(frozen=True)
class TargetType:
    """
    Result of mapping a source type onto the target dialect.

    Attributes:
        literal:      Target type name, e.g. ``int`` or ``varchar(max)``.
        needs_length: True when a ``(N)`` suffix may be appended.
        is_fallback:  True when the source name was passed through unmapped.
    """
    literal: str
    needs_length: bool = True
    is_fallback: bool = False

    def render(self, length: int | None = None) -> str:
        if self.needs_length and length is not None:
            return f"{self.literal}({length})"
        return self.literal
