"""
core/ddl_generator.py
---------------------
Renders SQL Server DDL text from catalog descriptors.

    * Column lists are built as a list of fragments and joined, so there is
      never a trailing comma to strip.
    * The target schema is an explicit argument of every render call.
    * Output is deterministic: the same descriptors always render to the same
      bytes, which keeps re-runs of the export phase idempotent.
"""
from __future__ import annotations

from typing import Iterable

from core.type_mapper import map_column, map_type
from logger import get_logger
from models.catalog import (
    CheckConstraintRecord,
    ColumnDescriptor,
    ConstraintKind,
    ConstraintRecord,
    SequenceDescriptor,
    TableDescriptor,
)

log = get_logger(__name__)

DEFAULT_TARGET_SCHEMA = "dbo"

# Kinds SQL Server has no equivalent for
_UNRENDERABLE_KINDS = frozenset({ConstraintKind.EXCLUSION})


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling any embedded quote."""
    return '"' + name.replace('"', '""') + '"'


def qualify(schema: str, name: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(name)}"


def render_column(column: ColumnDescriptor) -> str:
    """
    Render one column fragment, e.g. ``"name" varchar(max) NULL ``.

    The trailing space is part of the fragment; fragments are joined with
    ``", "`` by :func:`render_table`.
    """
    nullability = "NULL" if column.is_nullable else "NOT NULL"
    return f"{quote_identifier(column.name)} {map_column(column)} {nullability} "


def render_table(table: TableDescriptor, target_schema: str = DEFAULT_TARGET_SCHEMA) -> str:
    """
    Render the ``CREATE TABLE`` statement for *table* under *target_schema*.

    A table with no columns renders with an empty body, ``"dbo"."t"()``,
    rather than failing.

    Example::

        Create Table "dbo"."customers"("id" int NOT NULL , "name" varchar(max) NULL )
    """
    fragments = [render_column(col) for col in table.columns]
    if not fragments:
        log.warning("Table '%s' has no columns; rendering an empty body.", table.qualified_name)
    body = ", ".join(fragments)
    return f"Create Table {qualify(target_schema, table.name)}({body})"


def order_constraints(records: Iterable[ConstraintRecord]) -> list[ConstraintRecord]:
    """
    Order constraints for sequential application.

    Sorted descending on (is foreign key, kind code, namespace, table, name):
    foreign keys first, then by kind code, namespace, table and constraint
    name, each descending. Stable and deterministic.
    """
    return sorted(records, key=lambda r: r.sort_key, reverse=True)


def render_constraint(record: ConstraintRecord, target_schema: str = DEFAULT_TARGET_SCHEMA) -> str:
    return (
        f"ALTER TABLE {qualify(target_schema, record.table)} "
        f"ADD CONSTRAINT {quote_identifier(record.name)} {record.definition};"
    )


def render_constraints(
    records: Iterable[ConstraintRecord],
    target_schema: str = DEFAULT_TARGET_SCHEMA,
) -> str:
    """
    Assemble primary/foreign/unique key statements, one per line.

    Exclusion constraints are skipped (and logged); they have no target
    equivalent.
    """
    lines: list[str] = []
    for record in order_constraints(records):
        if record.kind in _UNRENDERABLE_KINDS:
            log.warning(
                "Skipping %s constraint '%s' on '%s.%s': no SQL Server equivalent.",
                record.kind.name.lower(), record.name, record.namespace, record.table,
            )
            continue
        lines.append(render_constraint(record, target_schema))
    return "\n".join(lines)


def render_check_constraint(
    record: CheckConstraintRecord, target_schema: str = DEFAULT_TARGET_SCHEMA
) -> str:
    return (
        f"ALTER TABLE {qualify(target_schema, record.table)} "
        f"ADD CONSTRAINT {quote_identifier(record.name)} CHECK({record.clause});"
    )


def render_check_constraints(
    records: Iterable[CheckConstraintRecord],
    target_schema: str = DEFAULT_TARGET_SCHEMA,
) -> str:
    """Wrap each check clause in its own ``ALTER TABLE … ADD CONSTRAINT … CHECK(…)``."""
    ordered = sorted(records, key=lambda r: (r.namespace, r.table, r.name))
    return "\n".join(render_check_constraint(r, target_schema) for r in ordered)


def render_sequence(
    sequence: SequenceDescriptor, target_schema: str = DEFAULT_TARGET_SCHEMA
) -> str:
    """
    Render the two statements for one sequence: create, then restart at the
    source's current value.

    Example::

        CREATE SEQUENCE "dbo"."orders_id_seq" AS bigint START WITH 1 INCREMENT BY 1
            MINVALUE 1 MAXVALUE 9223372036854775807 NO CYCLE;
        ALTER SEQUENCE "dbo"."orders_id_seq" RESTART WITH 42;

    (The create statement is emitted on a single line.)
    """
    name = qualify(target_schema, sequence.name)
    as_type = map_type(sequence.data_type).literal
    cycle = "CYCLE" if sequence.cycle else "NO CYCLE"
    create = (
        f"CREATE SEQUENCE {name} AS {as_type} "
        f"START WITH {sequence.start_value} "
        f"INCREMENT BY {sequence.increment} "
        f"MINVALUE {sequence.min_value} "
        f"MAXVALUE {sequence.max_value} "
        f"{cycle};"
    )
    restart = f"ALTER SEQUENCE {name} RESTART WITH {sequence.restart_value};"
    return f"{create}\n{restart}"


def render_sequences(
    sequences: Iterable[SequenceDescriptor],
    target_schema: str = DEFAULT_TARGET_SCHEMA,
) -> str:
    return "\n".join(render_sequence(s, target_schema) for s in sequences)
