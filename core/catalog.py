"""
core/catalog.py
---------------
Reads the PostgreSQL catalog: base tables, columns, key constraints, check
constraints and sequences.

    * A fresh connection is opened for every catalog query and closed right
      after it; nothing is pooled or shared between queries or phases.
    * Every connection carries ``connect_timeout`` and a server-side
      ``statement_timeout`` so a stuck source cannot hang the run.
    * Queries are fixed text; the only runtime values (schema and table
      names) are passed as parameters, never interpolated.
    * No retries. Connection failures raise :class:`CatalogConnectionError`;
      anything that goes wrong while a query runs raises :class:`QueryError`.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import psycopg2
from psycopg2.extras import RealDictCursor

from core.errors import MigrationToolError
from logger import get_logger
from models.catalog import (
    CheckConstraintRecord,
    ColumnDescriptor,
    ConstraintKind,
    ConstraintRecord,
    SequenceDescriptor,
    TableDescriptor,
    split_qualified_name,
)
from models.connection import SourceConnection

log = get_logger(__name__)

SYSTEM_SCHEMAS = ("pg_catalog", "information_schema")

LIST_TABLES_SQL = """
SELECT table_schema, table_name
FROM information_schema.tables
WHERE table_type = 'BASE TABLE'
  AND table_schema NOT IN %(system_schemas)s
  AND table_schema NOT LIKE 'pg_toast%%'
ORDER BY table_schema, table_name
"""

LIST_COLUMNS_SQL = """
SELECT column_name, udt_name, data_type, is_nullable,
       character_maximum_length, column_default
FROM information_schema.columns
WHERE table_schema = %(schema)s AND table_name = %(table)s
ORDER BY ordinal_position
"""

LIST_CONSTRAINTS_SQL = """
SELECT n.nspname AS namespace, c.relname AS table_name, con.conname,
       con.contype, pg_get_constraintdef(con.oid) AS definition
FROM pg_constraint con
JOIN pg_class c ON con.conrelid = c.oid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE con.contype IN ('p', 'f', 'u', 'x')
  AND n.nspname NOT IN %(system_schemas)s
ORDER BY CASE WHEN con.contype = 'f' THEN 1 ELSE 0 END DESC,
         con.contype DESC, n.nspname DESC, c.relname DESC, con.conname DESC
"""

LIST_CHECK_CONSTRAINTS_SQL = """
SELECT tc.table_schema, tc.table_name, cc.constraint_name, cc.check_clause
FROM information_schema.check_constraints cc
JOIN information_schema.table_constraints tc
  ON tc.constraint_schema = cc.constraint_schema
 AND tc.constraint_name = cc.constraint_name
WHERE tc.constraint_type = 'CHECK'
  AND tc.table_schema NOT IN %(system_schemas)s
  AND cc.constraint_name NOT LIKE '%%\\_not\\_null'
ORDER BY tc.table_schema, tc.table_name, cc.constraint_name
"""

LIST_SEQUENCES_SQL = """
SELECT schemaname, sequencename, data_type::text AS data_type,
       start_value, increment_by, min_value, max_value, cycle, last_value
FROM pg_sequences
WHERE schemaname NOT IN %(system_schemas)s
ORDER BY schemaname, sequencename
"""


class CatalogError(MigrationToolError):
    """Base class for catalog read failures."""


class CatalogConnectionError(CatalogError):
    """The source database is unreachable or rejected the credentials."""


class QueryError(CatalogError):
    """A catalog query failed to execute."""


class CatalogReader:
    """
    Read-only view over the source catalog.

    Example::

        reader = CatalogReader(SourceConnection(host="pg", database="shop", user="etl"))
        for name in reader.list_tables():
            table = reader.get_table(name)
    """

    def __init__(self, connection: SourceConnection) -> None:
        self._conn_params = connection

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _connect(self):
        params = self._conn_params
        try:
            return psycopg2.connect(
                host=params.host,
                port=params.port,
                dbname=params.database,
                user=params.user,
                password=params.password,
                connect_timeout=params.connect_timeout,
                options=f"-c statement_timeout={params.statement_timeout_ms}",
            )
        except psycopg2.Error as exc:
            log.error("Cannot connect to source %s: %s", params.display(), exc)
            raise CatalogConnectionError(
                f"Could not connect to PostgreSQL at {params.display()}: {exc}"
            ) from exc

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._connect()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                yield cur
        finally:
            conn.close()

    def _query(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run one catalog query on its own connection and return all rows."""
        with self._cursor() as cur:
            try:
                cur.execute(sql, params)
                return list(cur.fetchall())
            except psycopg2.Error as exc:
                log.error("Catalog query failed: %s | SQL: %.200s", exc, sql.strip())
                raise QueryError(str(exc).strip()) from exc

    # ------------------------------------------------------------------
    # Catalog operations
    # ------------------------------------------------------------------

    def list_tables(self) -> list[str]:
        """Return qualified (``schema.table``) names of all user base tables."""
        rows = self._query(LIST_TABLES_SQL, {"system_schemas": SYSTEM_SCHEMAS})
        tables = [f"{r['table_schema']}.{r['table_name']}" for r in rows]
        log.info("Found %d base table(s) in %s.", len(tables), self._conn_params.database)
        return tables

    def get_table(self, qualified_name: str) -> TableDescriptor:
        """
        Return the table's columns in ordinal order.

        Args:
            qualified_name: ``schema.table``; a bare name means ``public``.
        """
        schema, table = split_qualified_name(qualified_name)
        rows = self._query(LIST_COLUMNS_SQL, {"schema": schema, "table": table})
        columns = tuple(
            ColumnDescriptor(
                name=r["column_name"],
                udt_name=r["udt_name"],
                data_type=r["data_type"] or "",
                is_nullable=str(r["is_nullable"]).upper() == "YES",
                length=r["character_maximum_length"],
                default=r["column_default"],
            )
            for r in rows
        )
        log.debug("Read %d column(s) for %s.%s.", len(columns), schema, table)
        return TableDescriptor(schema=schema, name=table, columns=columns)

    def list_constraints(self) -> list[ConstraintRecord]:
        """Return primary/foreign/unique/exclusion constraints with rendered definitions."""
        rows = self._query(LIST_CONSTRAINTS_SQL, {"system_schemas": SYSTEM_SCHEMAS})
        return [
            ConstraintRecord(
                namespace=r["namespace"],
                table=r["table_name"],
                name=r["conname"],
                kind=ConstraintKind(r["contype"]),
                definition=r["definition"],
            )
            for r in rows
        ]

    def list_check_constraints(self) -> list[CheckConstraintRecord]:
        """Return user CHECK constraints (NOT NULL checks excluded)."""
        rows = self._query(LIST_CHECK_CONSTRAINTS_SQL, {"system_schemas": SYSTEM_SCHEMAS})
        return [
            CheckConstraintRecord(
                namespace=r["table_schema"],
                table=r["table_name"],
                name=r["constraint_name"],
                clause=r["check_clause"],
            )
            for r in rows
        ]

    def list_sequences(self) -> list[SequenceDescriptor]:
        """Return every user sequence with its numeric parameters."""
        rows = self._query(LIST_SEQUENCES_SQL, {"system_schemas": SYSTEM_SCHEMAS})
        return [
            SequenceDescriptor(
                namespace=r["schemaname"],
                name=r["sequencename"],
                data_type=_sequence_udt(r["data_type"]),
                start_value=int(r["start_value"]),
                increment=int(r["increment_by"]),
                min_value=int(r["min_value"]),
                max_value=int(r["max_value"]),
                cycle=bool(r["cycle"]),
                last_value=None if r["last_value"] is None else int(r["last_value"]),
            )
            for r in rows
        ]


# pg_sequences reports regtype names; the type mapper works on udt names
_SEQUENCE_TYPE_UDTS = {"bigint": "int8", "integer": "int4", "smallint": "int2"}


def _sequence_udt(type_name: str | None) -> str:
    return _SEQUENCE_TYPE_UDTS.get((type_name or "bigint").lower(), type_name or "int8")
