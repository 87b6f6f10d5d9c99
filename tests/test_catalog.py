"""
tests/test_catalog.py
---------------------
Unit tests for core/catalog.py using a mocked psycopg2 connection.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from core.catalog import (
    CatalogConnectionError,
    CatalogReader,
    QueryError,
    SYSTEM_SCHEMAS,
)
from models.catalog import ConstraintKind
from models.connection import SourceConnection


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def source() -> SourceConnection:
    return SourceConnection(host="pg.local", database="shop", user="etl", password="pw",
                            connect_timeout=5, statement_timeout_ms=1000)


def _fake_connection(rows: list[dict] | None = None, execute_error: Exception | None = None) -> MagicMock:
    cursor = MagicMock()
    cursor.fetchall.return_value = rows or []
    if execute_error is not None:
        cursor.execute.side_effect = execute_error
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False
    conn.cursor_mock = cursor
    return conn


@pytest.fixture
def connect():
    with patch("core.catalog.psycopg2.connect") as mock_connect:
        yield mock_connect


# ---------------------------------------------------------------------------
# Connection handling
# ---------------------------------------------------------------------------

class TestConnection:
    def test_connect_params_include_timeouts(self, connect, source: SourceConnection) -> None:
        connect.return_value = _fake_connection([])
        CatalogReader(source).list_tables()
        kwargs = connect.call_args.kwargs
        assert kwargs["host"] == "pg.local"
        assert kwargs["dbname"] == "shop"
        assert kwargs["connect_timeout"] == 5
        assert "statement_timeout=1000" in kwargs["options"]

    def test_one_connection_per_query(self, connect, source: SourceConnection) -> None:
        conns = [_fake_connection([]), _fake_connection([])]
        connect.side_effect = conns
        reader = CatalogReader(source)
        reader.list_tables()
        reader.list_sequences()
        assert connect.call_count == 2
        for conn in conns:
            conn.close.assert_called_once()

    def test_connection_failure(self, connect, source: SourceConnection) -> None:
        connect.side_effect = psycopg2.OperationalError("password authentication failed")
        with pytest.raises(CatalogConnectionError, match="pg.local"):
            CatalogReader(source).list_tables()

    def test_query_failure(self, connect, source: SourceConnection) -> None:
        conn = _fake_connection(execute_error=psycopg2.ProgrammingError("relation does not exist"))
        connect.return_value = conn
        with pytest.raises(QueryError, match="relation does not exist"):
            CatalogReader(source).list_tables()
        conn.close.assert_called_once()


# ---------------------------------------------------------------------------
# Catalog operations
# ---------------------------------------------------------------------------

class TestListTables:
    def test_qualified_names(self, connect, source: SourceConnection) -> None:
        connect.return_value = _fake_connection([
            {"table_schema": "public", "table_name": "customers"},
            {"table_schema": "sales", "table_name": "orders"},
        ])
        assert CatalogReader(source).list_tables() == ["public.customers", "sales.orders"]

    def test_excludes_system_schemas(self, connect, source: SourceConnection) -> None:
        conn = _fake_connection([])
        connect.return_value = conn
        CatalogReader(source).list_tables()
        sql, params = conn.cursor_mock.execute.call_args.args
        assert "BASE TABLE" in sql
        assert params["system_schemas"] == SYSTEM_SCHEMAS


class TestGetTable:
    def test_columns_in_order(self, connect, source: SourceConnection) -> None:
        conn = _fake_connection([
            {"column_name": "id", "udt_name": "int4", "data_type": "integer",
             "is_nullable": "NO", "character_maximum_length": None, "column_default": "nextval('x')"},
            {"column_name": "code", "udt_name": "bpchar", "data_type": "character",
             "is_nullable": "YES", "character_maximum_length": 50, "column_default": None},
        ])
        connect.return_value = conn
        table = CatalogReader(source).get_table("sales.items")

        assert table.qualified_name == "sales.items"
        assert [c.name for c in table.columns] == ["id", "code"]
        assert table.columns[0].is_nullable is False
        assert table.columns[1].length == 50
        assert table.columns[0].default == "nextval('x')"
        _, params = conn.cursor_mock.execute.call_args.args
        assert params == {"schema": "sales", "table": "items"}

    def test_unqualified_is_public(self, connect, source: SourceConnection) -> None:
        conn = _fake_connection([])
        connect.return_value = conn
        table = CatalogReader(source).get_table("items")
        assert table.schema == "public"
        assert table.columns == ()


class TestConstraints:
    def test_constraint_records(self, connect, source: SourceConnection) -> None:
        connect.return_value = _fake_connection([
            {"namespace": "public", "table_name": "orders", "conname": "orders_customer_fk",
             "contype": "f", "definition": "FOREIGN KEY (customer_id) REFERENCES customers(id)"},
            {"namespace": "public", "table_name": "orders", "conname": "orders_pkey",
             "contype": "p", "definition": "PRIMARY KEY (id)"},
        ])
        records = CatalogReader(source).list_constraints()
        assert [r.kind for r in records] == [ConstraintKind.FOREIGN_KEY, ConstraintKind.PRIMARY_KEY]
        assert records[1].definition == "PRIMARY KEY (id)"

    def test_check_constraints(self, connect, source: SourceConnection) -> None:
        connect.return_value = _fake_connection([
            {"table_schema": "public", "table_name": "products",
             "constraint_name": "price_positive", "check_clause": "((price > (0)::numeric))"},
        ])
        (record,) = CatalogReader(source).list_check_constraints()
        assert record.table == "products"
        assert record.clause == "((price > (0)::numeric))"


class TestSequences:
    def test_sequence_descriptor(self, connect, source: SourceConnection) -> None:
        connect.return_value = _fake_connection([
            {"schemaname": "public", "sequencename": "orders_id_seq", "data_type": "bigint",
             "start_value": 1, "increment_by": 1, "min_value": 1,
             "max_value": 9223372036854775807, "cycle": False, "last_value": 42},
            {"schemaname": "public", "sequencename": "unused_seq", "data_type": "integer",
             "start_value": 10, "increment_by": 5, "min_value": 1,
             "max_value": 2147483647, "cycle": True, "last_value": None},
        ])
        used, unused = CatalogReader(source).list_sequences()
        assert used.last_value == 42
        assert used.data_type == "int8"
        assert unused.last_value is None
        assert unused.restart_value == 10
        assert unused.data_type == "int4"
        assert unused.cycle is True
