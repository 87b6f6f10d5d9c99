"""
tests/test_ddl_generator.py
---------------------------
Unit tests for core/ddl_generator.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import re

import pytest

from core.ddl_generator import (
    order_constraints,
    quote_identifier,
    render_check_constraints,
    render_constraints,
    render_sequence,
    render_sequences,
    render_table,
)
from models.catalog import (
    CheckConstraintRecord,
    ColumnDescriptor,
    ConstraintKind,
    ConstraintRecord,
    SequenceDescriptor,
    TableDescriptor,
)

_GRAMMAR = re.compile(
    r'^Create Table "[^"]+"\."[^"]+"\('
    r'(?:"[^"]+" [^,]+? (?:NOT NULL|NULL) (?:, "[^"]+" [^,]+? (?:NOT NULL|NULL) )*)?'
    r"\)$"
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def customers() -> TableDescriptor:
    return TableDescriptor(
        schema="public",
        name="customers",
        columns=(
            ColumnDescriptor(name="id", udt_name="int4", data_type="integer", is_nullable=False),
            ColumnDescriptor(name="name", udt_name="text", data_type="text", is_nullable=True),
            ColumnDescriptor(
                name="created", udt_name="timestamptz",
                data_type="timestamp with time zone", is_nullable=False,
            ),
        ),
    )


def _constraint(kind: ConstraintKind, table: str, name: str, ns: str = "public") -> ConstraintRecord:
    definitions = {
        ConstraintKind.PRIMARY_KEY: "PRIMARY KEY (id)",
        ConstraintKind.FOREIGN_KEY: "FOREIGN KEY (customer_id) REFERENCES customers(id)",
        ConstraintKind.UNIQUE: "UNIQUE (email)",
        ConstraintKind.EXCLUSION: "EXCLUDE USING gist (room WITH =)",
    }
    return ConstraintRecord(namespace=ns, table=table, name=name, kind=kind,
                            definition=definitions[kind])


# ---------------------------------------------------------------------------
# render_table
# ---------------------------------------------------------------------------

class TestRenderTable:
    def test_customers_scenario(self, customers: TableDescriptor) -> None:
        assert render_table(customers) == (
            'Create Table "dbo"."customers"("id" int NOT NULL , '
            '"name" varchar(max) NULL , "created" datetime2 NOT NULL )'
        )

    def test_char_length_last_column(self) -> None:
        table = TableDescriptor(
            schema="public", name="codes",
            columns=(
                ColumnDescriptor(name="id", udt_name="int8", is_nullable=False),
                ColumnDescriptor(name="col", udt_name="bpchar", data_type="character", length=50),
            ),
        )
        ddl = render_table(table)
        assert ddl.endswith('"col" char(50) NULL )')
        assert ", )" not in ddl

    def test_zero_columns(self) -> None:
        ddl = render_table(TableDescriptor(schema="public", name="empty"))
        assert ddl == 'Create Table "dbo"."empty"()'

    def test_custom_target_schema(self, customers: TableDescriptor) -> None:
        assert render_table(customers, "sales").startswith('Create Table "sales"."customers"(')

    def test_source_schema_not_used(self, customers: TableDescriptor) -> None:
        assert "public" not in render_table(customers)

    @pytest.mark.parametrize("count", [0, 1, 2, 7])
    def test_grammar_no_dangling_comma(self, count: int) -> None:
        cols = tuple(
            ColumnDescriptor(name=f"c{i}", udt_name="numeric", is_nullable=bool(i % 2))
            for i in range(count)
        )
        ddl = render_table(TableDescriptor(schema="s", name="t", columns=cols))
        assert _GRAMMAR.match(ddl), ddl
        assert not ddl.rstrip(")").rstrip().endswith(",")

    def test_deterministic(self, customers: TableDescriptor) -> None:
        assert render_table(customers) == render_table(customers)

    def test_quoted_identifier_escaping(self) -> None:
        assert quote_identifier('we"ird') == '"we""ird"'


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------

class TestOrderConstraints:
    def test_foreign_keys_first(self) -> None:
        records = [
            _constraint(ConstraintKind.PRIMARY_KEY, "customers", "customers_pkey"),
            _constraint(ConstraintKind.FOREIGN_KEY, "orders", "orders_customer_fk"),
            _constraint(ConstraintKind.UNIQUE, "customers", "customers_email_key"),
        ]
        ordered = order_constraints(records)
        assert ordered[0].kind == ConstraintKind.FOREIGN_KEY
        # remaining kinds descending by code: u before p
        assert [r.kind for r in ordered[1:]] == [ConstraintKind.UNIQUE, ConstraintKind.PRIMARY_KEY]

    def test_descending_table_and_name(self) -> None:
        records = [
            _constraint(ConstraintKind.PRIMARY_KEY, "a", "a_pkey"),
            _constraint(ConstraintKind.PRIMARY_KEY, "b", "b_pkey"),
            _constraint(ConstraintKind.PRIMARY_KEY, "b", "b_alt"),
        ]
        assert [r.name for r in order_constraints(records)] == ["b_pkey", "b_alt", "a_pkey"]

    def test_stable_across_input_order(self) -> None:
        records = [
            _constraint(ConstraintKind.PRIMARY_KEY, "a", "a_pkey"),
            _constraint(ConstraintKind.FOREIGN_KEY, "b", "b_fk", ns="sales"),
            _constraint(ConstraintKind.UNIQUE, "c", "c_key"),
        ]
        assert render_constraints(records) == render_constraints(list(reversed(records)))


class TestRenderConstraints:
    def test_statement_shape(self) -> None:
        text = render_constraints([_constraint(ConstraintKind.PRIMARY_KEY, "customers", "customers_pkey")])
        assert text == 'ALTER TABLE "dbo"."customers" ADD CONSTRAINT "customers_pkey" PRIMARY KEY (id);'

    def test_exclusion_skipped(self) -> None:
        text = render_constraints([
            _constraint(ConstraintKind.EXCLUSION, "bookings", "no_overlap"),
            _constraint(ConstraintKind.PRIMARY_KEY, "bookings", "bookings_pkey"),
        ])
        assert "no_overlap" not in text
        assert "bookings_pkey" in text

    def test_newline_separated(self) -> None:
        text = render_constraints([
            _constraint(ConstraintKind.PRIMARY_KEY, "a", "a_pkey"),
            _constraint(ConstraintKind.PRIMARY_KEY, "b", "b_pkey"),
        ])
        assert len(text.splitlines()) == 2

    def test_empty(self) -> None:
        assert render_constraints([]) == ""


class TestRenderCheckConstraints:
    def test_wraps_clause(self) -> None:
        rec = CheckConstraintRecord(namespace="public", table="products", name="price_positive",
                                    clause="(price > 0)")
        assert render_check_constraints([rec], "dbo") == (
            'ALTER TABLE "dbo"."products" ADD CONSTRAINT "price_positive" CHECK((price > 0));'
        )

    def test_ordered_by_table_then_name(self) -> None:
        recs = [
            CheckConstraintRecord("public", "z", "b", "(x > 0)"),
            CheckConstraintRecord("public", "a", "c", "(x > 0)"),
            CheckConstraintRecord("public", "z", "a", "(x > 0)"),
        ]
        names = [line.split('"')[5] for line in render_check_constraints(recs).splitlines()]
        assert names == ["c", "a", "b"]


# ---------------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------------

class TestRenderSequence:
    @pytest.fixture
    def seq(self) -> SequenceDescriptor:
        return SequenceDescriptor(
            namespace="public", name="orders_id_seq", start_value=1, increment=1,
            min_value=1, max_value=9223372036854775807, cycle=False, last_value=42,
        )

    def test_two_statements(self, seq: SequenceDescriptor) -> None:
        create, restart = render_sequence(seq).splitlines()
        assert create.startswith('CREATE SEQUENCE "dbo"."orders_id_seq" AS bigint')
        assert "START WITH 1 INCREMENT BY 1 MINVALUE 1 MAXVALUE 9223372036854775807" in create
        assert create.endswith("NO CYCLE;")
        assert restart == 'ALTER SEQUENCE "dbo"."orders_id_seq" RESTART WITH 42;'

    def test_cycle(self, seq: SequenceDescriptor) -> None:
        cyc = SequenceDescriptor(**{**seq.__dict__, "cycle": True})
        assert render_sequence(cyc).splitlines()[0].endswith(" CYCLE;")
        assert "NO CYCLE" not in render_sequence(cyc)

    def test_never_used_restarts_at_start(self, seq: SequenceDescriptor) -> None:
        fresh = SequenceDescriptor(**{**seq.__dict__, "last_value": None, "start_value": 100})
        assert render_sequence(fresh).endswith("RESTART WITH 100;")

    def test_schema_is_explicit_per_call(self, seq: SequenceDescriptor) -> None:
        assert '"a"."orders_id_seq"' in render_sequence(seq, "a")
        assert '"b"."orders_id_seq"' in render_sequence(seq, "b")
        assert '"dbo"."orders_id_seq"' in render_sequence(seq)

    def test_int4_sequence_type(self, seq: SequenceDescriptor) -> None:
        small = SequenceDescriptor(**{**seq.__dict__, "data_type": "int4", "max_value": 2147483647})
        assert " AS int " in render_sequence(small)

    def test_render_sequences_concatenates(self, seq: SequenceDescriptor) -> None:
        other = SequenceDescriptor(**{**seq.__dict__, "name": "items_id_seq"})
        assert len(render_sequences([seq, other]).splitlines()) == 4
