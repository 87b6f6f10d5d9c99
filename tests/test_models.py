"""
tests/test_models.py
--------------------
Unit tests for models/ and the provisioning seam.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from config import AppConfig, parse_delimiter
from core.provisioning import ExistingServerProvisioner, ProvisioningRequest
from models.catalog import (
    ColumnDescriptor,
    ConstraintKind,
    ConstraintRecord,
    SequenceDescriptor,
    TableDescriptor,
    TargetType,
    split_qualified_name,
)
from models.connection import SourceConnection, TargetConnection


class TestCatalogDescriptors:
    def test_split_qualified_name(self) -> None:
        assert split_qualified_name("sales.orders") == ("sales", "orders")
        assert split_qualified_name("orders") == ("public", "orders")

    def test_columns_stored_as_tuple(self) -> None:
        table = TableDescriptor("public", "t", [ColumnDescriptor("a", "int4")])
        assert isinstance(table.columns, tuple)

    def test_duplicate_column_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate column"):
            TableDescriptor("public", "t", (ColumnDescriptor("a", "int4"), ColumnDescriptor("a", "text")))

    def test_empty_names_rejected(self) -> None:
        with pytest.raises(ValueError):
            ColumnDescriptor("", "int4")
        with pytest.raises(ValueError):
            TableDescriptor("public", "")

    def test_constraint_sort_key_puts_foreign_keys_highest(self) -> None:
        fk = ConstraintRecord("a", "t", "fk", ConstraintKind.FOREIGN_KEY, "FOREIGN KEY (x) REFERENCES y(id)")
        pk = ConstraintRecord("z", "t", "pk", ConstraintKind.PRIMARY_KEY, "PRIMARY KEY (id)")
        assert fk.is_foreign_key
        assert fk.sort_key > pk.sort_key

    def test_sequence_restart_value(self) -> None:
        seq = SequenceDescriptor("public", "s", start_value=5, increment=1, min_value=1, max_value=10)
        assert seq.restart_value == 5
        used = SequenceDescriptor("public", "s", 5, 1, 1, 10, last_value=8)
        assert used.restart_value == 8

    def test_target_type_render(self) -> None:
        assert TargetType("char").render(50) == "char(50)"
        assert TargetType("char").render(None) == "char"
        assert TargetType("varchar(max)", needs_length=False).render(50) == "varchar(max)"


class TestConnections:
    def test_source_defaults(self) -> None:
        src = SourceConnection(host="h", database="d", user="u")
        assert src.port == 5432
        assert src.display() == "u@h:5432/d"

    def test_source_rejects_bad_port(self) -> None:
        with pytest.raises(ValidationError):
            SourceConnection(host="h", port=70000, database="d", user="u")

    def test_target_display_hides_password(self) -> None:
        tgt = TargetConnection(server="sql", database="db", user="sa", password="secret")
        assert tgt.server_address == "sql,1433"
        assert "secret" not in tgt.display()

    def test_from_config_overrides(self) -> None:
        src = SourceConnection.from_config(AppConfig(), password="pw", host="override", port=None)
        assert src.host == "override"
        assert src.port == AppConfig().source.port
        assert src.password == "pw"

    def test_target_password_out_of_band(self) -> None:
        tgt = TargetConnection(server="sql", database="shop", user="sa", password="pw")
        assert tgt.auth_args(include_password=False) == ["-U", "sa"]
        assert tgt.password_env() == {"SQLCMDPASSWORD": "pw"}
        trusted = TargetConnection(server="sql", database="shop", trusted_connection=True, password="pw")
        assert trusted.auth_args(include_password=False) == ["-T"]
        assert trusted.password_env() == {}


class TestProvisioning:
    def test_existing_server(self) -> None:
        conn = ExistingServerProvisioner().provision(
            ProvisioningRequest(server="sql", database="shop", user="sa", password="pw", schema_name="sales")
        )
        assert isinstance(conn, TargetConnection)
        assert conn.schema_name == "sales"
        assert conn.auth_args() == ["-U", "sa", "-P", "pw"]

    def test_invalid_request_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExistingServerProvisioner().provision(ProvisioningRequest(server="", database="shop"))


class TestConfig:
    @pytest.mark.parametrize("raw, expected", [("\\t", "\t"), ("tab", "\t"), (",", ","), ("|", "|")])
    def test_parse_delimiter(self, raw: str, expected: str) -> None:
        assert parse_delimiter(raw) == expected

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("BATCH_SIZE", "250")
        monkeypatch.setenv("MSSQL_SCHEMA", "sales")
        cfg = AppConfig()
        assert cfg.migration.batch_size == 250
        assert cfg.target.schema == "sales"
