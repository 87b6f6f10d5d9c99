"""
models/connection.py
--------------------
Connection parameter models for the source and target engines.

Validated with pydantic so bad ports, empty hosts or out-of-range timeouts
are rejected before any external utility or driver sees them.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

from config import AppConfig


class SourceConnection(BaseModel):
    """PostgreSQL connection parameters."""
    host: str = Field(min_length=1)
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: str = ""
    connect_timeout: int = Field(default=10, ge=1)
    statement_timeout_ms: int = Field(default=60000, ge=0)

    def display(self) -> str:
        """Connection string representation for logging (no password)."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_config(cls, cfg: AppConfig, password: str = "", **overrides) -> "SourceConnection":
        values = {
            "host": cfg.source.host,
            "port": cfg.source.port,
            "database": cfg.source.database,
            "user": cfg.source.user,
            "password": password,
            "connect_timeout": cfg.source.connect_timeout,
            "statement_timeout_ms": cfg.source.statement_timeout_ms,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class TargetConnection(BaseModel):
    """
    SQL Server connection parameters.

    When ``trusted_connection`` is set, ``user`` and ``password`` are ignored
    and the utilities authenticate with the current Windows/Kerberos identity.
    """
    server: str = Field(min_length=1)
    port: int = Field(default=1433, ge=1, le=65535)
    database: str = Field(min_length=1)
    user: str = ""
    password: str = ""
    trusted_connection: bool = False
    schema_name: str = Field(default="dbo", min_length=1)

    @property
    def server_address(self) -> str:
        """``server,port`` as understood by ``bcp -S`` and ``sqlcmd -S``."""
        return f"{self.server},{self.port}"

    def auth_args(self, include_password: bool = True) -> list[str]:
        """
        Authentication flags for bcp and sqlcmd.

        With ``include_password=False`` only ``-U`` is emitted; the caller
        supplies the password out of band (``SQLCMDPASSWORD`` for sqlcmd).
        """
        if self.trusted_connection:
            return ["-T"]
        if not include_password:
            return ["-U", self.user]
        return ["-U", self.user, "-P", self.password]

    def password_env(self) -> dict[str, str]:
        """Environment that carries the password to sqlcmd."""
        if self.trusted_connection or not self.password:
            return {}
        return {"SQLCMDPASSWORD": self.password}

    def display(self) -> str:
        who = "trusted" if self.trusted_connection else self.user
        return f"{who}@{self.server_address}/{self.database}"

    @classmethod
    def from_config(cls, cfg: AppConfig, password: str = "", **overrides) -> "TargetConnection":
        values = {
            "server": cfg.target.server,
            "port": cfg.target.port,
            "database": cfg.target.database,
            "user": cfg.target.user,
            "password": password,
            "schema_name": cfg.target.schema,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
