"""
config.py
---------
Centralised configuration management for the PostgreSQL → SQL Server
migration tool.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so the
configuration is immutable at runtime.

Passwords are deliberately absent: they are supplied per run on the command
line, through ``PGPASSWORD`` / ``MSSQL_PASSWORD``, or at an interactive prompt.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


def parse_delimiter(value: str) -> str:
    """Accept the escaped spelling ``\\t`` (as typed in a .env file) for a tab."""
    return "\t" if value in ("\\t", "tab") else value


@dataclass(frozen=True)
class SourceConfig:
    """PostgreSQL (source) connection settings."""
    host: str = field(default_factory=lambda: os.getenv("PG_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("PG_PORT", "5432")))
    database: str = field(default_factory=lambda: os.getenv("PG_DATABASE", "postgres"))
    user: str = field(default_factory=lambda: os.getenv("PG_USER", "postgres"))
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("PG_CONNECT_TIMEOUT", "10"))
    )
    statement_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("PG_STATEMENT_TIMEOUT_MS", "60000"))
    )


@dataclass(frozen=True)
class TargetConfig:
    """SQL Server (target) connection settings."""
    server: str = field(default_factory=lambda: os.getenv("MSSQL_SERVER", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("MSSQL_PORT", "1433")))
    database: str = field(default_factory=lambda: os.getenv("MSSQL_DATABASE", "master"))
    user: str = field(default_factory=lambda: os.getenv("MSSQL_USER", "sa"))
    schema: str = field(default_factory=lambda: os.getenv("MSSQL_SCHEMA", "dbo"))


@dataclass(frozen=True)
class ToolsConfig:
    """Locations of the external bulk/DDL utilities and their time limit."""
    psql_path: str = field(default_factory=lambda: os.getenv("PSQL_PATH", "psql"))
    bcp_path: str = field(default_factory=lambda: os.getenv("BCP_PATH", "bcp"))
    sqlcmd_path: str = field(default_factory=lambda: os.getenv("SQLCMD_PATH", "sqlcmd"))
    command_timeout: float = field(
        default_factory=lambda: float(os.getenv("COMMAND_TIMEOUT", "3600"))
    )


@dataclass(frozen=True)
class MigrationConfig:
    """Migration engine settings."""
    script_dir: Path = field(
        default_factory=lambda: Path(os.getenv("SCRIPT_DIR", "scripts"))
    )
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("DATA_DIR", "data"))
    )
    data_extension: str = field(
        default_factory=lambda: os.getenv("DATA_EXTENSION", "csv")
    )
    field_delimiter: str = field(
        default_factory=lambda: parse_delimiter(os.getenv("FIELD_DELIMITER", "\\t"))
    )
    batch_size: int = field(
        default_factory=lambda: int(os.getenv("BATCH_SIZE", "5000"))
    )
    workers: int = field(
        default_factory=lambda: int(os.getenv("WORKERS", "1"))
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    source: SourceConfig = field(default_factory=SourceConfig)
    target: TargetConfig = field(default_factory=TargetConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    app_name: str = "pgmigrate"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Example::

        cfg = load_config()
        print(cfg.source.host)            # "localhost"
        print(cfg.migration.batch_size)   # 5000
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
