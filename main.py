#!/usr/bin/env python3
"""
main.py
-------
Command-line entry point for the PostgreSQL → SQL Server migration tool.

Sub-commands map one-to-one onto the migration phases::

    pgmigrate export-schema       --mode {all,schema,data}
    pgmigrate export-constraints
    pgmigrate apply-schema
    pgmigrate load-data
    pgmigrate migrate             --mode {all,schema,data}

Connection defaults come from the environment (see ``config.py``);
passwords come from the flags, ``PGPASSWORD`` / ``MSSQL_PASSWORD``, or an
interactive prompt when a terminal is attached.
"""
from __future__ import annotations

import argparse
import getpass
import os
import sys
from typing import Sequence

from config import CONFIG, AppConfig, parse_delimiter
from core.artifacts import ArtifactLayout
from core.catalog import CatalogReader
from core.errors import MigrationToolError
from core.exporter import Exporter
from core.loader import Loader
from core.orchestrator import ALL_PHASES, MigrationMode, MigrationOrchestrator, Phase, PhaseReport
from core.provisioning import ExistingServerProvisioner, ProvisioningRequest
from core.schema_applier import SchemaApplier
from logger import get_logger, set_level
from models.connection import SourceConnection, TargetConnection

log = get_logger(__name__)

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_PHASE_ABORTED = 2

_COMMAND_PHASES: dict[str, tuple[Phase, ...]] = {
    "export-schema": (Phase.EXPORT_SCHEMA_AND_DATA,),
    "export-constraints": (Phase.EXPORT_CONSTRAINTS,),
    "apply-schema": (Phase.APPLY_SCHEMA,),
    "load-data": (Phase.LOAD_DATA,),
    "migrate": ALL_PHASES,
}

_NEEDS_SOURCE = {Phase.EXPORT_SCHEMA_AND_DATA, Phase.EXPORT_CONSTRAINTS}
_NEEDS_TARGET = {Phase.APPLY_SCHEMA, Phase.LOAD_DATA}


def build_parser(cfg: AppConfig = CONFIG) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgmigrate",
        description="Translate a PostgreSQL schema to SQL Server and move its data.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {cfg.app_version}")

    common = argparse.ArgumentParser(add_help=False)
    src = common.add_argument_group("source (PostgreSQL)")
    src.add_argument("--source-host", default=cfg.source.host)
    src.add_argument("--source-port", type=int, default=cfg.source.port)
    src.add_argument("--source-db", default=cfg.source.database)
    src.add_argument("--source-user", default=cfg.source.user)
    src.add_argument("--source-password", default=None)

    tgt = common.add_argument_group("target (SQL Server)")
    tgt.add_argument("--target-server", default=cfg.target.server)
    tgt.add_argument("--target-port", type=int, default=cfg.target.port)
    tgt.add_argument("--target-db", default=cfg.target.database)
    tgt.add_argument("--target-user", default=cfg.target.user)
    tgt.add_argument("--target-password", default=None)
    tgt.add_argument("--target-schema", default=cfg.target.schema)
    tgt.add_argument("--trusted", action="store_true", help="Use integrated authentication (-T).")

    paths = common.add_argument_group("artifacts")
    paths.add_argument("--script-dir", default=str(cfg.migration.script_dir))
    paths.add_argument("--data-dir", default=str(cfg.migration.data_dir))
    paths.add_argument("--data-extension", default=cfg.migration.data_extension)
    paths.add_argument("--delimiter", default=cfg.migration.field_delimiter,
                       help="Field delimiter; use '\\t' or 'tab' for tab.")

    run = common.add_argument_group("execution")
    run.add_argument("--batch-size", type=int, default=cfg.migration.batch_size)
    run.add_argument("--workers", type=int, default=cfg.migration.workers)
    run.add_argument("--timeout", type=float, default=cfg.tools.command_timeout,
                     help="Seconds allowed per external command.")
    run.add_argument("--log-level", default=None)

    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("export-schema", "Phase 1: write table DDL and/or export table data."),
        ("export-constraints", "Phase 2: write check constraints, keys and sequences."),
        ("apply-schema", "Phase 3: execute the generated scripts on the target."),
        ("load-data", "Phase 4: bulk load the exported data files."),
        ("migrate", "Run every phase in order."),
    ):
        cmd = sub.add_parser(name, parents=[common], help=help_text)
        if name in ("export-schema", "migrate"):
            cmd.add_argument(
                "--mode",
                choices=[m.value for m in MigrationMode],
                default=MigrationMode.ALL.value,
            )
    return parser


def _password(explicit: str | None, env_var: str, prompt: str) -> str:
    if explicit is not None:
        return explicit
    from_env = os.getenv(env_var)
    if from_env is not None:
        return from_env
    if sys.stdin.isatty():
        return getpass.getpass(prompt)
    return ""


def build_orchestrator(args: argparse.Namespace, phases: Sequence[Phase]) -> MigrationOrchestrator:
    """Wire the collaborators each requested phase needs."""
    cfg = CONFIG
    delimiter = parse_delimiter(args.delimiter)
    layout = ArtifactLayout(args.script_dir, args.data_dir, args.data_extension)
    mode = MigrationMode(getattr(args, "mode", MigrationMode.ALL.value))

    catalog = exporter = loader = applier = None

    if _NEEDS_SOURCE.intersection(phases):
        source = SourceConnection.from_config(
            cfg,
            password=_password(args.source_password, "PGPASSWORD", "PostgreSQL password: "),
            host=args.source_host,
            port=args.source_port,
            database=args.source_db,
            user=args.source_user,
        )
        catalog = CatalogReader(source)
        if Phase.EXPORT_SCHEMA_AND_DATA in phases and mode.includes_data:
            exporter = Exporter(source, cfg.tools.psql_path, delimiter, timeout=args.timeout)

    if _NEEDS_TARGET.intersection(phases):
        password = "" if args.trusted else _password(
            args.target_password, "MSSQL_PASSWORD", "SQL Server password: "
        )
        target: TargetConnection = ExistingServerProvisioner().provision(
            ProvisioningRequest(
                server=args.target_server,
                port=args.target_port,
                database=args.target_db,
                user=args.target_user,
                password=password,
                trusted_connection=args.trusted,
                schema_name=args.target_schema,
            )
        )
        applier = SchemaApplier(target, cfg.tools.sqlcmd_path, timeout=args.timeout)
        loader = Loader(target, cfg.tools.bcp_path, delimiter, args.batch_size, timeout=args.timeout)

    return MigrationOrchestrator(
        catalog=catalog,
        layout=layout,
        exporter=exporter,
        loader=loader,
        applier=applier,
        target_schema=args.target_schema,
        workers=args.workers,
    )


def print_reports(reports: Sequence[PhaseReport]) -> None:
    for report in reports:
        print(report.summary())
        for result in report.results:
            print(f"  {result}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    phases = _COMMAND_PHASES[args.command]
    mode = MigrationMode(getattr(args, "mode", MigrationMode.ALL.value))
    try:
        if args.log_level:
            set_level(args.log_level)
        orchestrator = build_orchestrator(args, phases)
        reports = orchestrator.run(phases, mode)
    except (MigrationToolError, ValueError) as exc:
        log.error("Command '%s' aborted: %s", args.command, exc)
        print(f"ERROR: {exc}", file=sys.stderr)
        return EXIT_PHASE_ABORTED

    print_reports(reports)
    return EXIT_OK if all(r.ok for r in reports) else EXIT_PARTIAL_FAILURE


if __name__ == "__main__":
    sys.exit(main())
