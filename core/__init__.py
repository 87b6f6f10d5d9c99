"""core/__init__.py"""
from core.errors import MigrationToolError
from core.catalog import CatalogReader, CatalogError, CatalogConnectionError, QueryError
from core.type_mapper import map_type, map_column, is_known_type, UnmappedTypeWarning
from core.ddl_generator import (
    render_table,
    render_constraints,
    render_check_constraints,
    render_sequence,
    render_sequences,
    order_constraints,
)
from core.process import run_command, ProcessResult, ExternalProcessError
from core.artifacts import ArtifactLayout, FileSystemError
from core.exporter import Exporter, ExportResult
from core.loader import Loader, LoadResult, table_for_file
from core.schema_applier import SchemaApplier
from core.provisioning import ExistingServerProvisioner, ProvisioningRequest, TargetProvisioner
from core.orchestrator import (
    MigrationOrchestrator,
    MigrationMode,
    Phase,
    PhaseReport,
    ObjectResult,
    ALL_PHASES,
)

__all__ = [
    "MigrationToolError",
    "CatalogReader",
    "CatalogError",
    "CatalogConnectionError",
    "QueryError",
    "map_type",
    "map_column",
    "is_known_type",
    "UnmappedTypeWarning",
    "render_table",
    "render_constraints",
    "render_check_constraints",
    "render_sequence",
    "render_sequences",
    "order_constraints",
    "run_command",
    "ProcessResult",
    "ExternalProcessError",
    "ArtifactLayout",
    "FileSystemError",
    "Exporter",
    "ExportResult",
    "Loader",
    "LoadResult",
    "table_for_file",
    "SchemaApplier",
    "ExistingServerProvisioner",
    "ProvisioningRequest",
    "TargetProvisioner",
    "MigrationOrchestrator",
    "MigrationMode",
    "Phase",
    "PhaseReport",
    "ObjectResult",
    "ALL_PHASES",
]
