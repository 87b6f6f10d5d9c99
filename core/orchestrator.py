"""
core/orchestrator.py
--------------------
Sequences a migration into four ordered phases::

    1. EXPORT_SCHEMA_AND_DATA  – one CREATE TABLE script per table, plus the
                                 per-table data export.
    2. EXPORT_CONSTRAINTS      – check constraints, keys and sequences written
                                 to their fixed-name files.
    3. APPLY_SCHEMA            – every script executed against the target in
                                 directory-then-filename order.
    4. LOAD_DATA               – every exported data file bulk loaded.

    * The engine is a plain class with injected collaborators; no global state.
    * Each phase reads only the artifact tree written by earlier phases, so any
      phase can be re-run on its own.
    * Per-object failures (one table, one script, one file) are caught,
      logged and recorded in the :class:`PhaseReport`; the batch carries on.
      Per-phase failures (no output directory, source unreachable) propagate.
    * Nothing is retried and nothing is rolled back. Re-applying DDL fails
      loudly on objects that already exist.
    * With ``workers > 1`` table exports and file loads run on a thread pool.
      Phases remain strict barriers.
"""
from __future__ import annotations

import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, TypeVar

from core.artifacts import ArtifactLayout
from core.catalog import CatalogConnectionError, CatalogReader
from core.ddl_generator import (
    DEFAULT_TARGET_SCHEMA,
    render_check_constraints,
    render_constraints,
    render_sequences,
    render_table,
)
from core.errors import MigrationToolError
from core.exporter import Exporter
from core.loader import Loader
from core.schema_applier import SchemaApplier
from core.type_mapper import UnmappedTypeWarning, unmapped_columns
from logger import get_logger

log = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]  # message, current, total

_T = TypeVar("_T")


class Phase(str, Enum):
    EXPORT_SCHEMA_AND_DATA = "export_schema_and_data"
    EXPORT_CONSTRAINTS = "export_constraints"
    APPLY_SCHEMA = "apply_schema"
    LOAD_DATA = "load_data"


ALL_PHASES: tuple[Phase, ...] = tuple(Phase)


class MigrationMode(str, Enum):
    """Which half of phase 1 to run: both, DDL only, or data only."""
    ALL = "all"
    SCHEMA = "schema"
    DATA = "data"

    @property
    def includes_schema(self) -> bool:
        return self in (MigrationMode.ALL, MigrationMode.SCHEMA)

    @property
    def includes_data(self) -> bool:
        return self in (MigrationMode.ALL, MigrationMode.DATA)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ObjectResult:
    """Outcome of one unit of work (a table, a script, a data file)."""
    name: str
    kind: str
    success: bool
    path: Path | None = None
    rows: int | None = None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        line = f"[{status}] {self.kind} {self.name}"
        if self.rows is not None:
            line += f": {self.rows} rows"
        parts = [line]
        if self.warnings:
            parts.append(f"  Warnings: {'; '.join(self.warnings)}")
        if self.errors:
            parts.append(f"  Errors: {'; '.join(self.errors)}")
        return "\n".join(parts)


@dataclass
class PhaseReport:
    """Everything one phase did, object by object."""
    phase: Phase
    results: list[ObjectResult] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def succeeded(self) -> list[ObjectResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ObjectResult]:
        return [r for r in self.results if not r.success]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"{self.phase.value}: {len(self.succeeded)} succeeded, "
            f"{len(self.failed)} failed ({self.elapsed_seconds:.2f}s)"
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class MigrationOrchestrator:
    """
    Runs the migration phases.

    Args:
        catalog:       Source :class:`CatalogReader` (phases 1 and 2).
        layout:        Artifact tree shared by every phase.
        exporter:      Needed when phase 1 exports data.
        loader:        Needed for phase 4.
        applier:       Needed for phase 3.
        target_schema: Schema every generated statement is qualified with.
        workers:       Parallelism for table exports and file loads.
        progress_cb:   Optional ``(message, current, total)`` callback.

    Example::

        orch = MigrationOrchestrator(catalog=reader, layout=layout, exporter=exporter)
        report = orch.export_schema_and_data(MigrationMode.SCHEMA)
        print(report.summary())
    """

    def __init__(
        self,
        catalog: CatalogReader | None,
        layout: ArtifactLayout,
        exporter: Exporter | None = None,
        loader: Loader | None = None,
        applier: SchemaApplier | None = None,
        target_schema: str = DEFAULT_TARGET_SCHEMA,
        workers: int = 1,
        progress_cb: ProgressCallback | None = None,
    ) -> None:
        self._catalog = catalog
        self._layout = layout
        self._exporter = exporter
        self._loader = loader
        self._applier = applier
        self._target_schema = target_schema
        self._workers = max(1, workers)
        self._progress_cb = progress_cb or self._default_progress

    @staticmethod
    def _default_progress(msg: str, current: int, total: int) -> None:
        log.info("%s (%d/%s)", msg, current, total if total else "?")

    def _progress(self, msg: str, current: int = 0, total: int = 0) -> None:
        self._progress_cb(msg, current, total)

    def _require(self, collaborator, name: str, phase: Phase):
        if collaborator is None:
            raise MigrationToolError(f"Phase '{phase.value}' needs a {name}, but none was configured.")
        return collaborator

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def export_schema_and_data(self, mode: MigrationMode = MigrationMode.ALL) -> PhaseReport:
        """
        Write one ``CREATE TABLE`` script per source table and/or export each
        table's rows.

        Raises:
            FileSystemError:        Output directories cannot be created.
            CatalogConnectionError: The source cannot be reached at all.
        """
        phase = Phase.EXPORT_SCHEMA_AND_DATA
        catalog = self._require(self._catalog, "catalog reader", phase)
        exporter = self._require(self._exporter, "exporter", phase) if mode.includes_data else None
        start = time.monotonic()
        report = PhaseReport(phase=phase)

        if mode.includes_schema:
            self._layout.ensure_script_dirs()
        if mode.includes_data:
            self._layout.ensure_data_dir()

        tables = catalog.list_tables()
        total = len(tables)

        if mode.includes_schema:
            for index, name in enumerate(tables, start=1):
                self._progress(f"Generating DDL for {name}", index, total)
                report.results.append(self._export_table_schema(catalog, name))

        if mode.includes_data:
            report.results.extend(
                self._map(lambda name: self._export_table_data(exporter, name), tables)
            )

        report.elapsed_seconds = time.monotonic() - start
        log.info("Phase %s", report.summary())
        return report

    def _export_table_schema(self, catalog: CatalogReader, name: str) -> ObjectResult:
        start = time.monotonic()
        result = ObjectResult(name=name, kind="table", success=False)
        try:
            table = catalog.get_table(name)
            for col in unmapped_columns(table.columns):
                msg = (
                    f"Column '{name}.{col.name}' has unmapped type '{col.udt_name}'; "
                    f"passed through unchanged."
                )
                log.warning(msg)
                warnings.warn(msg, UnmappedTypeWarning, stacklevel=2)
                result.warnings.append(msg)
            ddl = render_table(table, self._target_schema)
            result.path = self._layout.write_script(self._layout.table_script(name), ddl)
            result.success = True
        except CatalogConnectionError:
            raise
        except MigrationToolError as exc:
            result.errors.append(str(exc))
            log.error("[%s] DDL export failed for '%s': %s", Phase.EXPORT_SCHEMA_AND_DATA.value, name, exc)
        result.elapsed_seconds = time.monotonic() - start
        return result

    def _export_table_data(self, exporter: Exporter, name: str) -> ObjectResult:
        result = ObjectResult(name=name, kind="data", success=False)
        destination = self._layout.data_file(name)
        try:
            exported = exporter.export_table(name, destination)
            result.path = exported.path
            result.rows = exported.rows_exported
            result.elapsed_seconds = exported.elapsed_seconds
            result.success = True
        except MigrationToolError as exc:
            result.errors.append(str(exc))
            log.error("[%s] Data export failed for '%s': %s", Phase.EXPORT_SCHEMA_AND_DATA.value, name, exc)
        return result

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def export_constraints(self) -> PhaseReport:
        """
        Write the check-constraint, key and sequence scripts.

        A query failure in one step is recorded and the next step runs; a
        source that cannot be reached raises :class:`CatalogConnectionError`.
        """
        phase = Phase.EXPORT_CONSTRAINTS
        catalog = self._require(self._catalog, "catalog reader", phase)
        start = time.monotonic()
        report = PhaseReport(phase=phase)
        self._layout.ensure_script_dirs()

        steps: list[tuple[str, Path, Callable[[], str]]] = [
            (
                "check constraints",
                self._layout.check_constraints_script,
                lambda: render_check_constraints(catalog.list_check_constraints(), self._target_schema),
            ),
            (
                "keys",
                self._layout.keys_script,
                lambda: render_constraints(catalog.list_constraints(), self._target_schema),
            ),
            (
                "sequences",
                self._layout.sequences_script,
                lambda: render_sequences(catalog.list_sequences(), self._target_schema),
            ),
        ]
        for index, (label, path, render) in enumerate(steps, start=1):
            self._progress(f"Exporting {label}", index, len(steps))
            result = ObjectResult(name=path.name, kind=label, success=False)
            t0 = time.monotonic()
            try:
                result.path = self._layout.write_script(path, render())
                result.success = True
            except CatalogConnectionError:
                raise
            except MigrationToolError as exc:
                result.errors.append(str(exc))
                log.error("[%s] Export of %s failed: %s", phase.value, label, exc)
            result.elapsed_seconds = time.monotonic() - t0
            report.results.append(result)

        report.elapsed_seconds = time.monotonic() - start
        log.info("Phase %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # Phase 3
    # ------------------------------------------------------------------

    def apply_schema(self) -> PhaseReport:
        """
        Execute every script under the script tree, tables first, then
        constraints, then sequences.

        Scripts run one at a time; a failing script is recorded and the next
        one still runs.
        """
        phase = Phase.APPLY_SCHEMA
        applier = self._require(self._applier, "schema applier", phase)
        start = time.monotonic()
        report = PhaseReport(phase=phase)

        scripts = self._layout.schema_scripts()
        for index, script in enumerate(scripts, start=1):
            self._progress(f"Applying {script.name}", index, len(scripts))
            result = ObjectResult(name=str(script.relative_to(self._layout.script_dir)), kind="script",
                                  success=False, path=script)
            t0 = time.monotonic()
            try:
                applier.apply_script(script)
                result.success = True
            except MigrationToolError as exc:
                result.errors.append(str(exc))
                log.error("[%s] Script '%s' failed: %s", phase.value, script, exc)
            result.elapsed_seconds = time.monotonic() - t0
            report.results.append(result)

        report.elapsed_seconds = time.monotonic() - start
        log.info("Phase %s", report.summary())
        return report

    # ------------------------------------------------------------------
    # Phase 4
    # ------------------------------------------------------------------

    def load_data(self) -> PhaseReport:
        """Bulk load every data file into its matching target table."""
        phase = Phase.LOAD_DATA
        loader = self._require(self._loader, "loader", phase)
        start = time.monotonic()
        report = PhaseReport(phase=phase)

        files = self._layout.data_files()
        report.results.extend(self._map(lambda path: self._load_file(loader, path), files))

        report.elapsed_seconds = time.monotonic() - start
        log.info("Phase %s", report.summary())
        return report

    def _load_file(self, loader: Loader, path: Path) -> ObjectResult:
        result = ObjectResult(name=path.name, kind="load", success=False, path=path)
        try:
            loaded = loader.load_file(path)
            result.rows = loaded.rows_loaded
            result.elapsed_seconds = loaded.elapsed_seconds
            result.success = True
        except MigrationToolError as exc:
            result.errors.append(str(exc))
            log.error("[%s] Load of '%s' failed: %s", Phase.LOAD_DATA.value, path, exc)
        return result

    # ------------------------------------------------------------------
    # Whole run
    # ------------------------------------------------------------------

    def run(
        self,
        phases: Iterable[Phase] = ALL_PHASES,
        mode: MigrationMode = MigrationMode.ALL,
    ) -> list[PhaseReport]:
        """
        Run the requested phases in their canonical order.

        In ``schema`` mode the data phases are skipped; in ``data`` mode only
        the data export and load run.
        """
        wanted = set(phases)
        reports: list[PhaseReport] = []
        for phase in ALL_PHASES:
            if phase not in wanted or not _phase_in_mode(phase, mode):
                continue
            log.info("Starting phase %s (mode=%s).", phase.value, mode.value)
            if phase == Phase.EXPORT_SCHEMA_AND_DATA:
                reports.append(self.export_schema_and_data(mode))
            elif phase == Phase.EXPORT_CONSTRAINTS:
                reports.append(self.export_constraints())
            elif phase == Phase.APPLY_SCHEMA:
                reports.append(self.apply_schema())
            elif phase == Phase.LOAD_DATA:
                reports.append(self.load_data())
        return reports

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _map(self, fn: Callable[[_T], ObjectResult], items: list[_T]) -> list[ObjectResult]:
        """Apply *fn* to every item, on a thread pool when ``workers > 1``; order is kept."""
        total = len(items)

        def tracked(numbered: tuple[int, _T]) -> ObjectResult:
            index, item = numbered
            self._progress(f"Processing {item}", index, total)
            return fn(item)

        numbered = list(enumerate(items, start=1))
        if self._workers == 1 or total <= 1:
            return [tracked(pair) for pair in numbered]
        with ThreadPoolExecutor(max_workers=self._workers) as pool:
            return list(pool.map(tracked, numbered))


def _phase_in_mode(phase: Phase, mode: MigrationMode) -> bool:
    if phase in (Phase.EXPORT_CONSTRAINTS, Phase.APPLY_SCHEMA):
        return mode.includes_schema
    if phase == Phase.LOAD_DATA:
        return mode.includes_data
    return True
