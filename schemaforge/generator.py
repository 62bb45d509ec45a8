# File: schemaforge/generator.py
"""
SchemaForge - Build Orchestrator
==================================

Connects every phase together:

    Schema Input → Normalisation → Compilation → Emission → Conflict
    Resolution → Storage

Workflow::

    1. Load schema from JSON/YAML file (or accept an in-memory mapping).
    2. Normalise into ``SchemaDocument`` + ``GenerationConfig``.
    3. For each table, in document order:
         a. confirm reprocessing of a table name seen earlier in the run
         b. migration (sequencer key, or the existing file for the table)
         c. model (subject to the collision policy)
         d. controller (subject to the collision policy; route always kept)
         e. views
    4. Update the route registry once, if any controller was produced.
    5. Generate standalone models, controllers and views.
    6. Return a ``BuildReport``.

Error handling strategy:
    - Only an unparseable schema source is fatal (``SchemaParseError``).
    - A failure inside one table abandons that table's remaining artifacts
      and is recorded; the next table proceeds.
    - A storage failure loses one artifact only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from schemaforge.columns import ColumnPlan, compile_columns, fillable_columns
from schemaforge.conflicts import ConflictResolver
from schemaforge.errors import SchemaParseError, StorageError
from schemaforge.foreign_keys import (
    ResolvedForeignKey,
    ResolvedRelationship,
    declared_relationships,
    resolve_foreign_keys,
    resolve_relationships,
)
from schemaforge.models import (
    ArtifactKind,
    CollisionPolicy,
    ControllerSpec,
    GenerationConfig,
    GenerationPolicy,
    ModelSpec,
    NamingBundle,
    RouteChoice,
    RunContext,
    SchemaDocument,
    TableSpec,
    ViewSpec,
    WriteDecision,
)
from schemaforge.normalizer import (
    derive_naming,
    expand_view_targets,
    naming_for_controller,
    naming_for_model,
    normalize_document,
)
from schemaforge.prompts import NonInteractivePrompt, PromptProvider
from schemaforge.routes import RouteMergeResult, RouteRegistryMerger
from schemaforge.sequencer import KEY_FORMAT, MigrationSequencer
from schemaforge.storage import StorageSink
from schemaforge.templates import DEFAULT_SLOT, ArtifactEmitter, FastAPIEmitter, RenderContext
from schemaforge.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.generator")

_CONFIG_KEYS: Tuple[str, ...] = ("config", "generation_config")


# ---------------------------------------------------------------------------
# Build report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class BuildReport:
    """
    Outcome of ``ScaffoldGenerator.build()``.

    ``failures`` holds per-table and per-artifact errors; ``success`` is
    true only when it is empty.
    """

    success: bool = False
    base_path: str = ""

    tables_processed: List[str] = field(default_factory=list)
    artifacts_written: List[str] = field(default_factory=list)
    artifacts_skipped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    migration_keys: Dict[str, str] = field(default_factory=dict)
    foreign_keys: Dict[str, List[ResolvedForeignKey]] = field(default_factory=dict)
    route_lines: List[str] = field(default_factory=list)
    route_action: Optional[str] = None
    total_elapsed_seconds: float = 0.0

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'=' * 60}")
        lines.append("  SchemaForge — Build Report")
        lines.append(f"{'=' * 60}")
        lines.append(f"  Status:            {status}")
        lines.append(f"  Target:            {self.base_path}")
        lines.append(f"  Tables processed:  {len(self.tables_processed)}")
        lines.append(f"  Artifacts written: {len(self.artifacts_written)}")
        lines.append(f"  Artifacts skipped: {len(self.artifacts_skipped)}")
        lines.append(f"  Route registry:    {self.route_action or 'untouched'}")
        lines.append(f"  Total time:        {self.total_elapsed_seconds:.3f}s")

        if self.artifacts_written:
            lines.append(f"{'─' * 60}")
            lines.append("  Written:")
            for path in self.artifacts_written:
                lines.append(f"    ✓ {path}")

        if self.artifacts_skipped:
            lines.append(f"{'─' * 60}")
            lines.append("  Skipped:")
            for path in self.artifacts_skipped:
                lines.append(f"    ⊘ {path}")

        if self.warnings:
            lines.append(f"{'─' * 60}")
            lines.append(f"  Warnings ({len(self.warnings)}):")
            for warn in self.warnings:
                lines.append(f"    ⚠ {warn}")

        if self.failures:
            lines.append(f"{'─' * 60}")
            lines.append(f"  Failures ({len(self.failures)}):")
            for err in self.failures:
                lines.append(f"    ✗ {err}")

        lines.append(f"{'=' * 60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Schema loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaParseError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SchemaParseError(f"Invalid YAML in {path}: {exc}") from exc


def load_schema_file(path: Path) -> Dict[str, Any]:
    """
    Load a schema definition file (JSON or YAML), dispatching on extension.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaParseError: If the file can't be parsed into a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    if not path.is_file():
        raise SchemaParseError(f"Schema path is not a file: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data: Any = _load_yaml_file(path)
    elif suffix == ".json":
        data = _load_json_file(path)
    else:
        logger.info("Unknown extension '%s' — trying JSON then YAML.", suffix)
        try:
            data = _load_json_file(path)
        except SchemaParseError:
            data = _load_yaml_file(path)

    if not isinstance(data, dict):
        raise SchemaParseError(
            f"Expected a mapping at the top level of {path}, got {type(data).__name__}."
        )
    return data


def parse_raw_schema(
    raw: Dict[str, Any],
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[SchemaDocument, GenerationConfig]:
    """
    Split a raw mapping into the normalised document and its configuration.

    The configuration lives under ``config`` (or ``generation_config``);
    *overrides* (typically CLI flags) win over it.

    Raises:
        SchemaParseError: If the tables container or the config is unusable.
    """
    if not isinstance(raw, dict):
        raise SchemaParseError(f"Schema document must be a mapping, got {type(raw).__name__}.")

    config_data: Dict[str, Any] = {}
    for key in _CONFIG_KEYS:
        if key in raw and raw[key] is not None:
            if not isinstance(raw[key], dict):
                raise SchemaParseError(f"'{key}' must be a mapping.")
            config_data = dict(raw[key])
            break
    else:
        logger.info("No generation config found in input — using defaults.")

    if overrides:
        config_data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config: GenerationConfig = GenerationConfig.model_validate(config_data)
    except PydanticValidationError as exc:
        raise SchemaParseError(f"Config validation failed: {exc}") from exc

    document: SchemaDocument = normalize_document(raw)
    return document, config


# ---------------------------------------------------------------------------
# Per-build state
# ---------------------------------------------------------------------------


@dataclass
class _BuildRun:
    context: RunContext
    report: BuildReport
    sequencer: MigrationSequencer
    existing_migrations: List[str] = field(default_factory=list)
    route_lines: List[str] = field(default_factory=list)
    collision_answers: Dict[str, CollisionPolicy] = field(default_factory=dict)
    skip_declared: Set[str] = field(default_factory=set)


# ---------------------------------------------------------------------------
# ScaffoldGenerator — Master orchestrator
# ---------------------------------------------------------------------------


class ScaffoldGenerator:
    """
    Drives one or more builds against a storage sink.

    Usage::

        generator = ScaffoldGenerator(FileSystemStorage("./myapp"))
        report = generator.build(document)
        print(report.summary())

    The generator is reusable; every ``build`` call gets a fresh
    ``RunContext``, sequencer and report.
    """

    def __init__(
        self,
        storage: StorageSink,
        *,
        config: Optional[GenerationConfig] = None,
        emitter: Optional[ArtifactEmitter] = None,
        prompt: Optional[PromptProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage: StorageSink = storage
        self.config: GenerationConfig = config or GenerationConfig()
        self.emitter: ArtifactEmitter = emitter or FastAPIEmitter(
            stubs_dir=self.config.stubs_dir, package_root=self.config.package_root
        )
        self.prompt: PromptProvider = prompt or NonInteractivePrompt()
        self.resolver: ConflictResolver = ConflictResolver(self.prompt)
        self.merger: RouteRegistryMerger = RouteRegistryMerger(self.emitter.route_syntax)
        self._clock: Callable[[], datetime] = clock

        logger.debug(
            "ScaffoldGenerator initialised: module=%s, force=%s, collision=%s.",
            self.config.module,
            self.config.force,
            self.config.collision_policy,
        )

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def build(self, document: SchemaDocument) -> BuildReport:
        """Generate every artifact described by *document*."""
        run: _BuildRun = _BuildRun(
            context=RunContext(
                policy=GenerationPolicy(module_scope=self.config.module),
                force=self.config.force,
            ),
            report=BuildReport(base_path=str(getattr(self.storage, "base_path", ""))),
            sequencer=MigrationSequencer(self._clock),
        )

        with Timer("build") as timer:
            for message in document.table_errors:
                run.report.failures.append(message)

            try:
                run.existing_migrations = self.storage.list_dir(self.config.migrations_dir)
            except StorageError as exc:
                self._record_failure(run, str(exc))

            logger.info(
                "Building %d table(s) (module=%s).",
                len(document.tables),
                self.config.module or "-",
            )
            for table in document.tables:
                try:
                    self._build_table(run, document, table)
                except Exception as exc:
                    self._record_failure(
                        run, f"Table '{table.name}': {type(exc).__name__}: {exc}"
                    )

            if run.route_lines:
                self._update_routes(run)

            self._build_general_components(run, document)

        run.report.warnings.extend(w for w in run.context.warnings if w not in run.report.warnings)
        run.report.total_elapsed_seconds = timer.elapsed
        run.report.success = not run.report.failures
        logger.info(
            "Build finished: %d written, %d skipped, %d failure(s).",
            len(run.report.artifacts_written),
            len(run.report.artifacts_skipped),
            len(run.report.failures),
        )
        return run.report

    def build_from_file(self, path: Path) -> BuildReport:
        """Load *path* and build it with this generator's configuration."""
        raw: Dict[str, Any] = load_schema_file(path)
        document: SchemaDocument = normalize_document(raw)
        return self.build(document)

    # -----------------------------------------------------------------
    # Internal: per table
    # -----------------------------------------------------------------

    def _build_table(self, run: _BuildRun, document: SchemaDocument, table: TableSpec) -> None:
        context: RunContext = run.context
        if table.name in context.processed_tables:
            again: bool = self.resolver.ask_permission(
                context, f"Table '{table.name}' was already processed in this run. Generate again?"
            )
            if not again:
                self._warn(run, f"Duplicate table '{table.name}' skipped.")
                return
        context.processed_tables.add(table.name)

        naming: NamingBundle = derive_naming(table.name)
        plan: ColumnPlan = compile_columns(table)
        foreign_keys, fk_warnings = resolve_foreign_keys(table)
        relationships: List[ResolvedRelationship] = resolve_relationships(document, table)
        for message in table.warnings + plan.warnings + fk_warnings:
            self._note(run, message)
        run.report.foreign_keys[table.name] = foreign_keys

        base_ctx: RenderContext = RenderContext(
            naming=naming,
            plan=plan,
            foreign_keys=foreign_keys,
            relationships=relationships,
            fillable=fillable_columns(table),
            model_import=self._dotted(self._scoped_dir(run, "models"), naming.model_module),
        )
        logger.info("Processing table '%s' → %s.", table.name, naming.model_name)

        self._emit_migration(run, table, base_ctx)

        if self._generate_derived(run, ArtifactKind.MODEL, naming.model_name, document.declared_model_names):
            self._write_artifact(
                run,
                ArtifactKind.MODEL,
                self._model_path(run, naming),
                self.emitter.render(ArtifactKind.MODEL.value, DEFAULT_SLOT, base_ctx),
            )

        if self._generate_derived(
            run, ArtifactKind.CONTROLLER, naming.controller_name, document.declared_controller_names
        ):
            self._write_artifact(
                run,
                ArtifactKind.CONTROLLER,
                self._controller_path(run, naming),
                self.emitter.render(ArtifactKind.CONTROLLER.value, DEFAULT_SLOT, base_ctx),
            )

        for view in table.views:
            self._emit_views(run, view, naming.table_name, base_ctx)

        target: str = self._dotted(self._scoped_dir(run, "controllers"), naming.controller_module) + ".router"
        run.route_lines.append(self.emitter.route_line(naming, target))

        run.report.tables_processed.append(table.name)

    def _emit_migration(self, run: _BuildRun, table: TableSpec, base_ctx: RenderContext) -> None:
        sequencer: MigrationSequencer = run.sequencer
        key: str = sequencer.next_key(table.name)
        existing: Optional[str] = sequencer.locate(table.name, run.existing_migrations)
        ext: str = self.emitter.extension(ArtifactKind.MIGRATION.value)
        if existing is not None:
            sequencer.release(key)
            filename: str = existing
            revision: str = sequencer.key_of(existing) or key
            logger.info("Reusing existing migration for '%s': %s", table.name, existing)
        else:
            filename = sequencer.filename(key, table.name, ext)
            revision = key

        ctx: RenderContext = RenderContext(
            naming=base_ctx.naming,
            plan=base_ctx.plan,
            foreign_keys=base_ctx.foreign_keys,
            fillable=base_ctx.fillable,
            migration_key=revision,
            down_revision=sequencer.previous_key(revision, run.existing_migrations),
            created_at=datetime.strptime(revision, KEY_FORMAT).strftime("%Y-%m-%d %H:%M:%S"),
        )
        content: str = self.emitter.render(ArtifactKind.MIGRATION.value, DEFAULT_SLOT, ctx)
        run.report.migration_keys[table.name] = revision
        self._write_artifact(
            run, ArtifactKind.MIGRATION, f"{self.config.migrations_dir}/{filename}", content
        )
        if filename not in run.existing_migrations:
            run.existing_migrations.append(filename)

    def _emit_views(
        self,
        run: _BuildRun,
        view: ViewSpec,
        default_folder: str,
        base_ctx: RenderContext,
    ) -> None:
        for folder, filename in expand_view_targets(view.path, default_folder):
            ctx: RenderContext = RenderContext(
                naming=base_ctx.naming,
                plan=base_ctx.plan,
                fillable=base_ctx.fillable,
                view_folder=folder,
                view_file=filename,
            )
            content: str = self.emitter.render(ArtifactKind.VIEW.value, view.template, ctx)
            self._write_artifact(
                run, ArtifactKind.VIEW, f"{self._scoped_dir(run, 'views')}/{folder}/{filename}", content
            )

    # -----------------------------------------------------------------
    # Internal: collisions
    # -----------------------------------------------------------------

    def _collision_choice(self, run: _BuildRun, name: str) -> CollisionPolicy:
        policy: CollisionPolicy = self.config.collision_policy
        if policy != CollisionPolicy.ASK:
            return policy
        if name in run.collision_answers:
            return run.collision_answers[name]

        blanket: GenerationPolicy = run.context.policy
        if run.context.force or blanket.force_overwrite_all or blanket.skip_all:
            answer: str = CollisionPolicy.DECLARED.value
        else:
            answer = self.prompt.choose(
                f"'{name}' is derived from a table and also declared explicitly. Which should be generated?",
                [p.value for p in (CollisionPolicy.DECLARED, CollisionPolicy.DERIVED, CollisionPolicy.BOTH)],
                CollisionPolicy.DECLARED.value,
            )
        choice: CollisionPolicy = CollisionPolicy(answer)
        run.collision_answers[name] = choice
        return choice

    def _generate_derived(
        self,
        run: _BuildRun,
        kind: ArtifactKind,
        name: str,
        declared: List[str],
    ) -> bool:
        """Whether the table-derived *name* should be generated now."""
        if name not in declared:
            return True
        choice: CollisionPolicy = self._collision_choice(run, name)
        if choice == CollisionPolicy.DECLARED:
            self._warn(run, f"{kind.value.capitalize()} '{name}' is declared explicitly; table-derived one skipped.")
            return False
        if choice == CollisionPolicy.DERIVED:
            run.skip_declared.add(name)
        return True

    # -----------------------------------------------------------------
    # Internal: route registry
    # -----------------------------------------------------------------

    def _route_choice(self, context: RunContext, path: str) -> RouteChoice:
        if context.force or context.policy.force_overwrite_all:
            return RouteChoice.REPLACE
        if context.policy.skip_all:
            return RouteChoice.SKIP
        answer: str = self.prompt.choose(
            f"Generated routes already exist in {path}. What should be done?",
            [c.value for c in RouteChoice],
            RouteChoice.MERGE.value,
        )
        return RouteChoice(answer)

    def _update_routes(self, run: _BuildRun) -> None:
        path: str = self.config.routes_file
        report: BuildReport = run.report
        report.route_lines = list(run.route_lines)
        try:
            if not self.storage.exists(path):
                result: RouteMergeResult = self.merger.create(run.route_lines)
            else:
                text: str = self.storage.read(path)
                choice: RouteChoice = RouteChoice.MERGE
                if self.merger.has_block(text):
                    choice = self._route_choice(run.context, path)
                result = self.merger.merge(text, run.route_lines, choice)

            for message in result.warnings:
                self._note(run, message)
            report.route_action = result.action
            if result.changed:
                self.storage.write(path, result.text)
                report.artifacts_written.append(path)
            else:
                report.artifacts_skipped.append(path)
        except StorageError as exc:
            self._record_failure(run, str(exc))

    # -----------------------------------------------------------------
    # Internal: general components
    # -----------------------------------------------------------------

    def _build_general_components(self, run: _BuildRun, document: SchemaDocument) -> None:
        if document.models or document.controllers or document.views:
            logger.info("Processing general components...")

        for model in document.models:
            try:
                self._build_standalone_model(run, document, model)
            except Exception as exc:
                self._record_failure(run, f"Model '{model.name}': {type(exc).__name__}: {exc}")

        for controller in document.controllers:
            try:
                self._build_standalone_controller(run, document, controller)
            except Exception as exc:
                self._record_failure(run, f"Controller '{controller.name}': {type(exc).__name__}: {exc}")

        for view in document.views:
            try:
                naming: NamingBundle = derive_naming(view.path.strip("/").split("/")[0].strip("[]") or "default")
                self._emit_views(run, view, "default", RenderContext(naming=naming))
            except Exception as exc:
                self._record_failure(run, f"View '{view.path}': {type(exc).__name__}: {exc}")

    def _build_standalone_model(self, run: _BuildRun, document: SchemaDocument, model: ModelSpec) -> None:
        if model.name in run.skip_declared:
            self._warn(run, f"Declared model '{model.name}' skipped in favour of the table-derived one.")
            return
        naming: NamingBundle = naming_for_model(model.name, model.table)
        table: Optional[TableSpec] = document.get_table(naming.table_name)

        plan: ColumnPlan = compile_columns(table) if table is not None else ColumnPlan()
        foreign_keys: List[ResolvedForeignKey] = resolve_foreign_keys(table)[0] if table is not None else []
        relationships: List[ResolvedRelationship] = (
            resolve_relationships(document, table) if table is not None else []
        )
        names: Set[str] = {r.name for r in relationships}
        for rel in declared_relationships(model.name, model.relations):
            if rel.name not in names:
                names.add(rel.name)
                relationships.append(rel)

        ctx: RenderContext = RenderContext(
            naming=naming,
            plan=plan,
            foreign_keys=foreign_keys,
            relationships=relationships,
            fillable=fillable_columns(table) if table is not None else [],
        )
        self._write_artifact(
            run,
            ArtifactKind.MODEL,
            self._model_path(run, naming),
            self.emitter.render(ArtifactKind.MODEL.value, DEFAULT_SLOT, ctx),
        )

    def _build_standalone_controller(
        self, run: _BuildRun, document: SchemaDocument, controller: ControllerSpec
    ) -> None:
        if controller.name in run.skip_declared:
            self._warn(run, f"Declared controller '{controller.name}' skipped in favour of the table-derived one.")
            return
        naming: NamingBundle = naming_for_controller(controller.name, controller.model)
        has_model: bool = (
            controller.model is not None
            or naming.model_name in document.declared_model_names
            or document.get_table(naming.table_name) is not None
        )
        ctx: RenderContext = RenderContext(
            naming=naming,
            model_import=self._dotted(self._scoped_dir(run, "models"), naming.model_module),
        )
        slot: str = DEFAULT_SLOT if has_model else "plain"
        self._write_artifact(
            run,
            ArtifactKind.CONTROLLER,
            self._controller_path(run, naming),
            self.emitter.render(ArtifactKind.CONTROLLER.value, slot, ctx),
        )

    # -----------------------------------------------------------------
    # Internal: paths & writes
    # -----------------------------------------------------------------

    @staticmethod
    def _dotted(directory: str, module: str) -> str:
        return ".".join(part for part in directory.strip("/").split("/") if part) + f".{module}"

    def _scoped_dir(self, run: _BuildRun, part: str) -> str:
        return self.config.scoped_dir(part, run.context.policy.module_scope)

    def _model_path(self, run: _BuildRun, naming: NamingBundle) -> str:
        ext: str = self.emitter.extension(ArtifactKind.MODEL.value)
        return f"{self._scoped_dir(run, 'models')}/{naming.model_module}.{ext}"

    def _controller_path(self, run: _BuildRun, naming: NamingBundle) -> str:
        ext: str = self.emitter.extension(ArtifactKind.CONTROLLER.value)
        return f"{self._scoped_dir(run, 'controllers')}/{naming.controller_module}.{ext}"

    def _write_artifact(self, run: _BuildRun, kind: ArtifactKind, path: str, content: str) -> bool:
        """Write one artifact through conflict resolution. Storage errors stay local."""
        try:
            exists: bool = self.storage.exists(path)
            decision: WriteDecision = self.resolver.resolve(run.context, path, exists)
            if decision == WriteDecision.SKIP:
                run.report.artifacts_skipped.append(path)
                return False
            self.storage.write(path, content)
        except StorageError as exc:
            self._record_failure(run, str(exc))
            return False
        run.report.artifacts_written.append(path)
        logger.info("   - %s written: %s", kind.value.capitalize(), path)
        return True

    # -----------------------------------------------------------------
    # Internal: bookkeeping
    # -----------------------------------------------------------------

    @staticmethod
    def _note(run: _BuildRun, message: str) -> None:
        """Record a warning on the run context and the report without re-logging it."""
        run.context.warnings.append(message)
        run.report.warnings.append(message)

    @staticmethod
    def _warn(run: _BuildRun, message: str) -> None:
        run.context.warn(message)
        run.report.warnings.append(message)

    @staticmethod
    def _record_failure(run: _BuildRun, message: str) -> None:
        logger.error(message)
        run.report.failures.append(message)


__all__: List[str] = [
    "BuildReport",
    "ScaffoldGenerator",
    "load_schema_file",
    "parse_raw_schema",
]
