# File: schemaforge/templates.py
"""
SchemaForge - Artifact Emitters
=================================
Pure-Python code generation for every artifact kind.

The engine only talks to the ``ArtifactEmitter`` interface:
``render(kind, slot, context) -> str`` plus the route-file syntax. This
module ships ``FastAPIEmitter``, which targets:
    1. Alembic revisions (``op.create_table``)
    2. SQLAlchemy 2.0 ORM models (``Mapped[]`` / ``mapped_column()``)
    3. FastAPI ``APIRouter`` controllers with index/create/show/update/delete
    4. Jinja2 HTML views (``blank``, ``table`` and ``form`` slots)
    5. ``app/routes.py`` registry lines

**Conventions:**
    - All string assembly uses ``List[str]`` + ``"\\n".join()``.
    - Renderers are stateless; one emitter instance serves a whole run.
    - A ``<kind>.<slot>.stub`` file in ``stubs_dir`` overrides the built-in
      template; ``{{placeholder}}`` tokens are filled from the context.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from schemaforge.columns import ColumnInstruction, ColumnPlan, InstructionKind
from schemaforge.errors import TemplateNotFound
from schemaforge.foreign_keys import ResolvedForeignKey, ResolvedRelationship
from schemaforge.models import ArtifactKind, NamingBundle
from schemaforge.routes import RouteSyntax
from schemaforge.utils import build_import_block, format_list_literal, to_title_human

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.templates")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_INDENT: str = "    "
_DOUBLE_INDENT: str = "        "
_TRIPLE_INDENT: str = "            "

DEFAULT_SLOT: str = "default"
_STUB_TOKEN_RE: re.Pattern[str] = re.compile(r"\{\{\s*(\w+)\s*\}\}")

# Declared type tag (lower-cased) → (SQLAlchemy type name, Python type hint)
_TYPE_MAP: Dict[str, Tuple[str, str]] = {
    "string": ("String", "str"),
    "varchar": ("String", "str"),
    "char": ("CHAR", "str"),
    "text": ("Text", "str"),
    "mediumtext": ("Text", "str"),
    "longtext": ("Text", "str"),
    "integer": ("Integer", "int"),
    "int": ("Integer", "int"),
    "tinyinteger": ("SmallInteger", "int"),
    "smallinteger": ("SmallInteger", "int"),
    "mediuminteger": ("Integer", "int"),
    "unsignedinteger": ("Integer", "int"),
    "biginteger": ("BigInteger", "int"),
    "unsignedbiginteger": ("BigInteger", "int"),
    "boolean": ("Boolean", "bool"),
    "bool": ("Boolean", "bool"),
    "date": ("Date", "date"),
    "datetime": ("DateTime", "datetime"),
    "timestamp": ("DateTime", "datetime"),
    "time": ("Time", "time"),
    "decimal": ("Numeric", "Decimal"),
    "float": ("Float", "float"),
    "double": ("Double", "float"),
    "json": ("JSON", "Any"),
    "jsonb": ("JSON", "Any"),
    "uuid": ("Uuid", "uuid.UUID"),
    "binary": ("LargeBinary", "bytes"),
}

_DEFAULT_STRING_LENGTH: int = 255

# Form input types for the ``form`` view slot
_INPUT_TYPES: Dict[str, str] = {
    "integer": "number",
    "int": "number",
    "biginteger": "number",
    "unsignedbiginteger": "number",
    "smallinteger": "number",
    "tinyinteger": "number",
    "decimal": "number",
    "float": "number",
    "double": "number",
    "boolean": "checkbox",
    "bool": "checkbox",
    "date": "date",
    "datetime": "datetime-local",
    "timestamp": "datetime-local",
    "time": "time",
}


def _q(value: str) -> str:
    """Double-quoted Python string literal."""
    escaped: str = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


# ---------------------------------------------------------------------------
# Render context
# ---------------------------------------------------------------------------


@dataclass
class RenderContext:
    """
    Everything a renderer may read for one artifact.

    Per-table artifacts carry the compiled plan and resolved references;
    standalone components only carry ``naming`` and what they declare.
    """

    naming: NamingBundle
    plan: Optional[ColumnPlan] = None
    foreign_keys: List[ResolvedForeignKey] = field(default_factory=list)
    relationships: List[ResolvedRelationship] = field(default_factory=list)
    fillable: List[str] = field(default_factory=list)
    migration_key: Optional[str] = None
    down_revision: Optional[str] = None
    created_at: Optional[str] = None
    model_import: Optional[str] = None
    view_folder: Optional[str] = None
    view_file: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def placeholders(self) -> Dict[str, str]:
        """Flat ``{{token}}`` values for stub overrides."""
        values: Dict[str, str] = {
            "tableName": self.naming.table_name,
            "modelName": self.naming.model_name,
            "controllerName": self.naming.controller_name,
            "routeName": self.naming.route_resource_name,
            "modelVariable": self.naming.variable_name,
            "modelModule": self.naming.model_module,
            "controllerModule": self.naming.controller_module,
            "modelImport": self.model_import or "",
            "migrationKey": self.migration_key or "",
            "downRevision": self.down_revision or "",
            "viewFolder": self.view_folder or "",
            "viewFile": self.view_file or "",
            "fillable": ", ".join(_q(c) for c in self.fillable),
        }
        values.update(self.extra)
        return values


Renderer = Callable[[RenderContext], str]


# ---------------------------------------------------------------------------
# Emitter interface
# ---------------------------------------------------------------------------


class ArtifactEmitter:
    """
    Base class for pluggable emitters.

    Subclasses register renderers keyed by ``(kind, slot)`` in
    ``_renderers`` and describe the route file through ``route_syntax``.
    """

    route_syntax: RouteSyntax
    extensions: Dict[str, str] = {}
    slot_aliases: Dict[Tuple[str, str], str] = {}

    def __init__(self, stubs_dir: Optional[str] = None) -> None:
        self.stubs_dir: Optional[Path] = Path(stubs_dir) if stubs_dir else None
        self._renderers: Dict[Tuple[str, str], Renderer] = {}

    def register(self, kind: str, slot: str, renderer: Renderer) -> None:
        self._renderers[(kind, slot)] = renderer

    def slots(self, kind: str) -> List[str]:
        return sorted(slot for (k, slot) in self._renderers if k == kind)

    def extension(self, kind: str) -> str:
        return self.extensions.get(kind, "txt")

    def _resolve_slot(self, kind: str, slot: str) -> str:
        return self.slot_aliases.get((kind, slot), slot)

    def _stub_text(self, kind: str, slot: str) -> Optional[str]:
        if self.stubs_dir is None:
            return None
        for candidate in (slot, self._resolve_slot(kind, slot)):
            stub: Path = self.stubs_dir / f"{kind}.{candidate}.stub"
            if stub.is_file():
                logger.debug("Using stub override: %s", stub)
                return stub.read_text(encoding="utf-8")
        return None

    def render(self, kind: str, slot: str, context: RenderContext) -> str:
        """
        Render one artifact.

        Raises:
            TemplateNotFound: no stub and no built-in renderer for the slot.
        """
        slot = slot or DEFAULT_SLOT
        try:
            kind = ArtifactKind(kind).value
        except ValueError as exc:
            raise TemplateNotFound(str(kind), slot) from exc

        stub: Optional[str] = self._stub_text(kind, slot)
        if stub is not None:
            values: Dict[str, str] = context.placeholders()
            return _STUB_TOKEN_RE.sub(lambda m: values.get(m.group(1), m.group(0)), stub)

        renderer: Optional[Renderer] = self._renderers.get((kind, self._resolve_slot(kind, slot)))
        if renderer is None:
            raise TemplateNotFound(kind, slot)
        content: str = renderer(context)
        logger.debug(
            "Rendered %s/%s for '%s': %d lines.",
            kind,
            slot,
            context.naming.table_name,
            content.count("\n") + 1,
        )
        return content

    def route_line(self, naming: NamingBundle, target: str) -> str:
        return self.route_syntax.render_line(naming.route_resource_name, target)


# ---------------------------------------------------------------------------
# Column helpers shared by migration and model renderers
# ---------------------------------------------------------------------------


def _type_expr(instr: ColumnInstruction, prefix: str, used: Set[str], table: str = "") -> str:
    """SQLAlchemy type constructor for one instruction, e.g. ``sa.String(length=120)``."""
    if instr.kind == InstructionKind.PRIMARY_KEY:
        used.update({"BigInteger", "Integer"})
        return f'{prefix}BigInteger().with_variant({prefix}Integer(), "sqlite")'
    if instr.kind == InstructionKind.FOREIGN_ID:
        used.add("BigInteger")
        return f"{prefix}BigInteger()"
    if instr.kind == InstructionKind.ENUM:
        used.add("Enum")
        members: str = ", ".join(_q(v) for v in instr.values)
        enum_name: str = f"{table}_{instr.column}_enum" if table else f"{instr.column}_enum"
        return f'{prefix}Enum({members}, name="{enum_name}")'

    tag: str = (instr.type_tag or "string").lower()
    sa_name, _ = _TYPE_MAP.get(tag, ("String", "str"))
    used.add(sa_name)
    if sa_name in ("String", "CHAR"):
        length: int = instr.length or (1 if sa_name == "CHAR" else _DEFAULT_STRING_LENGTH)
        return f"{prefix}{sa_name}(length={length})"
    if sa_name == "Numeric" and instr.precision is not None:
        scale: int = instr.scale if instr.scale is not None else 0
        return f"{prefix}Numeric(precision={instr.precision}, scale={scale})"
    if sa_name == "DateTime":
        return f"{prefix}DateTime(timezone=True)"
    return f"{prefix}{sa_name}()"


def _python_hint(instr: ColumnInstruction) -> str:
    if instr.kind in (InstructionKind.PRIMARY_KEY, InstructionKind.FOREIGN_ID):
        base: str = "int"
    elif instr.kind == InstructionKind.ENUM:
        base = "str"
    else:
        base = _TYPE_MAP.get((instr.type_tag or "string").lower(), ("String", "str"))[1]
    if instr.nullable:
        return f"Optional[{base}]"
    return base


def _server_default(value: Any, prefix: str, used: Set[str]) -> str:
    if isinstance(value, bool):
        used.add("true" if value else "false")
        return f"{prefix}{'true' if value else 'false'}()"
    if isinstance(value, (int, float)):
        used.add("text")
        return f'{prefix}text("{value}")'
    return _q(str(value))


def _modifier_kwargs(instr: ColumnInstruction, prefix: str, used: Set[str]) -> List[str]:
    """Keyword arguments in the fixed order nullable, unique, index, default, comment."""
    kwargs: List[str] = [f"nullable={instr.nullable}"]
    for mod in instr.modifiers:
        if mod.name == "unique":
            kwargs.append("unique=True")
        elif mod.name == "index":
            kwargs.append("index=True")
        elif mod.name == "default":
            kwargs.append(f"server_default={_server_default(mod.value, prefix, used)}")
        elif mod.name == "comment":
            kwargs.append(f"comment={_q(str(mod.value))}")
    return kwargs


def _fk_for(column: Optional[str], foreign_keys: Sequence[ResolvedForeignKey]) -> Optional[ResolvedForeignKey]:
    for fk in foreign_keys:
        if fk.column == column:
            return fk
    return None


def _fk_kwargs(fk: ResolvedForeignKey) -> str:
    parts: List[str] = []
    if fk.on_delete:
        parts.append(f'ondelete="{fk.on_delete}"')
    if fk.on_update:
        parts.append(f'onupdate="{fk.on_update}"')
    return "".join(f", {p}" for p in parts)


# ---------------------------------------------------------------------------
# FastAPI / SQLAlchemy / Alembic / Jinja2 emitter
# ---------------------------------------------------------------------------


class FastAPIEmitter(ArtifactEmitter):
    """
    Default emitter for a FastAPI application laid out as::

        app/database.py        (user-owned: Base, get_session)
        app/models/*.py
        app/controllers/*.py
        app/templates/**.html
        app/routes.py
        migrations/versions/*.py
    """

    extensions: Dict[str, str] = {
        ArtifactKind.MIGRATION.value: "py",
        ArtifactKind.MODEL.value: "py",
        ArtifactKind.CONTROLLER.value: "py",
        ArtifactKind.VIEW.value: "html",
        ArtifactKind.ROUTES.value: "py",
    }
    slot_aliases: Dict[Tuple[str, str], str] = {
        (ArtifactKind.VIEW.value, DEFAULT_SLOT): "blank",
    }

    def __init__(self, stubs_dir: Optional[str] = None, package_root: str = "app") -> None:
        super().__init__(stubs_dir=stubs_dir)
        self.package_root: str = package_root
        self.route_syntax = RouteSyntax(
            comment_prefix="#",
            line_template='resource("{resource}", "{target}")',
            detect_pattern=r"^\s*resource\(",
            preamble=self._routes_preamble(),
        )
        self.register(ArtifactKind.MIGRATION.value, DEFAULT_SLOT, self.render_migration)
        self.register(ArtifactKind.MODEL.value, DEFAULT_SLOT, self.render_model)
        self.register(ArtifactKind.CONTROLLER.value, DEFAULT_SLOT, self.render_controller)
        self.register(ArtifactKind.CONTROLLER.value, "plain", self.render_plain_controller)
        self.register(ArtifactKind.VIEW.value, "blank", self.render_blank_view)
        self.register(ArtifactKind.VIEW.value, "table", self.render_table_view)
        self.register(ArtifactKind.VIEW.value, "form", self.render_form_view)
        logger.debug("FastAPIEmitter initialised (package_root=%s).", package_root)

    # ===================================================================
    # 1. Alembic migration
    # ===================================================================

    def render_migration(self, ctx: RenderContext) -> str:
        plan: ColumnPlan = ctx.plan or ColumnPlan()
        table: str = ctx.naming.table_name
        used: Set[str] = set()
        lines: List[str] = []

        lines.append(f'"""create {table} table')
        lines.append("")
        lines.append(f"Revision ID: {ctx.migration_key}")
        lines.append(f"Revises: {ctx.down_revision or ''}")
        if ctx.created_at:
            lines.append(f"Create Date: {ctx.created_at}")
        lines.append("")
        lines.append("Generated by SchemaForge.")
        lines.append('"""')
        lines.append("")
        lines.append("from typing import Sequence, Union")
        lines.append("")
        lines.append("import sqlalchemy as sa")
        lines.append("from alembic import op")
        lines.append("")
        lines.append(f"revision: str = {_q(ctx.migration_key or '')}")
        down: str = _q(ctx.down_revision) if ctx.down_revision else "None"
        lines.append(f"down_revision: Union[str, None] = {down}")
        lines.append("branch_labels: Union[str, Sequence[str], None] = None")
        lines.append("depends_on: Union[str, Sequence[str], None] = None")
        lines.append("")
        lines.append("")
        lines.append("def upgrade() -> None:")
        lines.append(f"{_INDENT}op.create_table(")
        lines.append(f"{_DOUBLE_INDENT}{_q(table)},")

        if not plan.has_primary_key:
            lines.append(
                f'{_DOUBLE_INDENT}sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), '
                "primary_key=True, autoincrement=True),"
            )
        for instr in plan.instructions:
            for column_line in self._migration_columns(instr, used, table):
                lines.append(f"{_DOUBLE_INDENT}{column_line},")

        for fk in ctx.foreign_keys:
            lines.append(
                f"{_DOUBLE_INDENT}sa.ForeignKeyConstraint([{_q(fk.column)}], "
                f'["{fk.target_table}.{fk.target_column}"]{_fk_kwargs(fk)}),'
            )
        lines.append(f"{_INDENT})")
        lines.append("")
        lines.append("")
        lines.append("def downgrade() -> None:")
        lines.append(f"{_INDENT}op.drop_table({_q(table)})")
        lines.append("")
        return "\n".join(lines)

    def _migration_columns(self, instr: ColumnInstruction, used: Set[str], table: str) -> List[str]:
        if instr.kind == InstructionKind.TIMESTAMPS:
            return [
                f'sa.Column("{name}", sa.DateTime(timezone=True), '
                "server_default=sa.func.now(), nullable=True)"
                for name in ("created_at", "updated_at")
            ]
        if instr.kind == InstructionKind.SOFT_DELETES:
            return ['sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)']

        type_expr: str = _type_expr(instr, "sa.", used, table)
        if instr.kind == InstructionKind.PRIMARY_KEY:
            return [f"sa.Column({_q(instr.column or 'id')}, {type_expr}, primary_key=True, autoincrement=True)"]
        kwargs: str = ", ".join(_modifier_kwargs(instr, "sa.", used))
        return [f"sa.Column({_q(instr.column or '')}, {type_expr}, {kwargs})"]

    # ===================================================================
    # 2. SQLAlchemy model
    # ===================================================================

    def render_model(self, ctx: RenderContext) -> str:
        naming: NamingBundle = ctx.naming
        plan: ColumnPlan = ctx.plan or ColumnPlan()
        used: Set[str] = set()
        body: List[str] = []

        body.append(f"class {naming.model_name}(Base):")
        body.append(f'{_INDENT}"""ORM model for the \'{naming.table_name}\' table."""')
        body.append("")
        body.append(f"{_INDENT}__tablename__ = {_q(naming.table_name)}")
        body.append(f"{_INDENT}__fillable__: ClassVar[List[str]] = {format_list_literal(ctx.fillable)}")
        body.append("")

        body.append(f"{_INDENT}# --- Columns ---")
        if not plan.has_primary_key:
            used.update({"BigInteger", "Integer"})
            body.append(
                f"{_INDENT}id: Mapped[int] = mapped_column("
                'BigInteger().with_variant(Integer(), "sqlite"), primary_key=True, autoincrement=True)'
            )
        for instr in plan.instructions:
            body.extend(f"{_INDENT}{line}" for line in self._model_columns(instr, ctx, used))

        if ctx.relationships:
            body.append("")
            body.append(f"{_INDENT}# --- Relationships ---")
            for rel in ctx.relationships:
                body.append(f"{_INDENT}{self._relationship_line(rel)}")

        body.append("")
        body.append(f"{_INDENT}def to_dict(self) -> Dict[str, Any]:")
        body.append(f"{_DOUBLE_INDENT}return {{c.name: getattr(self, c.name) for c in self.__table__.columns}}")
        body.append("")
        pk_name: str = next(
            (i.column for i in plan.instructions if i.kind == InstructionKind.PRIMARY_KEY and i.column),
            "id",
        )
        body.append(f"{_INDENT}def __repr__(self) -> str:")
        body.append(f'{_DOUBLE_INDENT}return f"<{naming.model_name} {pk_name}={{self.{pk_name}!r}}>"')
        body.append("")

        imports: Dict[str, Set[str]] = {
            "typing": {"Any", "ClassVar", "Dict", "List", "Optional"},
            "sqlalchemy.orm": {"Mapped", "mapped_column"},
        }
        sa_names: Set[str] = {n for n in used if n not in ("date", "datetime", "time", "Decimal", "uuid")}
        if sa_names:
            imports["sqlalchemy"] = sa_names
        if ctx.relationships:
            imports["sqlalchemy.orm"].add("relationship")
        hints: Set[str] = {_python_hint(i) for i in plan.instructions if i.column}
        if plan.instructions and any(
            i.kind in (InstructionKind.TIMESTAMPS, InstructionKind.SOFT_DELETES) for i in plan.instructions
        ):
            hints.add("datetime")
        for hint in hints:
            for name in ("datetime", "date", "time"):
                if re.search(rf"\b{name}\b", hint):
                    imports.setdefault("datetime", set()).add(name)
            if "Decimal" in hint:
                imports.setdefault("decimal", set()).add("Decimal")
        header: List[str] = [
            '"""',
            f"SQLAlchemy model for table: {naming.table_name}",
            "Generated by SchemaForge.",
            '"""',
            "",
            "from __future__ import annotations",
            "",
        ]
        if any("uuid.UUID" in h for h in hints):
            header.append("import uuid")
        header.append(build_import_block(imports))
        header.append("")
        header.append(f"from {self.package_root}.database import Base")
        header.append("")
        header.append("")
        return "\n".join(header + body)

    def _model_columns(self, instr: ColumnInstruction, ctx: RenderContext, used: Set[str]) -> List[str]:
        if instr.kind == InstructionKind.TIMESTAMPS:
            used.update({"DateTime", "func"})
            return [
                "created_at: Mapped[Optional[datetime]] = mapped_column("
                "DateTime(timezone=True), server_default=func.now())",
                "updated_at: Mapped[Optional[datetime]] = mapped_column("
                "DateTime(timezone=True), server_default=func.now(), onupdate=func.now())",
            ]
        if instr.kind == InstructionKind.SOFT_DELETES:
            used.add("DateTime")
            return [
                "deleted_at: Mapped[Optional[datetime]] = mapped_column("
                "DateTime(timezone=True), nullable=True)"
            ]

        type_expr: str = _type_expr(instr, "", used, ctx.naming.table_name)
        hint: str = _python_hint(instr)
        if instr.kind == InstructionKind.PRIMARY_KEY:
            return [
                f"{instr.column}: Mapped[int] = mapped_column({type_expr}, "
                "primary_key=True, autoincrement=True)"
            ]

        args: List[str] = [type_expr]
        fk: Optional[ResolvedForeignKey] = _fk_for(instr.column, ctx.foreign_keys)
        if fk is not None:
            used.add("ForeignKey")
            args.append(f'ForeignKey("{fk.target_table}.{fk.target_column}"{_fk_kwargs(fk)})')
        args.extend(_modifier_kwargs(instr, "", used))
        return [f"{instr.column}: Mapped[{hint}] = mapped_column({', '.join(args)})"]

    @staticmethod
    def _relationship_line(rel: ResolvedRelationship) -> str:
        parts: List[str] = [_q(rel.target_model)]
        if rel.back_populates:
            parts.append(f"back_populates={_q(rel.back_populates)}")
        if rel.kind == "belongsToMany":
            parts.append(f"secondary={_q(rel.target_table + '_pivot')}")
        if rel.kind == "hasOne":
            parts.append("uselist=False")
        if rel.is_collection:
            hint: str = f'Mapped[List["{rel.target_model}"]]'
        else:
            hint = f'Mapped[Optional["{rel.target_model}"]]'
        return f"{rel.name}: {hint} = relationship({', '.join(parts)})"

    # ===================================================================
    # 3. FastAPI controller
    # ===================================================================

    def render_controller(self, ctx: RenderContext) -> str:
        naming: NamingBundle = ctx.naming
        model: str = naming.model_name
        var: str = naming.model_module
        pk: str = f"{var}_id"
        model_import: str = ctx.model_import or f"{self.package_root}.models.{naming.model_module}"
        lines: List[str] = []

        lines.append('"""')
        lines.append(f"REST controller for {model} resources.")
        lines.append("Generated by SchemaForge.")
        lines.append('"""')
        lines.append("")
        lines.append("from __future__ import annotations")
        lines.append("")
        lines.append("from typing import Any, Dict, List")
        lines.append("")
        lines.append("from fastapi import APIRouter, Body, Depends, HTTPException, status")
        lines.append("from sqlalchemy import select")
        lines.append("from sqlalchemy.orm import Session")
        lines.append("")
        lines.append(f"from {self.package_root}.database import get_session")
        lines.append(f"from {model_import} import {model}")
        lines.append("")
        lines.append(f'router = APIRouter(tags=["{naming.route_resource_name}"])')
        lines.append("")
        lines.append("")
        lines.append("def _fillable(payload: Dict[str, Any]) -> Dict[str, Any]:")
        lines.append(f"{_INDENT}return {{k: v for k, v in payload.items() if k in {model}.__fillable__}}")
        lines.append("")
        lines.append("")
        lines.append(f"def _get_or_404(session: Session, {pk}: int) -> {model}:")
        lines.append(f"{_INDENT}{var} = session.get({model}, {pk})")
        lines.append(f"{_INDENT}if {var} is None:")
        lines.append(
            f'{_DOUBLE_INDENT}raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="{model} not found")'
        )
        lines.append(f"{_INDENT}return {var}")
        lines.append("")
        lines.append("")
        lines.append('@router.get("/")')
        lines.append("def index(session: Session = Depends(get_session)) -> List[Dict[str, Any]]:")
        lines.append(f"{_INDENT}items = session.scalars(select({model})).all()")
        lines.append(f"{_INDENT}return [item.to_dict() for item in items]")
        lines.append("")
        lines.append("")
        lines.append('@router.post("/", status_code=status.HTTP_201_CREATED)')
        lines.append("def create(")
        lines.append(f"{_INDENT}payload: Dict[str, Any] = Body(...),")
        lines.append(f"{_INDENT}session: Session = Depends(get_session),")
        lines.append(") -> Dict[str, Any]:")
        lines.append(f"{_INDENT}{var} = {model}(**_fillable(payload))")
        lines.append(f"{_INDENT}session.add({var})")
        lines.append(f"{_INDENT}session.commit()")
        lines.append(f"{_INDENT}session.refresh({var})")
        lines.append(f"{_INDENT}return {var}.to_dict()")
        lines.append("")
        lines.append("")
        lines.append(f'@router.get("/{{{pk}}}")')
        lines.append(f"def show({pk}: int, session: Session = Depends(get_session)) -> Dict[str, Any]:")
        lines.append(f"{_INDENT}return _get_or_404(session, {pk}).to_dict()")
        lines.append("")
        lines.append("")
        lines.append(f'@router.put("/{{{pk}}}")')
        lines.append("def update(")
        lines.append(f"{_INDENT}{pk}: int,")
        lines.append(f"{_INDENT}payload: Dict[str, Any] = Body(...),")
        lines.append(f"{_INDENT}session: Session = Depends(get_session),")
        lines.append(") -> Dict[str, Any]:")
        lines.append(f"{_INDENT}{var} = _get_or_404(session, {pk})")
        lines.append(f"{_INDENT}for key, value in _fillable(payload).items():")
        lines.append(f"{_DOUBLE_INDENT}setattr({var}, key, value)")
        lines.append(f"{_INDENT}session.commit()")
        lines.append(f"{_INDENT}session.refresh({var})")
        lines.append(f"{_INDENT}return {var}.to_dict()")
        lines.append("")
        lines.append("")
        lines.append(f'@router.delete("/{{{pk}}}", status_code=status.HTTP_204_NO_CONTENT)')
        lines.append(f"def delete({pk}: int, session: Session = Depends(get_session)) -> None:")
        lines.append(f"{_INDENT}session.delete(_get_or_404(session, {pk}))")
        lines.append(f"{_INDENT}session.commit()")
        lines.append("")
        return "\n".join(lines)

    def render_plain_controller(self, ctx: RenderContext) -> str:
        """Controller with no backing model: a single index endpoint."""
        naming: NamingBundle = ctx.naming
        lines: List[str] = [
            '"""',
            f"{naming.controller_name} endpoints.",
            "Generated by SchemaForge.",
            '"""',
            "",
            "from typing import Any, Dict",
            "",
            "from fastapi import APIRouter",
            "",
            f'router = APIRouter(tags=["{naming.route_resource_name}"])',
            "",
            "",
            '@router.get("/")',
            "def index() -> Dict[str, Any]:",
            f'{_INDENT}return {{"controller": "{naming.controller_name}"}}',
            "",
        ]
        return "\n".join(lines)

    # ===================================================================
    # 4. Jinja2 views
    # ===================================================================

    @staticmethod
    def _view_title(ctx: RenderContext) -> str:
        stem: str = (ctx.view_file or "page").rsplit("/", 1)[-1]
        if stem.endswith(".html"):
            stem = stem[: -len(".html")]
        return to_title_human(stem) or "Page"

    def _view_header(self, ctx: RenderContext) -> List[str]:
        return [f"{{# Generated by SchemaForge: {ctx.view_folder}/{ctx.view_file} #}}"]

    def render_blank_view(self, ctx: RenderContext) -> str:
        lines: List[str] = self._view_header(ctx)
        lines.append('<div class="container">')
        lines.append(f"{_INDENT}<h1>{self._view_title(ctx)}</h1>")
        lines.append("</div>")
        lines.append("")
        return "\n".join(lines)

    def render_table_view(self, ctx: RenderContext) -> str:
        naming: NamingBundle = ctx.naming
        columns: List[str] = ["id"] + list(ctx.fillable)
        item: str = naming.model_module
        collection: str = naming.route_resource_name
        lines: List[str] = self._view_header(ctx)
        lines.append('<div class="container">')
        lines.append(f"{_INDENT}<h1>{to_title_human(collection)}</h1>")
        lines.append(f'{_INDENT}<table class="table">')
        lines.append(f"{_DOUBLE_INDENT}<thead>")
        lines.append(f"{_TRIPLE_INDENT}<tr>")
        for column in columns:
            lines.append(f"{_TRIPLE_INDENT}{_INDENT}<th>{to_title_human(column)}</th>")
        lines.append(f"{_TRIPLE_INDENT}</tr>")
        lines.append(f"{_DOUBLE_INDENT}</thead>")
        lines.append(f"{_DOUBLE_INDENT}<tbody>")
        lines.append(f"{_DOUBLE_INDENT}{{% for {item} in {collection} %}}")
        lines.append(f"{_TRIPLE_INDENT}<tr>")
        for column in columns:
            lines.append(f"{_TRIPLE_INDENT}{_INDENT}<td>{{{{ {item}.{column} }}}}</td>")
        lines.append(f"{_TRIPLE_INDENT}</tr>")
        lines.append(f"{_DOUBLE_INDENT}{{% endfor %}}")
        lines.append(f"{_DOUBLE_INDENT}</tbody>")
        lines.append(f"{_INDENT}</table>")
        lines.append("</div>")
        lines.append("")
        return "\n".join(lines)

    def render_form_view(self, ctx: RenderContext) -> str:
        naming: NamingBundle = ctx.naming
        types: Dict[str, str] = {}
        if ctx.plan is not None:
            for instr in ctx.plan.instructions:
                if instr.column:
                    types[instr.column] = (instr.type_tag or "string").lower()
        lines: List[str] = self._view_header(ctx)
        lines.append('<div class="container">')
        lines.append(f"{_INDENT}<h1>{self._view_title(ctx)} {naming.model_name}</h1>")
        lines.append(f'{_INDENT}<form method="post" action="{{{{ action }}}}">')
        for column in ctx.fillable:
            label: str = to_title_human(column)
            tag: str = types.get(column, "string")
            if tag == "text":
                control: str = (
                    f'<textarea id="{column}" name="{column}">'
                    f"{{{{ {naming.model_module}.{column} if {naming.model_module} else '' }}}}</textarea>"
                )
            elif tag == "enum" and ctx.plan is not None:
                options: List[str] = []
                for instr in ctx.plan.for_column(column):
                    options.extend(f'<option value="{v}">{v}</option>' for v in instr.values)
                control = f'<select id="{column}" name="{column}">{"".join(options)}</select>'
            else:
                input_type: str = _INPUT_TYPES.get(tag, "text")
                control = f'<input type="{input_type}" id="{column}" name="{column}">'
            lines.append(f'{_DOUBLE_INDENT}<div class="field">')
            lines.append(f'{_TRIPLE_INDENT}<label for="{column}">{label}</label>')
            lines.append(f"{_TRIPLE_INDENT}{control}")
            lines.append(f"{_DOUBLE_INDENT}</div>")
        lines.append(f'{_DOUBLE_INDENT}<button type="submit">Save</button>')
        lines.append(f"{_INDENT}</form>")
        lines.append("</div>")
        lines.append("")
        return "\n".join(lines)

    # ===================================================================
    # 5. Route registry
    # ===================================================================

    def _routes_preamble(self) -> str:
        lines: List[str] = [
            '"""',
            "Application route registry.",
            "",
            "Each ``resource(prefix, target)`` call mounts the router found at the",
            "dotted path *target* under ``/<prefix>``.",
            '"""',
            "",
            "from importlib import import_module",
            "",
            "from fastapi import APIRouter",
            "",
            "api_router = APIRouter()",
            "",
            "",
            "def resource(prefix: str, target: str) -> None:",
            f'{_INDENT}module_path, _, attr = target.rpartition(".")',
            f'{_INDENT}api_router.include_router(getattr(import_module(module_path), attr), prefix=f"/{{prefix}}")',
            "",
        ]
        return "\n".join(lines)


__all__: List[str] = [
    "DEFAULT_SLOT",
    "RenderContext",
    "ArtifactEmitter",
    "FastAPIEmitter",
]

logger.debug("schemaforge.templates loaded — %d public symbols.", len(__all__))
