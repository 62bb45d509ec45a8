# File: schemaforge/models.py
"""
SchemaForge - Core Data Models
================================
Pydantic V2 models describing the declarative schema document, plus the
small derived records (naming bundle, policy, run context) threaded through
the build. These models are the single source of truth for the pipeline:
Schema Loading → Normalisation → Compilation → Emission → Storage.

Input models accept the key spellings found in hand-written schema files
(``on``/``references``/``onDelete`` for foreign keys, ``enumValues`` for enum
members, ``softDeletes`` on tables) and silently ignore unknown keys such as
``__meta__``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from schemaforge.utils import to_snake_case, to_studly_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.models")

# ---------------------------------------------------------------------------
# Enums — fixed sets used across the entire project
# ---------------------------------------------------------------------------


class ArtifactKind(str, Enum):
    """The four per-table artifact families plus the route registry."""

    MIGRATION = "migration"
    MODEL = "model"
    CONTROLLER = "controller"
    VIEW = "view"
    ROUTES = "routes"


class RelationKind(str, Enum):
    """Declared ORM relationship kinds (model-level)."""

    BELONGS_TO = "belongsTo"
    HAS_MANY = "hasMany"
    HAS_ONE = "hasOne"
    BELONGS_TO_MANY = "belongsToMany"


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE / ON UPDATE behaviour."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class CollisionPolicy(str, Enum):
    """How to treat a table-derived name also declared at top level."""

    ASK = "ask"
    DECLARED = "declared"
    DERIVED = "derived"
    BOTH = "both"


class WriteDecision(str, Enum):
    """Outcome of conflict resolution for one artifact."""

    WRITE = "write"
    SKIP = "skip"


class RouteChoice(str, Enum):
    """Operator choice when a generated route block already exists."""

    REPLACE = "Replace"
    MERGE = "Merge"
    SKIP = "Skip"


# ---------------------------------------------------------------------------
# Mixin: shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=True,
    frozen=True,
    extra="ignore",
)

_SETTINGS_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=False,
    frozen=False,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Column-level primitives
# ---------------------------------------------------------------------------


class ForeignKeySpec(BaseModel):
    """Describes the reference a column makes to another table."""

    model_config = _SHARED_CONFIG

    target_table: Optional[str] = Field(
        default=None,
        alias="on",
        description="Referenced table. May be missing; no constraint is emitted then.",
    )
    target_column: str = Field(
        default="id", alias="references", description="Referenced column."
    )
    on_delete: Optional[str] = Field(
        default=None, alias="onDelete", description="ON DELETE action, verbatim."
    )
    on_update: Optional[str] = Field(
        default=None, alias="onUpdate", description="ON UPDATE action, verbatim."
    )

    @model_validator(mode="before")
    @classmethod
    def _yaml_on_key(cls, data: Any) -> Any:
        # YAML 1.1 loads an unquoted ``on:`` key as boolean True
        if isinstance(data, dict) and True in data:
            data = dict(data)
            data.setdefault("on", data.pop(True))
        return data

    @field_validator("target_table", "on_delete", "on_update", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("target_column", mode="before")
    @classmethod
    def _default_target_column(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "id"
        return v.strip() if isinstance(v, str) else v

    def __repr__(self) -> str:
        return f"<FK → {self.target_table}.{self.target_column}>"


class ColumnSpec(BaseModel):
    """
    Declaration of a single column.

    ``length`` is either a plain integer or a ``"P,S"`` string for numeric
    types. Duplicate names are tolerated here and filtered by the column
    compiler.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Column name (snake_case).")
    type: str = Field(default="string", description="Base type tag, e.g. 'string'.")
    length: Optional[Union[int, str]] = Field(
        default=None, description="Length, or 'P,S' for decimal types."
    )
    scale: Optional[int] = Field(default=None, ge=0, description="Decimal scale.")
    nullable: bool = Field(default=False, description="Whether NULL is allowed.")
    unique: bool = Field(default=False, description="Add a UNIQUE constraint.")
    index: bool = Field(default=False, alias="indexed", description="Add an index.")
    default: Any = Field(default=None, description="Literal default value.")
    comment: Optional[str] = Field(default=None, description="Column comment.")
    values: List[str] = Field(
        default_factory=list, alias="enumValues", description="Enum members."
    )
    foreign: Optional[ForeignKeySpec] = Field(
        default=None, description="Foreign-key reference, if any."
    )

    @field_validator("name", mode="before")
    @classmethod
    def _snake_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return to_snake_case(v.strip())
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "string"
        return v.strip() if isinstance(v, str) else v

    @field_validator("values", mode="before")
    @classmethod
    def _split_values(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (list, tuple)):
            # YAML/JSON members such as [1, 2, 3] arrive as numbers
            return [str(item).strip() for item in v if item is not None and str(item).strip()]
        return v or []

    def __repr__(self) -> str:
        return f"<Column {self.name} {self.type}>"


# ---------------------------------------------------------------------------
# Relations & views
# ---------------------------------------------------------------------------


class RelationSpec(BaseModel):
    """
    A declared relationship such as ``"role:belongsTo"``.

    The kind is kept verbatim; unknown kinds are reported and dropped by the
    relationship resolver rather than rejected at parse time.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Related entity name.")
    kind: str = Field(default=RelationKind.BELONGS_TO.value, description="Relation kind.")

    @model_validator(mode="before")
    @classmethod
    def _from_compact(cls, data: Any) -> Any:
        if isinstance(data, str):
            name, _, kind = data.partition(":")
            return {"name": name.strip(), "kind": kind.strip() or RelationKind.BELONGS_TO.value}
        return data

    @computed_field  # type: ignore[misc]
    @property
    def is_known(self) -> bool:
        return self.kind in {k.value for k in RelationKind}


class ViewSpec(BaseModel):
    """
    A view grouping: ``folder/[a,b]``, ``folder/file`` or a bare ``file``.

    ``template`` names the emitter slot; ``default`` renders a blank page.
    """

    model_config = _SHARED_CONFIG

    path: str = Field(..., min_length=1, description="View path expression.")
    template: str = Field(default="default", description="Emitter template slot.")

    @model_validator(mode="before")
    @classmethod
    def _from_compact(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"path": data.strip()}
        if isinstance(data, dict) and "path" not in data and "name" in data:
            data = dict(data)
            data["path"] = data.pop("name")
        return data


class ModelSpec(BaseModel):
    """A standalone model declared at document level."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Model class name (StudlyCase).")
    table: Optional[str] = Field(default=None, description="Backing table name.")
    relations: List[RelationSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _from_compact(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data.strip()}
        return data

    @field_validator("name")
    @classmethod
    def _studly(cls, v: str) -> str:
        return to_studly_case(v)


class ControllerSpec(BaseModel):
    """A standalone controller declared at document level."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Controller class name.")
    model: Optional[str] = Field(default=None, description="Model the controller serves.")

    @model_validator(mode="before")
    @classmethod
    def _from_compact(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data.strip()}
        return data

    @field_validator("name")
    @classmethod
    def _controller_suffix(cls, v: str) -> str:
        studly: str = to_studly_case(v)
        if not studly.endswith("Controller"):
            studly += "Controller"
        return studly


# ---------------------------------------------------------------------------
# Table & document
# ---------------------------------------------------------------------------


class TableSpec(BaseModel):
    """Complete declaration of one table."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Table name (snake_case).")
    columns: List[ColumnSpec] = Field(default_factory=list)
    timestamps: bool = Field(default=True, description="Append created_at/updated_at.")
    soft_deletes: bool = Field(
        default=False, alias="softDeletes", description="Append deleted_at."
    )
    views: List[ViewSpec] = Field(default_factory=list)
    relations: List[RelationSpec] = Field(default_factory=list)
    warnings: List[str] = Field(
        default_factory=list, description="Column entries dropped while normalising."
    )

    @field_validator("name", mode="before")
    @classmethod
    def _snake_name(cls, v: Any) -> Any:
        if isinstance(v, str):
            return to_snake_case(v.strip())
        return v

    @computed_field  # type: ignore[misc]
    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def __repr__(self) -> str:
        return f"<Table {self.name} ({len(self.columns)} columns)>"


class SchemaDocument(BaseModel):
    """
    The root model: every table plus the standalone components.

    Immutable once built. ``table_errors`` carries per-entry normalisation
    failures so they surface in the build report instead of aborting.
    """

    model_config = _SHARED_CONFIG

    tables: List[TableSpec] = Field(default_factory=list)
    models: List[ModelSpec] = Field(default_factory=list)
    controllers: List[ControllerSpec] = Field(default_factory=list)
    views: List[ViewSpec] = Field(default_factory=list)
    table_errors: List[str] = Field(default_factory=list)

    def get_table(self, name: str) -> Optional[TableSpec]:
        """First table declared under *name*, if any."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    @computed_field  # type: ignore[misc]
    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    @computed_field  # type: ignore[misc]
    @property
    def declared_model_names(self) -> List[str]:
        return [m.name for m in self.models]

    @computed_field  # type: ignore[misc]
    @property
    def declared_controller_names(self) -> List[str]:
        return [c.name for c in self.controllers]

    def __repr__(self) -> str:
        return (
            f"<SchemaDocument {len(self.tables)} tables, {len(self.models)} models, "
            f"{len(self.controllers)} controllers, {len(self.views)} views>"
        )


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """
    Master configuration for one build.

    Read from the ``config`` key of the schema document and then overridden
    by command-line flags.
    """

    model_config = _SETTINGS_CONFIG

    module: Optional[str] = Field(
        default=None, description="Module scope (StudlyCase) for models/controllers/views."
    )
    force: bool = Field(default=False, description="Overwrite without prompting.")
    collision_policy: CollisionPolicy = Field(
        default=CollisionPolicy.ASK,
        description="Resolution for table names also declared as models/controllers.",
    )

    # -- Output layout ------------------------------------------------------
    migrations_dir: str = Field(default="migrations/versions")
    models_dir: str = Field(default="app/models")
    controllers_dir: str = Field(default="app/controllers")
    modules_dir: str = Field(default="app/modules")
    views_dir: str = Field(default="app/templates")
    routes_file: str = Field(default="app/routes.py")
    package_root: str = Field(
        default="app", description="Dotted import root of the generated application."
    )
    stubs_dir: Optional[str] = Field(
        default=None, description="Directory of '<kind>.<slot>.stub' template overrides."
    )

    @field_validator("module", mode="before")
    @classmethod
    def _studly_module(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str):
            if not v.strip().isalpha():
                raise ValueError(f"Module name must contain letters only, got '{v}'.")
            return to_studly_case(v.strip())
        return v

    @computed_field  # type: ignore[misc]
    @property
    def module_snake(self) -> Optional[str]:
        return to_snake_case(self.module) if self.module else None

    def scoped_dir(self, part: str, module: Optional[str]) -> str:
        """
        Output directory for ``models``, ``controllers`` or ``views``.

        With a *module* scope, models and controllers move under
        ``<modules_dir>/<module_snake>/`` and views under ``<views_dir>/<module_snake>``.
        """
        flat: Dict[str, str] = {
            "models": self.models_dir,
            "controllers": self.controllers_dir,
            "views": self.views_dir,
        }
        if not module:
            return flat[part]
        snake: str = to_snake_case(module)
        if part == "views":
            return f"{self.views_dir}/{snake}"
        return f"{self.modules_dir}/{snake}/{part}"

    @property
    def model_dir(self) -> str:
        return self.scoped_dir("models", self.module)

    @property
    def controller_dir(self) -> str:
        return self.scoped_dir("controllers", self.module)

    @property
    def view_root(self) -> str:
        return self.scoped_dir("views", self.module)


# ---------------------------------------------------------------------------
# Derived records (plain dataclasses, not parsed from input)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NamingBundle:
    """Every name derived from one table name. Emitters consume only this."""

    table_name: str
    model_name: str
    controller_name: str
    route_resource_name: str
    variable_name: str
    model_module: str
    controller_module: str


@dataclass(slots=True)
class GenerationPolicy:
    """Blanket answers collected during a run."""

    force_overwrite_all: bool = False
    skip_all: bool = False
    module_scope: Optional[str] = None


@dataclass(slots=True)
class RunContext:
    """Per-build mutable state. Created by the orchestrator, never global."""

    policy: GenerationPolicy = field(default_factory=GenerationPolicy)
    processed_tables: Set[str] = field(default_factory=set)
    force: bool = False
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ArtifactKind",
    "RelationKind",
    "ReferentialAction",
    "CollisionPolicy",
    "WriteDecision",
    "RouteChoice",
    "ForeignKeySpec",
    "ColumnSpec",
    "RelationSpec",
    "ViewSpec",
    "ModelSpec",
    "ControllerSpec",
    "TableSpec",
    "SchemaDocument",
    "GenerationConfig",
    "NamingBundle",
    "GenerationPolicy",
    "RunContext",
]

logger.debug("schemaforge.models loaded — %d public symbols.", len(__all__))
