# File: schemaforge/__init__.py
"""
SchemaForge — Schema-Driven Application Scaffolding
=====================================================

Turns a declarative description of database tables (JSON/YAML, or compact
``table: ...`` lines) into the artifacts of a FastAPI application: Alembic
migrations, SQLAlchemy 2.0 models, CRUD controllers, Jinja2 views and a
route registry whose generated block is merged without touching user code.

Architecture overview::

    ┌──────────────┐     ┌───────────────────┐     ┌────────────────┐
    │  CLI / Entry │────▶│ ScaffoldGenerator │────▶│ FastAPIEmitter │
    │   (cli.py)   │     │  (generator.py)   │     │ (templates.py) │
    └──────────────┘     └─────────┬─────────┘     └────────────────┘
                                   │
          ┌──────────────┬─────────┼──────────┬──────────────┐
          ▼              ▼         ▼          ▼              ▼
    ┌──────────┐  ┌──────────┐ ┌────────┐ ┌─────────┐  ┌──────────┐
    │normalizer│  │ columns  │ │foreign_│ │conflicts│  │  routes  │
    │          │  │          │ │  keys  │ │ prompts │  │ storage  │
    └──────────┘  └──────────┘ └────────┘ └─────────┘  └──────────┘

Usage::

    # As a library
    from schemaforge import FileSystemStorage, ScaffoldGenerator, normalize_document
    document = normalize_document({"tables": ["table: users name:string"]})
    report = ScaffoldGenerator(FileSystemStorage("./myapp")).build(document)

    # From the command line
    python -m schemaforge --schema schema.yaml -o ./myapp --verbose
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from schemaforge.errors import (
    MissingTableName,
    SchemaError,
    SchemaForgeError,
    SchemaParseError,
    StorageError,
    TemplateNotFound,
)
from schemaforge.models import (
    CollisionPolicy,
    ColumnSpec,
    ForeignKeySpec,
    GenerationConfig,
    RouteChoice,
    SchemaDocument,
    TableSpec,
)
from schemaforge.normalizer import derive_naming, normalize_compact_lines, normalize_document
from schemaforge.prompts import ConsolePrompt, NonInteractivePrompt, ScriptedPrompt
from schemaforge.storage import FileSystemStorage, MemoryStorage
from schemaforge.templates import ArtifactEmitter, FastAPIEmitter
from schemaforge.validators import ValidationResult, validate_document
from schemaforge.generator import BuildReport, ScaffoldGenerator, load_schema_file, parse_raw_schema

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestrator
    "ScaffoldGenerator",
    "BuildReport",
    "load_schema_file",
    "parse_raw_schema",
    # Models
    "CollisionPolicy",
    "ColumnSpec",
    "ForeignKeySpec",
    "GenerationConfig",
    "RouteChoice",
    "SchemaDocument",
    "TableSpec",
    # Normalisation
    "derive_naming",
    "normalize_compact_lines",
    "normalize_document",
    # Collaborators
    "ArtifactEmitter",
    "FastAPIEmitter",
    "ConsolePrompt",
    "NonInteractivePrompt",
    "ScriptedPrompt",
    "FileSystemStorage",
    "MemoryStorage",
    # Validation
    "ValidationResult",
    "validate_document",
    # Errors
    "SchemaForgeError",
    "SchemaError",
    "SchemaParseError",
    "MissingTableName",
    "TemplateNotFound",
    "StorageError",
]
