# File: schemaforge/validators.py
"""
SchemaForge - Schema Validators
=================================
Cross-entity checks run before (or instead of) a build.

Pydantic already rejects structurally broken entries while the document is
normalised; a rejected table surfaces here as a ``TABLE_ERROR`` error and a
rejected column as a ``COLUMN_DROPPED`` warning. Everything else is
advisory: the generator copes with duplicates, missing enum values and
dangling foreign keys, but the operator usually wants to hear about them.

Usage::

    from schemaforge.validators import validate_document
    result = validate_document(document)
    if not result.is_valid:
        print(result.format_report())
"""

from __future__ import annotations

import keyword
import logging
from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Set

from schemaforge.models import SchemaDocument, TableSpec
from schemaforge.normalizer import derive_naming

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.validators")

_ENUM_TYPES: Set[str] = {"enum"}

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight issue descriptor."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` items from the individual checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    def add_error(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(self, code: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def infos(self) -> List[ValidationError]:
        return [e for e in self._items if e.level == "info"]

    @property
    def all_items(self) -> List[ValidationError]:
        return list(self._items)

    @property
    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    @property
    def is_valid(self) -> bool:
        return not any(e.is_error for e in self._items)

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are no errors."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self, include_info: bool = False) -> str:
        lines: List[str] = [self.summary(), ""]
        for item in self._items:
            if not include_info and item.level == "info":
                continue
            prefix: str = {"error": "❌", "warning": "⚠️", "info": "ℹ️"}.get(item.level, "•")
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_table_errors(document: SchemaDocument) -> ValidationResult:
    """Entries the normaliser had to drop are hard errors."""
    result: ValidationResult = ValidationResult()
    for message in document.table_errors:
        result.add_error("TABLE_ERROR", message)
    return result


def validate_document_size(document: SchemaDocument) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    if not (document.tables or document.models or document.controllers or document.views):
        result.add_warning("EMPTY_DOCUMENT", "The schema declares no tables, models, controllers or views.")
    return result


def validate_table_names(document: SchemaDocument) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    counts: Counter = Counter(t.name for t in document.tables)
    for name, count in counts.items():
        if count > 1:
            result.add_warning(
                "DUPLICATE_TABLE",
                f"Table '{name}' is declared {count} times; later declarations need confirmation to regenerate.",
                {"table": name},
            )
    for table in document.tables:
        model_name: str = derive_naming(table.name).model_name
        if not model_name.isidentifier():
            result.add_warning(
                "TABLE_NAME_IDENTIFIER",
                f"Table '{table.name}' yields model class '{model_name}', which is not a valid identifier.",
                {"table": table.name},
            )
    return result


def _check_columns(table: TableSpec, result: ValidationResult) -> None:
    for message in table.warnings:
        result.add_warning("COLUMN_DROPPED", message, {"table": table.name})
    seen: Set[str] = set()
    for column in table.columns:
        if column.name in seen:
            result.add_warning(
                "DUPLICATE_COLUMN",
                f"Column '{table.name}.{column.name}' is declared more than once; only the first is kept.",
                {"table": table.name, "column": column.name},
            )
            continue
        seen.add(column.name)

        if keyword.iskeyword(column.name):
            result.add_warning(
                "COLUMN_RESERVED_WORD",
                f"Column '{table.name}.{column.name}' is a Python keyword and cannot be a model attribute.",
                {"table": table.name, "column": column.name},
            )
        if column.type.lower() in _ENUM_TYPES and not column.values:
            result.add_warning(
                "ENUM_WITHOUT_VALUES",
                f"Enum column '{table.name}.{column.name}' has no values.",
                {"table": table.name, "column": column.name},
            )


def validate_columns(document: SchemaDocument) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    for table in document.tables:
        _check_columns(table, result)
    return result


def validate_foreign_keys(document: SchemaDocument) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    known: Set[str] = set(document.table_names)
    for table in document.tables:
        for column in table.columns:
            fk = column.foreign
            if fk is None:
                continue
            if not fk.target_table:
                result.add_warning(
                    "FK_WITHOUT_TARGET",
                    f"Foreign key on '{table.name}.{column.name}' names no target table; it will be skipped.",
                    {"table": table.name, "column": column.name},
                )
            elif fk.target_table not in known:
                result.add_info(
                    "FK_TARGET_NOT_IN_DOCUMENT",
                    f"Foreign key '{table.name}.{column.name}' references '{fk.target_table}', "
                    "which is not declared in this schema. The constraint is still emitted.",
                    {"table": table.name, "target": fk.target_table},
                )
    return result


def validate_relations(document: SchemaDocument) -> ValidationResult:
    result: ValidationResult = ValidationResult()
    owners: List[tuple] = [(t.name, t.relations) for t in document.tables]
    owners.extend((m.name, m.relations) for m in document.models)
    for owner, relations in owners:
        for relation in relations:
            if not relation.is_known:
                result.add_warning(
                    "UNKNOWN_RELATION_KIND",
                    f"Relation '{owner}.{relation.name}' has unknown kind '{relation.kind}'; it will be ignored.",
                    {"owner": owner, "kind": relation.kind},
                )
    return result


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def validate_document(document: SchemaDocument) -> ValidationResult:
    """Run every check and merge the results."""
    result: ValidationResult = ValidationResult()
    checks: List[Callable[[SchemaDocument], ValidationResult]] = [
        validate_table_errors,
        validate_document_size,
        validate_table_names,
        validate_columns,
        validate_foreign_keys,
        validate_relations,
    ]
    for check in checks:
        logger.debug("Running validator: %s", check.__name__)
        result.merge(check(document))

    if result.is_valid:
        logger.info("Validation PASSED. %s", result.summary())
    else:
        logger.error("Validation FAILED. %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_document",
]
