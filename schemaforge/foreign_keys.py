# File: schemaforge/foreign_keys.py
"""
SchemaForge - Foreign Key & Relationship Resolution
=====================================================
Produces the constraint list for one table and the ORM relationships its
model should expose.

Resolution depends only on the table itself (constraints) or on the whole
document (relationships), never on declaration order, so a reference to a
table declared later resolves exactly like one declared earlier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from schemaforge.models import (
    ReferentialAction,
    RelationKind,
    RelationSpec,
    SchemaDocument,
    TableSpec,
)
from schemaforge.normalizer import derive_naming, naming_for_model
from schemaforge.utils import to_plural, to_singular, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.foreign_keys")

_ACTION_ALIASES: Dict[str, ReferentialAction] = {
    "cascade": ReferentialAction.CASCADE,
    "set null": ReferentialAction.SET_NULL,
    "set_null": ReferentialAction.SET_NULL,
    "setnull": ReferentialAction.SET_NULL,
    "nullify": ReferentialAction.SET_NULL,
    "set default": ReferentialAction.SET_DEFAULT,
    "set_default": ReferentialAction.SET_DEFAULT,
    "setdefault": ReferentialAction.SET_DEFAULT,
    "restrict": ReferentialAction.RESTRICT,
    "no action": ReferentialAction.NO_ACTION,
    "no_action": ReferentialAction.NO_ACTION,
    "noaction": ReferentialAction.NO_ACTION,
}


@dataclass(frozen=True, slots=True)
class ResolvedForeignKey:
    """A constraint ready for emission."""

    column: str
    target_table: str
    target_column: str = "id"
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    def __repr__(self) -> str:
        return f"<FK {self.column} → {self.target_table}.{self.target_column}>"


@dataclass(frozen=True, slots=True)
class ResolvedRelationship:
    """
    One ORM relationship attribute on a model.

    ``back_populates`` is only set when both sides were derived from the
    same foreign key inside the document.
    """

    name: str
    kind: str
    target_model: str
    target_table: str
    foreign_column: Optional[str] = None
    back_populates: Optional[str] = None

    @property
    def is_collection(self) -> bool:
        return self.kind in (RelationKind.HAS_MANY.value, RelationKind.BELONGS_TO_MANY.value)


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


def normalize_action(raw: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Map a user-supplied referential action to its SQL spelling.

    Returns ``(action, warning)``; unknown actions yield ``(None, message)``.

    Examples:
        >>> normalize_action("cascade")
        ('CASCADE', None)
        >>> normalize_action(None)
        (None, None)
    """
    if raw is None:
        return None, None
    key: str = " ".join(raw.strip().lower().replace("-", " ").split())
    action: Optional[ReferentialAction] = _ACTION_ALIASES.get(key)
    if action is None:
        return None, f"Unknown referential action '{raw}' was dropped."
    return action.value, None


def resolve_foreign_keys(table: TableSpec) -> Tuple[List[ResolvedForeignKey], List[str]]:
    """
    Resolve the constraints declared on *table*'s columns.

    A declaration without a target table yields a warning and no constraint.
    """
    resolved: List[ResolvedForeignKey] = []
    warnings: List[str] = []
    seen: set = set()

    for column in table.columns:
        if column.foreign is None or column.name in seen:
            continue
        seen.add(column.name)
        fk = column.foreign
        if not fk.target_table:
            warnings.append(
                f"Foreign key on '{table.name}.{column.name}' has no target table; no constraint emitted."
            )
            continue

        on_delete, delete_warning = normalize_action(fk.on_delete)
        on_update, update_warning = normalize_action(fk.on_update)
        for message in (delete_warning, update_warning):
            if message:
                warnings.append(f"{table.name}.{column.name}: {message}")

        resolved.append(
            ResolvedForeignKey(
                column=column.name,
                target_table=to_snake_case(fk.target_table),
                target_column=fk.target_column,
                on_delete=on_delete,
                on_update=on_update,
            )
        )

    for message in warnings:
        logger.warning(message)
    return resolved, warnings


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


def _belongs_to_name(column: str, target_table: str) -> str:
    """``user_id`` → ``user``; otherwise the singular of the target table."""
    if column.endswith("_id") and len(column) > 3:
        return column[:-3]
    return to_singular(target_table)


def _has_many_name(source_table: str, column: str, target_table: str) -> str:
    """Plural of the source table, qualified when the FK column is not the default one."""
    default_column: str = f"{to_singular(target_table)}_id"
    base: str = to_plural(to_singular(source_table))
    if column == default_column or not column.endswith("_id"):
        return base
    return f"{base}_as_{column[:-3]}"


def resolve_relationships(document: SchemaDocument, table: TableSpec) -> List[ResolvedRelationship]:
    """
    Relationships exposed by the model of *table*.

    Order: ``belongsTo`` for each own foreign key, ``hasMany`` for each foreign
    key elsewhere in the document that targets this table, then declared
    relations. Duplicate attribute names keep the first occurrence.
    """
    relationships: List[ResolvedRelationship] = []
    names: set = set()

    def _add(rel: ResolvedRelationship) -> None:
        if rel.name in names:
            logger.debug("Relationship '%s.%s' already defined; skipped.", table.name, rel.name)
            return
        names.add(rel.name)
        relationships.append(rel)

    own_fks, _ = resolve_foreign_keys(table)
    for fk in own_fks:
        target = derive_naming(fk.target_table)
        attr: str = _belongs_to_name(fk.column, fk.target_table)
        inverse: Optional[str] = None
        if fk.target_table != table.name and document.get_table(fk.target_table) is not None:
            inverse = _has_many_name(table.name, fk.column, fk.target_table)
        _add(
            ResolvedRelationship(
                name=attr,
                kind=RelationKind.BELONGS_TO.value,
                target_model=target.model_name,
                target_table=fk.target_table,
                foreign_column=fk.column,
                back_populates=inverse,
            )
        )

    # Tables are scanned in document order, but the result does not depend on
    # where *table* itself sits relative to them.
    seen_sources: set = set()
    for other in document.tables:
        if other.name in seen_sources:
            continue
        seen_sources.add(other.name)
        if other.name == table.name:
            continue
        other_fks, _ = resolve_foreign_keys(other)
        for fk in other_fks:
            if fk.target_table != table.name:
                continue
            source = derive_naming(other.name)
            _add(
                ResolvedRelationship(
                    name=_has_many_name(other.name, fk.column, table.name),
                    kind=RelationKind.HAS_MANY.value,
                    target_model=source.model_name,
                    target_table=other.name,
                    foreign_column=fk.column,
                    back_populates=_belongs_to_name(fk.column, table.name),
                )
            )

    for rel in declared_relationships(table.name, table.relations):
        _add(rel)

    return relationships


def declared_relationships(owner: str, relations: List[RelationSpec]) -> List[ResolvedRelationship]:
    """
    Turn declared ``name:kind`` relations into relationships.

    Unknown kinds are dropped with a warning.
    """
    resolved: List[ResolvedRelationship] = []
    for rel in relations:
        if not rel.is_known:
            logger.warning(
                "Relation '%s:%s' on '%s' has an unknown kind and was dropped.",
                rel.name,
                rel.kind,
                owner,
            )
            continue
        singular: str = to_singular(to_snake_case(rel.name))
        target = naming_for_model(singular)
        if rel.kind in (RelationKind.HAS_MANY.value, RelationKind.BELONGS_TO_MANY.value):
            attr: str = to_plural(singular)
        else:
            attr = singular
        resolved.append(
            ResolvedRelationship(
                name=attr,
                kind=rel.kind,
                target_model=target.model_name,
                target_table=target.table_name,
            )
        )
    return resolved


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ResolvedForeignKey",
    "ResolvedRelationship",
    "normalize_action",
    "resolve_foreign_keys",
    "resolve_relationships",
    "declared_relationships",
]
