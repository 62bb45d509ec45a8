# File: schemaforge/columns.py
"""
SchemaForge - Column Compiler
===============================
Translates a table's column declarations into an ordered, emitter-neutral
instruction list.

Rules, applied per column in declaration order:
    1. A repeated column name is dropped with a warning.
    2. ``id`` becomes the primary key; ``bigIncrements`` / ``increments`` are
       ignored with a warning.
    3. ``created_at`` / ``updated_at`` are dropped when the table has
       timestamps; a single TIMESTAMPS instruction closes the plan.
    4. ``enum`` needs a non-empty ``values`` list, otherwise it is omitted.
    5. ``decimal`` / ``float`` / ``double`` take precision and scale from
       ``length = "P,S"`` or ``length`` + ``scale``; string-like types take
       ``length``.
    6. Modifiers always follow the order nullable, unique, index, default,
       comment.

The compiler never raises: every problem ends up in ``ColumnPlan.warnings``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Set, Tuple

from schemaforge.models import ColumnSpec, TableSpec

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.columns")

# ---------------------------------------------------------------------------
# Type families
# ---------------------------------------------------------------------------

PRIMARY_KEY_TYPES: frozenset = frozenset({"id", "bigincrements", "increments"})
DECIMAL_TYPES: frozenset = frozenset({"decimal", "float", "double"})
STRING_TYPES: frozenset = frozenset({"string", "char", "varchar"})
INTEGER_TYPES: frozenset = frozenset({"integer", "biginteger", "unsignedbiginteger"})
TIMESTAMP_COLUMNS: frozenset = frozenset({"created_at", "updated_at"})

MODIFIER_ORDER: Tuple[str, ...] = ("nullable", "unique", "index", "default", "comment")


class InstructionKind(str, Enum):
    """What a single compiled instruction produces."""

    PRIMARY_KEY = "primary_key"
    COLUMN = "column"
    ENUM = "enum"
    FOREIGN_ID = "foreign_id"
    TIMESTAMPS = "timestamps"
    SOFT_DELETES = "soft_deletes"


@dataclass(frozen=True, slots=True)
class ColumnModifier:
    name: str
    value: Any = True


@dataclass(frozen=True, slots=True)
class ColumnInstruction:
    """
    One emitter-neutral column instruction.

    ``type_tag`` keeps the declared spelling (``bigInteger``, ``dateTime``);
    emitters map it case-insensitively.
    """

    kind: InstructionKind
    column: Optional[str] = None
    type_tag: Optional[str] = None
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    values: Tuple[str, ...] = ()
    modifiers: Tuple[ColumnModifier, ...] = ()

    def modifier(self, name: str) -> Optional[ColumnModifier]:
        for mod in self.modifiers:
            if mod.name == name:
                return mod
        return None

    @property
    def nullable(self) -> bool:
        return self.modifier("nullable") is not None

    @property
    def modifier_names(self) -> List[str]:
        return [m.name for m in self.modifiers]


@dataclass(slots=True)
class ColumnPlan:
    """Compiled instructions plus the warnings raised while compiling."""

    instructions: List[ColumnInstruction] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def has_primary_key(self) -> bool:
        return any(i.kind == InstructionKind.PRIMARY_KEY for i in self.instructions)

    @property
    def column_names(self) -> List[str]:
        return [i.column for i in self.instructions if i.column]

    def for_column(self, name: str) -> List[ColumnInstruction]:
        return [i for i in self.instructions if i.column == name]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _modifiers(column: ColumnSpec) -> Tuple[ColumnModifier, ...]:
    mods: List[ColumnModifier] = []
    if column.nullable:
        mods.append(ColumnModifier("nullable"))
    if column.unique:
        mods.append(ColumnModifier("unique"))
    if column.index:
        mods.append(ColumnModifier("index"))
    if column.default is not None:
        mods.append(ColumnModifier("default", column.default))
    if column.comment:
        mods.append(ColumnModifier("comment", column.comment))
    return tuple(mods)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _precision_scale(column: ColumnSpec) -> Tuple[Optional[int], Optional[int]]:
    """Read ``"P,S"`` or ``length`` + ``scale``."""
    if isinstance(column.length, str) and "," in column.length:
        raw_p, _, raw_s = column.length.partition(",")
        return _to_int(raw_p), _to_int(raw_s)
    precision: Optional[int] = _to_int(column.length) if column.length is not None else None
    return precision, column.scale


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


def compile_column(column: ColumnSpec, table: TableSpec, plan: ColumnPlan) -> None:
    """Append the instruction(s) for one column to *plan*."""
    type_tag: str = column.type
    tag: str = type_tag.lower()
    where: str = f"{table.name}.{column.name}"

    if tag in PRIMARY_KEY_TYPES:
        if tag == "id":
            plan.instructions.append(
                ColumnInstruction(kind=InstructionKind.PRIMARY_KEY, column=column.name, type_tag=type_tag)
            )
        else:
            plan.warnings.append(
                f"Column '{where}' uses '{type_tag}', which is not supported; use 'id' for the primary key."
            )
        return

    if table.timestamps and column.name in TIMESTAMP_COLUMNS:
        plan.warnings.append(
            f"Column '{where}' is managed by timestamps and was dropped."
        )
        return

    if table.soft_deletes and column.name == "deleted_at":
        plan.warnings.append(
            f"Column '{where}' is managed by soft deletes and was dropped."
        )
        return

    modifiers: Tuple[ColumnModifier, ...] = _modifiers(column)

    if tag == "enum":
        if not column.values:
            plan.warnings.append(f"Enum column '{where}' has no values and was omitted.")
            return
        plan.instructions.append(
            ColumnInstruction(
                kind=InstructionKind.ENUM,
                column=column.name,
                type_tag=type_tag,
                values=tuple(column.values),
                modifiers=modifiers,
            )
        )
        return

    if column.foreign is not None and column.foreign.target_table and tag in INTEGER_TYPES:
        plan.instructions.append(
            ColumnInstruction(
                kind=InstructionKind.FOREIGN_ID,
                column=column.name,
                type_tag=type_tag,
                modifiers=modifiers,
            )
        )
        return

    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    if tag in DECIMAL_TYPES:
        precision, scale = _precision_scale(column)
    elif tag in STRING_TYPES and column.length is not None:
        length = _to_int(column.length)
        if length is None:
            plan.warnings.append(f"Column '{where}' has a non-numeric length '{column.length}'; ignored.")

    plan.instructions.append(
        ColumnInstruction(
            kind=InstructionKind.COLUMN,
            column=column.name,
            type_tag=type_tag,
            length=length,
            precision=precision,
            scale=scale,
            modifiers=modifiers,
        )
    )


def compile_columns(table: TableSpec) -> ColumnPlan:
    """
    Compile every column of *table* into a ``ColumnPlan``.

    Examples:
        >>> t = TableSpec(name="tags", columns=[{"name": "label"}, {"name": "label"}])
        >>> plan = compile_columns(t)
        >>> [i.kind.value for i in plan.instructions]
        ['column', 'timestamps']
        >>> len(plan.warnings)
        1
    """
    plan: ColumnPlan = ColumnPlan()
    seen: Set[str] = set()

    for column in table.columns:
        if column.name in seen:
            plan.warnings.append(
                f"Duplicate column '{column.name}' in table '{table.name}' was skipped."
            )
            continue
        seen.add(column.name)
        compile_column(column, table, plan)

    if table.timestamps:
        plan.instructions.append(ColumnInstruction(kind=InstructionKind.TIMESTAMPS))
    if table.soft_deletes:
        plan.instructions.append(ColumnInstruction(kind=InstructionKind.SOFT_DELETES))

    for message in plan.warnings:
        logger.warning(message)
    logger.debug(
        "Compiled %s: %d instructions, %d warnings.",
        table.name,
        len(plan.instructions),
        len(plan.warnings),
    )
    return plan


def fillable_columns(table: TableSpec) -> List[str]:
    """
    Mass-assignable column names: declared order, deduplicated, reserved
    names (``id``, ``created_at``, ``updated_at``, ``deleted_at``) removed.
    """
    reserved: Set[str] = {"id", "created_at", "updated_at", "deleted_at"}
    names: List[str] = []
    for column in table.columns:
        if column.name in reserved or column.name in names:
            continue
        if column.type.lower() in PRIMARY_KEY_TYPES:
            continue
        names.append(column.name)
    return names


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "InstructionKind",
    "ColumnModifier",
    "ColumnInstruction",
    "ColumnPlan",
    "compile_column",
    "compile_columns",
    "fillable_columns",
    "MODIFIER_ORDER",
]
