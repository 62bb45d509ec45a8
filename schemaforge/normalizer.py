# File: schemaforge/normalizer.py
"""
SchemaForge - Schema Normaliser
=================================
Turns a raw schema mapping (parsed JSON/YAML, or compact one-line table
declarations) into an immutable ``SchemaDocument``, and derives the naming
bundle every emitter relies on.

Compact table grammar::

    table: posts title|string|len(120), user_id:integer|rel(users,id,cascade)

Each comma-separated chunk is ``name[:type]`` followed by ``|``-separated
tokens. Recognised tokens are ``len(N)`` / ``len(P,S)``, ``unique``,
``nullable``, ``index``, ``default(VALUE)`` and ``rel(table[,column[,onDelete]])``.
Any other token is taken as the base type; the last one wins.

Per-entry problems (a table without a name, an entry pydantic rejects) are
recorded in ``SchemaDocument.table_errors`` and never abort the document.
A malformed column entry only drops that column; the reason is kept in
``TableSpec.warnings``.
Only a source that is not a mapping of tables raises ``SchemaParseError``.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from schemaforge.errors import MissingTableName, SchemaParseError
from schemaforge.models import (
    ColumnSpec,
    ControllerSpec,
    ModelSpec,
    NamingBundle,
    SchemaDocument,
    TableSpec,
    ViewSpec,
)
from schemaforge.utils import (
    to_camel_case,
    to_plural,
    to_singular,
    to_snake_case,
    to_studly_case,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.normalizer")

_COMPACT_PREFIX_RE: re.Pattern[str] = re.compile(r"^\s*table\s*:\s*", re.IGNORECASE)
_CALL_TOKEN_RE: re.Pattern[str] = re.compile(r"^(\w+)\((.*)\)$")
_VIEW_GROUP_RE: re.Pattern[str] = re.compile(r"^(.*?)/?\[(.*?)\]$")
_VIEW_SUFFIX: str = ".html"


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def derive_naming(table_name: str) -> NamingBundle:
    """
    Derive every name used downstream from a table name.

    Pure and idempotent: the same input always yields an equal bundle.

    Examples:
        >>> derive_naming("blog_posts").model_name
        'BlogPost'
        >>> derive_naming("people").route_resource_name
        'people'
    """
    table: str = to_snake_case(table_name)
    singular: str = to_singular(table)
    model: str = to_studly_case(singular)
    controller: str = f"{model}Controller"
    return NamingBundle(
        table_name=table,
        model_name=model,
        controller_name=controller,
        route_resource_name=to_plural(to_snake_case(model)),
        variable_name=to_camel_case(model),
        model_module=to_snake_case(model),
        controller_module=to_snake_case(controller),
    )


def naming_for_model(model_name: str, table_name: Optional[str] = None) -> NamingBundle:
    """
    Naming bundle for a standalone model.

    The table defaults to the snake plural of the model, so ``Role`` maps to
    ``roles`` and back to ``Role``.
    """
    model: str = to_studly_case(model_name)
    table: str = to_snake_case(table_name) if table_name else to_plural(to_snake_case(model))
    base: NamingBundle = derive_naming(table)
    if base.model_name == model:
        return base
    controller: str = f"{model}Controller"
    return NamingBundle(
        table_name=table,
        model_name=model,
        controller_name=controller,
        route_resource_name=base.route_resource_name,
        variable_name=to_camel_case(model),
        model_module=to_snake_case(model),
        controller_module=to_snake_case(controller),
    )


def naming_for_controller(controller_name: str, model_name: Optional[str] = None) -> NamingBundle:
    """Naming bundle for a standalone controller such as ``ReportController``."""
    studly: str = to_studly_case(controller_name)
    if studly.endswith("Controller"):
        stem: str = studly[: -len("Controller")] or studly
    else:
        stem = studly
        studly = f"{studly}Controller"
    model: str = to_studly_case(model_name) if model_name else stem
    base: NamingBundle = naming_for_model(model)
    return NamingBundle(
        table_name=base.table_name,
        model_name=model,
        controller_name=studly,
        route_resource_name=to_plural(to_snake_case(stem)),
        variable_name=base.variable_name,
        model_module=base.model_module,
        controller_module=to_snake_case(studly),
    )


# ---------------------------------------------------------------------------
# Compact grammar
# ---------------------------------------------------------------------------


def split_top_level(text: str, sep: str = ",") -> List[str]:
    """
    Split *text* on *sep*, ignoring separators nested in brackets.

    Examples:
        >>> split_top_level("a|rel(users,id), b")
        ['a|rel(users,id)', 'b']
    """
    parts: List[str] = []
    depth: int = 0
    current: List[str] = []
    for ch in text:
        if ch in "([":
            depth += 1
        elif ch in ")]" and depth:
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail: str = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]


def parse_compact_column(chunk: str) -> Dict[str, Any]:
    """Parse one ``name[:type]|token|...`` chunk into a column mapping."""
    tokens: List[str] = [t.strip() for t in chunk.split("|")]
    head: str = tokens.pop(0)
    name, _, inline_type = head.partition(":")
    column: Dict[str, Any] = {"name": name.strip()}
    if inline_type.strip():
        column["type"] = inline_type.strip()

    for token in tokens:
        if not token:
            continue
        call: Optional[re.Match[str]] = _CALL_TOKEN_RE.match(token)
        func: str = call.group(1).lower() if call else ""
        args: List[str] = [a.strip() for a in call.group(2).split(",")] if call else []

        if func == "len":
            digits: List[str] = [re.sub(r"[^0-9]", "", a) for a in args if re.sub(r"[^0-9]", "", a)]
            if len(digits) >= 2:
                column["length"] = f"{digits[0]},{digits[1]}"
            elif digits:
                column["length"] = int(digits[0])
        elif func == "default":
            column["default"] = call.group(2).strip().strip("'\"") if call else None
        elif func == "rel":
            foreign: Dict[str, Any] = {"on": args[0] if args else None}
            if len(args) > 1 and args[1]:
                foreign["references"] = args[1]
            if len(args) > 2 and args[2]:
                foreign["onDelete"] = args[2]
            column["foreign"] = foreign
        elif token == "unique":
            column["unique"] = True
        elif token == "nullable":
            column["nullable"] = True
        elif token == "index":
            column["index"] = True
        else:
            column["type"] = token
    return column


def parse_compact_table(line: str) -> Dict[str, Any]:
    """
    Parse ``table: name col|type|mods, ...`` into a table mapping.

    Compact tables always carry timestamps.
    """
    body: str = _COMPACT_PREFIX_RE.sub("", line.strip(), count=1)
    name, _, rest = body.partition(" ")
    if "," in name:
        # "table: users,name|string" without the separating space
        name, _, head = name.partition(",")
        rest = f"{head} {rest}"
    columns: List[Dict[str, Any]] = [
        parse_compact_column(chunk) for chunk in split_top_level(rest.strip())
    ]
    return {"name": name.strip(), "columns": columns, "timestamps": True}


# ---------------------------------------------------------------------------
# Document normalisation
# ---------------------------------------------------------------------------


def _describe_validation_error(exc: PydanticValidationError) -> str:
    problems: List[str] = []
    for err in exc.errors():
        loc: str = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{loc or '<root>'}: {err.get('msg', 'invalid')}")
    return "; ".join(problems)


def normalize_table(entry: Any, index: int) -> TableSpec:
    """
    Normalise one ``tables`` entry.

    Raises:
        MissingTableName: when neither ``name`` nor ``table`` is present.
        SchemaParseError: when the entry is neither a mapping nor a string.
        pydantic.ValidationError: when a field has an unusable value.
    """
    if isinstance(entry, str):
        data: Dict[str, Any] = parse_compact_table(entry)
    elif isinstance(entry, Mapping):
        data = dict(entry)
    else:
        raise SchemaParseError(
            f"Table definition #{index + 1} must be a mapping or a compact string, "
            f"got {type(entry).__name__}."
        )

    legacy: Any = data.pop("table", None)
    name: Any = data.get("name") or legacy
    if not name or not str(name).strip():
        raise MissingTableName(index)
    data["name"] = str(name)

    raw_columns: Any = data.get("columns")
    if isinstance(raw_columns, list):
        columns, dropped = _normalize_columns(raw_columns, str(name).strip())
        data["columns"] = columns
        data["warnings"] = dropped
    return TableSpec.model_validate(data)


def _normalize_columns(raw: List[Any], table: str) -> Tuple[List[ColumnSpec], List[str]]:
    """Validate column entries one by one; a malformed entry is dropped, not the table."""
    columns: List[ColumnSpec] = []
    dropped: List[str] = []
    for index, entry in enumerate(raw):
        try:
            columns.append(ColumnSpec.model_validate(entry))
        except PydanticValidationError as exc:
            label: Any = entry.get("name") if isinstance(entry, Mapping) else None
            message: str = (
                f"Column #{index + 1}{f' ({label})' if label else ''} of table '{table}' "
                f"was omitted: {_describe_validation_error(exc)}"
            )
            logger.warning(message)
            dropped.append(message)
    return columns, dropped


def _normalize_components(
    raw: Any,
    key: str,
    model_cls: type,
    errors: List[str],
) -> List[Any]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SchemaParseError(f"'{key}' must be a list, got {type(raw).__name__}.")
    items: List[Any] = []
    for index, entry in enumerate(raw):
        try:
            items.append(model_cls.model_validate(entry))
        except PydanticValidationError as exc:
            message: str = f"{key} entry #{index + 1}: {_describe_validation_error(exc)}"
            logger.error(message)
            errors.append(message)
    return items


def normalize_document(raw: Any) -> SchemaDocument:
    """
    Build a ``SchemaDocument`` from a parsed schema mapping.

    Raises:
        SchemaParseError: when *raw* is not a mapping or ``tables`` is not a list.
    """
    if not isinstance(raw, Mapping):
        raise SchemaParseError(
            f"Schema document must be a mapping with a 'tables' list, got {type(raw).__name__}."
        )

    raw_tables: Any = raw.get("tables")
    if raw_tables is None:
        raw_tables = []
    if not isinstance(raw_tables, list):
        raise SchemaParseError(f"'tables' must be a list, got {type(raw_tables).__name__}.")

    errors: List[str] = []
    tables: List[TableSpec] = []
    for index, entry in enumerate(raw_tables):
        try:
            tables.append(normalize_table(entry, index))
        except MissingTableName as exc:
            logger.error(str(exc))
            errors.append(str(exc))
        except SchemaParseError as exc:
            logger.error(str(exc))
            errors.append(str(exc))
        except PydanticValidationError as exc:
            message: str = f"Table definition #{index + 1}: {_describe_validation_error(exc)}"
            logger.error(message)
            errors.append(message)

    models: List[ModelSpec] = _normalize_components(raw.get("models"), "models", ModelSpec, errors)
    controllers: List[ControllerSpec] = _normalize_components(
        raw.get("controllers"), "controllers", ControllerSpec, errors
    )
    views: List[ViewSpec] = _normalize_components(raw.get("views"), "views", ViewSpec, errors)

    document: SchemaDocument = SchemaDocument(
        tables=tables,
        models=models,
        controllers=controllers,
        views=views,
        table_errors=errors,
    )
    logger.info(
        "Normalised schema: %d tables, %d models, %d controllers, %d views, %d errors.",
        len(tables),
        len(models),
        len(controllers),
        len(views),
        len(errors),
    )
    return document


def normalize_compact_lines(lines: Sequence[str]) -> SchemaDocument:
    """Shortcut for ``-t "table: ..."`` style input."""
    return normalize_document({"tables": list(lines)})


# ---------------------------------------------------------------------------
# View path grammar
# ---------------------------------------------------------------------------


def expand_view_targets(path: str, default_folder: str) -> List[Tuple[str, str]]:
    """
    Expand a view path expression into ``(folder, file)`` pairs.

    Examples:
        >>> expand_view_targets("admin/users/[index,edit]", "x")
        [('admin/users', 'index.html'), ('admin/users', 'edit.html')]
        >>> expand_view_targets("partials/head", "x")
        [('partials', 'head.html')]
        >>> expand_view_targets("index", "posts")
        [('posts', 'index.html')]
    """
    line: str = path.strip()
    group: Optional[re.Match[str]] = _VIEW_GROUP_RE.match(line)
    if group:
        folder: str = group.group(1).strip("/") or default_folder
        files: List[str] = [f.strip() for f in group.group(2).split(",") if f.strip()]
    elif "/" in line.strip("/"):
        parts: List[str] = line.strip("/").split("/")
        folder = parts[0]
        files = ["/".join(parts[1:])]
    else:
        folder = default_folder
        files = [line.strip("/")]

    return [
        (folder, name if name.endswith(_VIEW_SUFFIX) else name + _VIEW_SUFFIX)
        for name in files
    ]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "derive_naming",
    "naming_for_model",
    "naming_for_controller",
    "split_top_level",
    "parse_compact_column",
    "parse_compact_table",
    "normalize_table",
    "normalize_document",
    "normalize_compact_lines",
    "expand_view_targets",
]

logger.debug("schemaforge.normalizer loaded — %d public symbols.", len(__all__))
