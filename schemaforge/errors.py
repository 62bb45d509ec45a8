# File: schemaforge/errors.py
"""
SchemaForge - Error Taxonomy
==============================

Every exception raised by the engine derives from ``SchemaForgeError`` so
callers can catch the whole family in one place.

Scope of each error:
    - ``SchemaParseError``  — fatal, the document is not a table container.
    - ``MissingTableName``  — one table entry is skipped, the run continues.
    - ``TemplateNotFound``  — remaining artifacts of one table are abandoned.
    - ``StorageError``      — one artifact is not written, siblings proceed.
"""

from __future__ import annotations

from typing import List, Optional


class SchemaForgeError(Exception):
    """Base class for all engine errors."""


class SchemaError(SchemaForgeError, ValueError):
    """Raised when schema input cannot be normalised."""


class SchemaParseError(SchemaError):
    """The schema source is not a well-formed container of tables."""


class MissingTableName(SchemaError):
    """A table declaration has neither ``name`` nor ``table``."""

    def __init__(self, index: int, message: Optional[str] = None) -> None:
        self.index: int = index
        super().__init__(
            message
            or f"Table name missing in table definition #{index + 1}. Fix your definition input."
        )


class TemplateNotFound(SchemaForgeError, LookupError):
    """The emitter has no template for the requested kind and slot."""

    def __init__(self, kind: str, slot: str) -> None:
        self.kind: str = kind
        self.slot: str = slot
        super().__init__(f"No template for artifact kind '{kind}' (slot '{slot}').")


class StorageError(SchemaForgeError, OSError):
    """A storage sink operation failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path: str = path
        self.reason: str = reason
        super().__init__(f"Storage failure for {path}: {reason}")


__all__: List[str] = [
    "SchemaForgeError",
    "SchemaError",
    "SchemaParseError",
    "MissingTableName",
    "TemplateNotFound",
    "StorageError",
]
