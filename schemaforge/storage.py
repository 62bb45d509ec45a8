# File: schemaforge/storage.py
"""
SchemaForge - Storage Sinks
=============================

Responsible for:
    1. Answering ``exists`` / ``read`` / ``list_dir`` about the target tree.
    2. Creating directories on demand.
    3. Writing artifacts atomically (write-to-temp then rename).

Two sinks ship with the engine: ``FileSystemStorage`` rooted at a base path,
and ``MemoryStorage`` used for ``--dry-run`` and tests. Paths are always
relative, ``/``-separated strings. Every OS failure surfaces as
``StorageError`` so the orchestrator can record it per artifact.
"""

from __future__ import annotations

import logging
import os
import posixpath
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Set, Union

from schemaforge.errors import StorageError
from schemaforge.utils import count_lines, sha256_hex

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.storage")


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Immutable record of a single written artifact."""

    relative_path: str
    size_bytes: int
    line_count: int
    sha256: str


class StorageSink(Protocol):
    """Interface the orchestrator writes through."""

    def exists(self, path: str) -> bool:
        ...

    def read(self, path: str) -> str:
        ...

    def write(self, path: str, content: str) -> FileRecord:
        ...

    def ensure_dir(self, path: str) -> None:
        ...

    def list_dir(self, path: str) -> List[str]:
        ...


def _record(path: str, content: str) -> FileRecord:
    return FileRecord(
        relative_path=path,
        size_bytes=len(content.encode("utf-8")),
        line_count=count_lines(content),
        sha256=sha256_hex(content),
    )


# ---------------------------------------------------------------------------
# File system
# ---------------------------------------------------------------------------


class FileSystemStorage:
    """
    Storage rooted at a base directory.

    Args:
        base_path: Root of the target application tree.
        atomic_writes: Write via a temp file and ``os.replace`` (default on).
    """

    def __init__(self, base_path: Union[str, Path] = ".", atomic_writes: bool = True) -> None:
        self.base_path: Path = Path(base_path).resolve()
        self._atomic_writes: bool = atomic_writes

    def _full(self, path: str) -> Path:
        return self.base_path / path

    def exists(self, path: str) -> bool:
        return self._full(path).is_file()

    def read(self, path: str) -> str:
        try:
            return self._full(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(path, f"{type(exc).__name__}: {exc}") from exc

    def ensure_dir(self, path: str) -> None:
        try:
            self._full(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(path, f"{type(exc).__name__}: {exc}") from exc

    def list_dir(self, path: str) -> List[str]:
        target: Path = self._full(path)
        if not target.is_dir():
            return []
        try:
            return sorted(entry.name for entry in target.iterdir() if entry.is_file())
        except OSError as exc:
            raise StorageError(path, f"{type(exc).__name__}: {exc}") from exc

    def write(self, path: str, content: str) -> FileRecord:
        full_path: Path = self._full(path)
        parent: str = posixpath.dirname(path)
        if parent:
            self.ensure_dir(parent)
        encoded: bytes = content.encode("utf-8")
        try:
            if self._atomic_writes:
                self._atomic_write(full_path, encoded)
            else:
                full_path.write_bytes(encoded)
        except OSError as exc:
            raise StorageError(path, f"{type(exc).__name__}: {exc}") from exc

        record: FileRecord = _record(path, content)
        logger.debug(
            "Wrote file: %s (%d bytes, %d lines).",
            path,
            record.size_bytes,
            record.line_count,
        )
        return record

    @staticmethod
    def _atomic_write(target_path: Path, data: bytes) -> None:
        """
        Write *data* to *target_path* through a temporary file.

        The temp file lives in the target directory so ``os.replace`` stays
        on one filesystem. On failure the temp file is removed and the error
        propagates.
        """
        fd: int = -1
        tmp_path: str = ""
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(target_path.parent),
                prefix=f".{target_path.name}.",
                suffix=".tmp",
            )
            os.write(fd, data)
            os.fsync(fd)
            os.close(fd)
            fd = -1  # Mark as closed

            os.replace(tmp_path, str(target_path))
        except OSError:
            if fd >= 0:
                os.close(fd)
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def __repr__(self) -> str:
        return f"<FileSystemStorage {self.base_path}>"


# ---------------------------------------------------------------------------
# In memory
# ---------------------------------------------------------------------------


class MemoryStorage:
    """Dictionary-backed sink; nothing touches the disk."""

    def __init__(self, files: Optional[Dict[str, str]] = None) -> None:
        self.files: Dict[str, str] = dict(files or {})
        self.directories: Set[str] = set()
        self.writes: List[str] = []

    def exists(self, path: str) -> bool:
        return path in self.files

    def read(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError as exc:
            raise StorageError(path, "no such file") from exc

    def ensure_dir(self, path: str) -> None:
        self.directories.add(path.rstrip("/"))

    def list_dir(self, path: str) -> List[str]:
        prefix: str = path.rstrip("/") + "/"
        return sorted(
            name[len(prefix):]
            for name in self.files
            if name.startswith(prefix) and "/" not in name[len(prefix):]
        )

    def write(self, path: str, content: str) -> FileRecord:
        parent: str = posixpath.dirname(path)
        if parent:
            self.ensure_dir(parent)
        self.files[path] = content
        self.writes.append(path)
        logger.debug("Stored in memory: %s (%d chars).", path, len(content))
        return _record(path, content)

    def __repr__(self) -> str:
        return f"<MemoryStorage {len(self.files)} files>"


__all__: List[str] = [
    "FileRecord",
    "StorageSink",
    "FileSystemStorage",
    "MemoryStorage",
]
