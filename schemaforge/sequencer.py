# File: schemaforge/sequencer.py
"""
SchemaForge - Migration Sequencer
===================================
Issues ordering keys for migration files.

One base timestamp is captured when the sequencer is built; the k-th key of
the run is ``base + (k - 1)`` seconds formatted ``YYYY_MM_DD_HHMMSS``. Keys
therefore strictly increase in processing order and never collide inside a
run, however fast the tables are processed.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.sequencer")

KEY_FORMAT: str = "%Y_%m_%d_%H%M%S"
_KEY_RE: re.Pattern[str] = re.compile(r"^(\d{4}_\d{2}_\d{2}_\d{6})_")


class MigrationSequencer:
    """
    Hands out strictly increasing migration keys for one run.

    Args:
        clock: Zero-argument callable returning the base ``datetime``;
            called exactly once, at construction.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self.base_time: datetime = clock().replace(microsecond=0)
        self._issued: List[str] = []
        self._chained: List[str] = []

    @property
    def issued(self) -> List[str]:
        return list(self._issued)

    def next_key(self, table: str) -> str:
        key: str = (self.base_time + timedelta(seconds=len(self._issued))).strftime(KEY_FORMAT)
        self._issued.append(key)
        self._chained.append(key)
        logger.debug("Migration key %s issued for '%s'.", key, table)
        return key

    def release(self, key: str) -> None:
        """
        Mark an issued key as unused by any file.

        The counter slot stays consumed, but later revisions no longer chain
        onto it.
        """
        if key in self._chained:
            self._chained.remove(key)

    @staticmethod
    def filename(key: str, table: str, extension: str = "py") -> str:
        return f"{key}_create_{table}_table.{extension}"

    @staticmethod
    def locate(table: str, existing_names: Iterable[str]) -> Optional[str]:
        """
        Find an earlier ``*_create_<table>_table.*`` file, ignoring its key.

        Returns the first match in sorted order, or ``None``.
        """
        pattern: re.Pattern[str] = re.compile(
            r"^\d{4}_\d{2}_\d{2}_\d{6}_create_" + re.escape(table) + r"_table\.[A-Za-z0-9]+$"
        )
        for name in sorted(existing_names):
            if pattern.match(name):
                return name
        return None

    @staticmethod
    def key_of(name: str) -> Optional[str]:
        match: Optional[re.Match[str]] = _KEY_RE.match(name)
        return match.group(1) if match else None

    def previous_key(self, key: str, existing_names: Iterable[str] = ()) -> Optional[str]:
        """
        Greatest known key below *key*, from disk or issued earlier this run.

        Used to chain each new revision onto the one before it.
        """
        known: set = {k for k in (self.key_of(n) for n in existing_names) if k}
        known.update(self._chained)
        candidates: List[str] = sorted(k for k in known if k < key)
        return candidates[-1] if candidates else None


__all__: List[str] = ["MigrationSequencer", "KEY_FORMAT"]
