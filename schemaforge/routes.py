# File: schemaforge/routes.py
"""
SchemaForge - Route Registry Merger
=====================================
Keeps one generated block inside a hand-editable route file.

The block runs from the begin marker through the end marker, both
inclusive. Everything outside it belongs to the user and is never touched.

    # BEGIN GENERATED ROUTES
    # Routes generated by SchemaForge. You can modify them as needed.
    resource("users", "app.controllers.user_controller.router")
    # END GENERATED ROUTES

The merger is pure text-in/text-out; reading and writing the file, and
asking the operator which strategy to use, is the orchestrator's job.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from schemaforge.models import RouteChoice

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge.routes")

BEGIN_MARKER: str = "BEGIN GENERATED ROUTES"
END_MARKER: str = "END GENERATED ROUTES"
BLOCK_HEADER: str = "Routes generated by SchemaForge. You can modify them as needed."


@dataclass(frozen=True)
class RouteSyntax:
    """
    Target-language details supplied by the emitter.

    ``line_template`` is formatted with ``resource`` and ``target``;
    ``detect_pattern`` recognises a route line inside the block.
    """

    comment_prefix: str
    line_template: str
    detect_pattern: str
    preamble: str = ""

    def render_line(self, resource: str, target: str) -> str:
        return self.line_template.format(resource=resource, target=target)

    def is_route_line(self, line: str) -> bool:
        return re.search(self.detect_pattern, line) is not None

    def marker(self, label: str) -> str:
        return f"{self.comment_prefix} {label}"


@dataclass
class RouteMergeResult:
    """Outcome of one registry update."""

    text: str
    action: str
    added: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    original: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.text != (self.original or "")


def normalize_route_line(line: str) -> str:
    """Strip surrounding whitespace and trailing ``;`` / ``,`` for comparison."""
    return line.strip().rstrip(";,").strip()


class RouteRegistryMerger:
    """Locates, renders and merges the generated route block."""

    def __init__(self, syntax: RouteSyntax) -> None:
        self.syntax: RouteSyntax = syntax

    # -- Block anatomy ------------------------------------------------------

    def _is_marker(self, line: str, label: str) -> bool:
        stripped: str = line.strip()
        prefix: str = self.syntax.comment_prefix
        return stripped.startswith(prefix) and stripped[len(prefix):].strip() == label

    def find_block(self, lines: Sequence[str]) -> Optional[Tuple[int, int, bool]]:
        """
        Locate the block in *lines*.

        Returns ``(begin, end, terminated)`` line indices, inclusive, or
        ``None``. An unterminated block runs to the last line.
        """
        begin: Optional[int] = None
        for idx, line in enumerate(lines):
            if begin is None:
                if self._is_marker(line, BEGIN_MARKER):
                    begin = idx
            elif self._is_marker(line, END_MARKER):
                return begin, idx, True
        if begin is None:
            return None
        return begin, len(lines) - 1, False

    def has_block(self, text: Optional[str]) -> bool:
        return bool(text) and self.find_block(text.splitlines()) is not None

    def render_block(self, route_lines: Sequence[str]) -> List[str]:
        body: List[str] = [
            self.syntax.marker(BEGIN_MARKER),
            f"{self.syntax.comment_prefix} {BLOCK_HEADER}",
        ]
        body.extend(_dedupe(route_lines))
        body.append(self.syntax.marker(END_MARKER))
        return [line + "\n" for line in body]

    # -- Protocol -----------------------------------------------------------

    def create(self, route_lines: Sequence[str]) -> RouteMergeResult:
        """A brand-new file: preamble followed by a fresh block."""
        preamble: str = self.syntax.preamble
        head: str = preamble.rstrip("\n") + "\n\n" if preamble.strip() else ""
        text: str = head + "".join(self.render_block(route_lines))
        return RouteMergeResult(text=text, action="created", added=_dedupe(route_lines))

    def merge(
        self,
        text: str,
        route_lines: Sequence[str],
        choice: RouteChoice = RouteChoice.MERGE,
    ) -> RouteMergeResult:
        """
        Apply *route_lines* to existing file *text*.

        Without a block a fresh one is appended and *choice* is ignored.
        """
        lines: List[str] = text.splitlines(keepends=True)
        found: Optional[Tuple[int, int, bool]] = self.find_block([ln.rstrip("\r\n") for ln in lines])

        if found is None:
            head: str = text
            if head and not head.endswith("\n"):
                head += "\n"
            if head.strip():
                head += "\n"
            new_text: str = head + "".join(self.render_block(route_lines))
            logger.info("Route block appended with %d line(s).", len(_dedupe(route_lines)))
            return RouteMergeResult(
                text=new_text, action="appended", added=_dedupe(route_lines), original=text
            )

        begin, end, terminated = found
        warnings: List[str] = []
        if not terminated:
            message: str = "Route block has no end marker; treating it as running to end of file."
            logger.warning(message)
            warnings.append(message)

        choice = RouteChoice(choice)
        if choice == RouteChoice.SKIP:
            logger.info("Route registry left unchanged.")
            return RouteMergeResult(text=text, action="skipped", warnings=warnings, original=text)

        if choice == RouteChoice.REPLACE:
            # the old block is removed and a new one appended at end of file
            rest: str = "".join(lines[:begin] + lines[end + 1:])
            head = rest.rstrip("\n") + "\n\n" if rest.strip() else ""
            logger.info("Route block replaced with %d line(s).", len(_dedupe(route_lines)))
            return RouteMergeResult(
                text=head + "".join(self.render_block(route_lines)),
                action="replaced",
                added=_dedupe(route_lines),
                warnings=warnings,
                original=text,
            )

        present: Set[str] = {
            normalize_route_line(line)
            for line in lines[begin + 1: end + (1 if not terminated else 0)]
            if self.syntax.is_route_line(line)
        }
        additions: List[str] = []
        for line in route_lines:
            key: str = normalize_route_line(line)
            if key in present:
                continue
            present.add(key)
            additions.append(line)

        if not additions:
            logger.info("Route block already up to date.")
            return RouteMergeResult(text=text, action="merged", warnings=warnings, original=text)

        insert_at: int = end if terminated else len(lines)
        before: List[str] = lines[:insert_at]
        if before and not before[-1].endswith("\n"):
            before[-1] = before[-1] + "\n"
        new_lines = before + [line + "\n" for line in additions] + lines[insert_at:]
        logger.info("Route block merged: %d new line(s).", len(additions))
        return RouteMergeResult(
            text="".join(new_lines),
            action="merged",
            added=additions,
            warnings=warnings,
            original=text,
        )


def _dedupe(route_lines: Sequence[str]) -> List[str]:
    seen: Set[str] = set()
    unique: List[str] = []
    for line in route_lines:
        key: str = normalize_route_line(line)
        if key in seen:
            continue
        seen.add(key)
        unique.append(line)
    return unique


__all__: List[str] = [
    "BEGIN_MARKER",
    "END_MARKER",
    "BLOCK_HEADER",
    "RouteSyntax",
    "RouteMergeResult",
    "RouteRegistryMerger",
    "normalize_route_line",
]
