"""
tests/test_routes.py
Unit tests for schemaforge.routes (RouteRegistryMerger).

Strategy:
- Files are plain strings; the merger never touches disk.
- Text outside the generated block must survive byte-for-byte.
"""

from __future__ import annotations

from typing import List

import pytest

from schemaforge.models import RouteChoice
from schemaforge.routes import (
    BEGIN_MARKER,
    BLOCK_HEADER,
    END_MARKER,
    RouteRegistryMerger,
    RouteSyntax,
    normalize_route_line,
)

USERS: str = 'resource("users", "app.controllers.user_controller.router")'
POSTS: str = 'resource("posts", "app.controllers.post_controller.router")'
TAGS: str = 'resource("tags", "app.controllers.tag_controller.router")'

HEAD: str = "from fastapi import APIRouter\n\napi_router = APIRouter()\n\n"
TAIL: str = "\n# hand-written below\napi_router.get('/health')(lambda: 'ok')\n"


@pytest.fixture()
def merger() -> RouteRegistryMerger:
    syntax = RouteSyntax(
        comment_prefix="#",
        line_template='resource("{resource}", "{target}")',
        detect_pattern=r"^\s*resource\(",
        preamble="# routes\n",
    )
    return RouteRegistryMerger(syntax)


def _block(lines: List[str]) -> str:
    body = [f"# {BEGIN_MARKER}", f"# {BLOCK_HEADER}", *lines, f"# {END_MARKER}"]
    return "".join(line + "\n" for line in body)


# ===========================================================================
# Block anatomy
# ===========================================================================


class TestBlock:

    def test_render_block_dedupes(self, merger: RouteRegistryMerger) -> None:
        assert "".join(merger.render_block([USERS, USERS + ";", POSTS])) == _block([USERS, POSTS])

    def test_find_block(self, merger: RouteRegistryMerger) -> None:
        lines = (HEAD + _block([USERS])).splitlines()
        begin, end, terminated = merger.find_block(lines)
        assert lines[begin] == f"# {BEGIN_MARKER}"
        assert lines[end] == f"# {END_MARKER}"
        assert terminated

    def test_has_block(self, merger: RouteRegistryMerger) -> None:
        assert merger.has_block(_block([]))
        assert not merger.has_block(HEAD)
        assert not merger.has_block(None)

    def test_normalize_route_line(self) -> None:
        assert normalize_route_line(f"   {USERS};  ") == USERS
        assert normalize_route_line(f"{USERS},") == USERS

    def test_render_line(self, merger: RouteRegistryMerger) -> None:
        line = merger.syntax.render_line("users", "app.controllers.user_controller.router")
        assert line == USERS
        assert merger.syntax.is_route_line("    " + line)


# ===========================================================================
# Create / append
# ===========================================================================


class TestCreateAndAppend:

    def test_create(self, merger: RouteRegistryMerger) -> None:
        result = merger.create([USERS, POSTS])
        assert result.text == "# routes\n\n" + _block([USERS, POSTS])
        assert result.action == "created"
        assert result.changed

    def test_append_when_no_block(self, merger: RouteRegistryMerger) -> None:
        result = merger.merge(HEAD.rstrip("\n"), [USERS], RouteChoice.SKIP)
        assert result.action == "appended"
        assert result.text.startswith(HEAD.rstrip("\n") + "\n\n")
        assert result.text.endswith(_block([USERS]))

    def test_append_to_empty_file(self, merger: RouteRegistryMerger) -> None:
        assert merger.merge("", [USERS]).text == _block([USERS])


# ===========================================================================
# Replace / Merge / Skip
# ===========================================================================


class TestStrategies:

    def test_skip_leaves_text(self, merger: RouteRegistryMerger) -> None:
        text = HEAD + _block([USERS]) + TAIL
        result = merger.merge(text, [POSTS], RouteChoice.SKIP)
        assert result.text == text
        assert result.action == "skipped"
        assert not result.changed

    def test_replace_moves_block_to_end(self, merger: RouteRegistryMerger) -> None:
        text = HEAD + _block([USERS, 'resource("old", "x.router")']) + TAIL
        result = merger.merge(text, [POSTS, TAGS], RouteChoice.REPLACE)
        assert result.text == (HEAD + TAIL).rstrip("\n") + "\n\n" + _block([POSTS, TAGS])
        assert "x.router" not in result.text
        assert result.action == "replaced"

    def test_replace_with_same_lines_is_stable(self, merger: RouteRegistryMerger) -> None:
        created = merger.create([USERS, POSTS]).text
        result = merger.merge(created, [USERS, POSTS], RouteChoice.REPLACE)
        assert result.text == created
        assert not result.changed

    def test_merge_is_non_destructive(self, merger: RouteRegistryMerger) -> None:
        custom = 'resource("custom", "app.custom.router")  # kept'
        text = HEAD + _block([USERS, custom]) + TAIL
        result = merger.merge(text, [USERS, POSTS], RouteChoice.MERGE)
        assert result.text == HEAD + _block([USERS, custom, POSTS]) + TAIL
        assert result.added == [POSTS]
        assert result.text.count(USERS) == 1

    def test_merge_detects_trailing_punctuation(self, merger: RouteRegistryMerger) -> None:
        text = _block([USERS + ";"])
        result = merger.merge(text, [USERS])
        assert result.text == text
        assert not result.changed

    def test_merge_is_idempotent(self, merger: RouteRegistryMerger) -> None:
        once = merger.merge(HEAD + _block([USERS]) + TAIL, [POSTS, TAGS]).text
        twice = merger.merge(once, [POSTS, TAGS])
        assert twice.text == once
        assert twice.added == []

    def test_accepts_plain_string_choice(self, merger: RouteRegistryMerger) -> None:
        assert merger.merge(_block([USERS]), [POSTS], "Skip").action == "skipped"


# ===========================================================================
# Unterminated blocks
# ===========================================================================


class TestUnterminated:

    def test_merge_appends_at_end_with_warning(self, merger: RouteRegistryMerger) -> None:
        text = HEAD + f"# {BEGIN_MARKER}\n{USERS}"
        result = merger.merge(text, [USERS, POSTS], RouteChoice.MERGE)
        assert result.text == text + "\n" + POSTS + "\n"
        assert len(result.warnings) == 1

    def test_replace_runs_to_end(self, merger: RouteRegistryMerger) -> None:
        text = HEAD + f"# {BEGIN_MARKER}\n{USERS}\n"
        result = merger.merge(text, [POSTS], RouteChoice.REPLACE)
        assert result.text == HEAD + _block([POSTS])
        assert result.warnings
