"""
tests/test_generatorr.py
End-to-End integration tests for schemaforge.generator (ScaffoldGenerator).

These tests exercise the COMPLETE per-run pipeline:
  1. Normalise a schema document
  2. Compile columns and resolve foreign keys per table
  3. Render migration → model → controller → views
  4. Resolve conflicts against pre-existing files
  5. Update the route registry once

Storage is a MemoryStorage (or a real FileSystemStorage in tmp_path) and
prompts are scripted, so every question the engine asks is counted.
NO mocking is used for the core pipeline.
"""

from __future__ import annotations

import ast
import pathlib
from datetime import datetime
from typing import Any, Callable, Dict, List

import pytest

from schemaforge.errors import StorageError, TemplateNotFound
from schemaforge.foreign_keys import ResolvedForeignKey
from schemaforge.generator import BuildReport, ScaffoldGenerator, load_schema_file, parse_raw_schema
from schemaforge.models import GenerationConfig, SchemaDocument
from schemaforge.normalizer import normalize_compact_lines, normalize_document
from schemaforge.prompts import ScriptedPrompt
from schemaforge.routes import BEGIN_MARKER, BLOCK_HEADER, END_MARKER
from schemaforge.storage import FileSystemStorage, MemoryStorage
from schemaforge.templates import FastAPIEmitter

USERS_ROUTE: str = 'resource("users", "app.controllers.user_controller.router")'
POSTS_ROUTE: str = 'resource("posts", "app.controllers.post_controller.router")'

USERS_MIGRATION: str = "migrations/versions/2024_01_15_103000_create_users_table.py"
POSTS_MIGRATION: str = "migrations/versions/2024_01_15_103001_create_posts_table.py"

FIRST_RUN_FILES: List[str] = [
    USERS_MIGRATION,
    "app/models/user.py",
    "app/controllers/user_controller.py",
    POSTS_MIGRATION,
    "app/models/post.py",
    "app/controllers/post_controller.py",
    "app/routes.py",
]


def _block(lines: List[str]) -> str:
    body = [f"# {BEGIN_MARKER}", f"# {BLOCK_HEADER}", *lines, f"# {END_MARKER}"]
    return "".join(line + "\n" for line in body)


class _FailingModelEmitter(FastAPIEmitter):
    """Has no model template for one table."""

    def __init__(self, table: str) -> None:
        super().__init__()
        self.table = table

    def render(self, kind: str, slot: str, context: Any) -> str:
        if kind == "model" and context.naming.table_name == self.table:
            raise TemplateNotFound(kind, slot)
        return super().render(kind, slot, context)


class _ReadOnlyModelsStorage(MemoryStorage):
    """Refuses writes below app/models/."""

    def write(self, path: str, content: str):
        if path.startswith("app/models/"):
            raise StorageError(path, "PermissionError: read-only")
        return super().write(path, content)


# ===========================================================================
# Reference scenario: users + posts
# ===========================================================================


class TestUsersPostsScenario:

    def test_first_run_artifacts(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        report = make_generator(storage).build(users_posts_document)

        assert report.success, report.failures
        assert report.tables_processed == ["users", "posts"]
        assert report.artifacts_written == FIRST_RUN_FILES
        assert report.artifacts_skipped == []
        assert report.warnings == []
        assert storage.writes == FIRST_RUN_FILES

    def test_migration_keys_follow_processing_order(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        report = make_generator().build(users_posts_document)
        assert report.migration_keys == {"users": "2024_01_15_103000", "posts": "2024_01_15_103001"}

    def test_models_and_controllers(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)
        assert '__fillable__: ClassVar[List[str]] = ["name", "email"]' in storage.files["app/models/user.py"]
        assert '__fillable__: ClassVar[List[str]] = ["title", "user_id"]' in storage.files["app/models/post.py"]
        assert "from app.models.user import User" in storage.files["app/controllers/user_controller.py"]
        assert "from app.models.post import Post" in storage.files["app/controllers/post_controller.py"]

    def test_single_resolved_foreign_key(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        report = make_generator().build(users_posts_document)
        assert report.foreign_keys == {
            "users": [],
            "posts": [ResolvedForeignKey("user_id", "users", "id", "CASCADE", None)],
        }

    def test_route_registry_created_once_in_order(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        report = make_generator(storage).build(users_posts_document)
        text = storage.files["app/routes.py"]

        assert report.route_action == "created"
        assert report.route_lines == [USERS_ROUTE, POSTS_ROUTE]
        assert text.endswith(_block([USERS_ROUTE, POSTS_ROUTE]))
        assert "api_router = APIRouter()" in text
        assert storage.writes.count("app/routes.py") == 1

    def test_summary_mentions_counts(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        summary = make_generator().build(users_posts_document).summary()
        assert "SUCCESS" in summary
        assert "Tables processed:  2" in summary
        assert "Artifacts written: 7" in summary
        assert "Route registry:    created" in summary


# ===========================================================================
# Repeated runs & conflict policy
# ===========================================================================


class TestRepeatedRuns:

    def test_second_run_defaults_skip_everything(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)
        snapshot = dict(storage.files)

        report = make_generator(storage).build(users_posts_document)
        assert report.success
        assert report.artifacts_written == []
        assert sorted(report.artifacts_skipped) == sorted(FIRST_RUN_FILES)
        assert report.route_action == "merged"
        assert storage.files == snapshot

    def test_second_run_reuses_migration_files(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)

        later = ScaffoldGenerator(storage, config=GenerationConfig(force=True), clock=lambda: datetime(2025, 6, 1))
        report = later.build(users_posts_document)
        assert report.migration_keys == {"users": "2024_01_15_103000", "posts": "2024_01_15_103001"}
        assert storage.list_dir("migrations/versions") == [
            "2024_01_15_103000_create_users_table.py",
            "2024_01_15_103001_create_posts_table.py",
        ]

    def test_all_answer_stops_prompts(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)

        prompt = ScriptedPrompt(["all", "n", "n", "n"])
        report = make_generator(storage, prompt).build(users_posts_document)
        assert len(prompt.asked) == 1
        assert report.artifacts_written == FIRST_RUN_FILES[:-1]
        assert report.artifacts_skipped == ["app/routes.py"]
        assert report.route_action == "replaced"

    def test_skip_all_answer_stops_prompts(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)

        prompt = ScriptedPrompt(["y", "skip-all", "y", "y"])
        report = make_generator(storage, prompt).build(users_posts_document)
        assert len(prompt.asked) == 2
        assert report.artifacts_written == [USERS_MIGRATION]
        assert report.route_action == "skipped"

    def test_force_overwrites_without_prompting(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        make_generator(storage).build(users_posts_document)

        prompt = ScriptedPrompt()
        report = make_generator(storage, prompt, force=True).build(users_posts_document)
        assert prompt.asked == []
        assert report.artifacts_written == FIRST_RUN_FILES[:-1]
        assert report.route_action == "replaced"

    def test_each_build_has_fresh_state(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        generator = make_generator(storage, ScriptedPrompt(["all"]))
        generator.build(users_posts_document)
        generator.build(users_posts_document)

        prompt = ScriptedPrompt(["n"] * 10)
        generator.prompt = prompt
        generator.resolver.prompt = prompt
        report = generator.build(users_posts_document)
        assert report.artifacts_written == []
        assert len(prompt.asked) == 7

    def test_existing_migration_from_older_run(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        old = "migrations/versions/2023_12_31_235959_create_users_table.py"
        storage = MemoryStorage({old: "# old"})
        report = make_generator(storage, force=True).build(users_posts_document)

        assert report.migration_keys["users"] == "2023_12_31_235959"
        assert report.migration_keys["posts"] == "2024_01_15_103001"
        assert old in report.artifacts_written
        assert USERS_MIGRATION not in storage.files
        assert 'down_revision: Union[str, None] = "2023_12_31_235959"' in storage.files[POSTS_MIGRATION]


# ===========================================================================
# Sequencing
# ===========================================================================


class TestSequencing:

    def test_many_tables_in_one_second(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        names = ["zebras", "apples", "mangoes", "kiwis", "bananas", "cherries"]
        document = normalize_compact_lines([f"table: {n} label|string" for n in names])
        report = make_generator().build(document)

        keys = [report.migration_keys[n] for n in names]
        assert keys == sorted(keys)
        assert len(set(keys)) == len(keys)

        migrations = [p for p in report.artifacts_written if p.startswith("migrations/")]
        assert migrations == sorted(migrations)
        assert [p.split("_create_")[1] for p in migrations] == [f"{n}_table.py" for n in names]

    def test_migrations_chain_revisions(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        storage = MemoryStorage()
        document = normalize_compact_lines(["table: a x|string", "table: b x|string"])
        make_generator(storage).build(document)
        second = storage.files["migrations/versions/2024_01_15_103001_create_b_table.py"]
        assert 'down_revision: Union[str, None] = "2024_01_15_103000"' in second


# ===========================================================================
# Route registry against hand-written files
# ===========================================================================


class TestRouteRegistry:

    HEAD: str = '"""Routes."""\n\nfrom app.routing import resource\n\n'
    TAIL: str = '\n# keep me\nresource("health", "app.health.router")\n'

    def test_merge_keeps_user_content(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        original = self.HEAD + _block([USERS_ROUTE + ";"]) + self.TAIL
        storage = MemoryStorage({"app/routes.py": original})
        report = make_generator(storage).build(users_posts_document)

        assert report.route_action == "merged"
        assert storage.files["app/routes.py"] == self.HEAD + _block([USERS_ROUTE + ";", POSTS_ROUTE]) + self.TAIL

    def test_replace_chosen_by_operator(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        stale = 'resource("comments", "app.controllers.comment_controller.router")'
        storage = MemoryStorage({"app/routes.py": self.HEAD + _block([stale]) + self.TAIL})
        prompt = ScriptedPrompt(["Replace"])
        report = make_generator(storage, prompt).build(users_posts_document)

        assert [method for method, _ in prompt.asked] == ["choose"]
        assert report.route_action == "replaced"
        assert storage.files["app/routes.py"] == (
            (self.HEAD + self.TAIL).rstrip("\n") + "\n\n" + _block([USERS_ROUTE, POSTS_ROUTE])
        )

    def test_append_when_block_missing(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage({"app/routes.py": self.HEAD})
        prompt = ScriptedPrompt()
        report = make_generator(storage, prompt).build(users_posts_document)

        assert prompt.asked == []
        assert report.route_action == "appended"
        assert storage.files["app/routes.py"] == self.HEAD + "\n" + _block([USERS_ROUTE, POSTS_ROUTE])

    def test_no_controllers_no_registry(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        storage = MemoryStorage()
        report = make_generator(storage).build(normalize_document({"models": ["Role"]}))
        assert "app/routes.py" not in storage.files
        assert report.route_action is None


# ===========================================================================
# Error isolation
# ===========================================================================


class TestErrorIsolation:

    def test_template_failure_abandons_only_that_table(
        self, fixed_now: datetime, users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        generator = ScaffoldGenerator(storage, emitter=_FailingModelEmitter("users"), clock=lambda: fixed_now)
        report = generator.build(users_posts_document)

        assert not report.success
        assert len(report.failures) == 1
        assert report.failures[0].startswith("Table 'users': TemplateNotFound")
        assert report.tables_processed == ["posts"]
        assert USERS_MIGRATION in storage.files
        assert "app/controllers/user_controller.py" not in storage.files
        assert "app/models/post.py" in storage.files
        assert report.route_lines == [POSTS_ROUTE]

    def test_storage_failure_is_per_artifact(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = _ReadOnlyModelsStorage()
        report = make_generator(storage).build(users_posts_document)

        assert not report.success
        assert report.failures == [
            "Storage failure for app/models/user.py: PermissionError: read-only",
            "Storage failure for app/models/post.py: PermissionError: read-only",
        ]
        assert "app/controllers/user_controller.py" in storage.files
        assert "app/controllers/post_controller.py" in storage.files
        assert report.tables_processed == ["users", "posts"]

    def test_table_errors_reported_without_aborting(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        document = normalize_document({"tables": [{"columns": [{"name": "x"}]}, "table: tags label|string"]})
        report = make_generator().build(document)
        assert not report.success
        assert report.failures == ["Table name missing in table definition #1. Fix your definition input."]
        assert report.tables_processed == ["tags"]

    def test_view_failure_keeps_route_out_of_registry(
        self, make_generator: Callable[..., ScaffoldGenerator]
    ) -> None:
        document = normalize_document(
            {
                "tables": [
                    {"name": "users", "columns": [{"name": "name"}], "views": [{"path": "users/index", "template": "carousel"}]},
                    "table: tags label|string",
                ]
            }
        )
        storage = MemoryStorage()
        report = make_generator(storage).build(document)

        assert not report.success
        assert report.failures[0].startswith("Table 'users': TemplateNotFound")
        assert "app/controllers/user_controller.py" in storage.files
        assert report.tables_processed == ["tags"]
        assert report.route_lines == ['resource("tags", "app.controllers.tag_controller.router")']
        assert 'resource("users"' not in storage.files["app/routes.py"]

    def test_malformed_column_keeps_table(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        document = normalize_document(
            {"tables": [{"name": "reviews", "columns": [{"name": "body", "type": "text"}, {"type": "string"}]}]}
        )
        storage = MemoryStorage()
        report = make_generator(storage).build(document)

        assert report.success
        assert report.tables_processed == ["reviews"]
        assert "app/models/review.py" in storage.files
        assert report.warnings == ["Column #2 of table 'reviews' was omitted: name: Field required"]

    def test_column_warnings_reach_report(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        document = normalize_compact_lines(["table: accounts email|string, email|string|unique, created_at|timestamp"])
        report = make_generator().build(document)
        assert report.success
        assert report.warnings == [
            "Duplicate column 'email' in table 'accounts' was skipped.",
            "Column 'accounts.created_at' is managed by timestamps and was dropped.",
        ]


# ===========================================================================
# Duplicate tables
# ===========================================================================


class TestDuplicateTables:

    def test_duplicate_skipped_by_default(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        document = normalize_compact_lines(["table: tags label|string", "table: tags slug|string"])
        report = make_generator().build(document)
        assert report.tables_processed == ["tags"]
        assert report.warnings.count("Duplicate table 'tags' skipped.") == 1

    def test_duplicate_regenerated_when_confirmed(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        storage = MemoryStorage()
        document = normalize_compact_lines(["table: tags label|string", "table: tags slug|string"])
        prompt = ScriptedPrompt(["y", "y", "y", "y"])
        report = make_generator(storage, prompt).build(document)

        assert report.tables_processed == ["tags", "tags"]
        assert len(prompt.asked) == 4
        assert 'sa.Column("slug"' in storage.files["migrations/versions/2024_01_15_103000_create_tags_table.py"]
        assert report.route_lines.count('resource("tags", "app.controllers.tag_controller.router")') == 2
        assert storage.files["app/routes.py"].count("resource(\"tags\"") == 1


# ===========================================================================
# Collisions, module scope & general components
# ===========================================================================


class TestCollisions:

    @pytest.fixture()
    def colliding(self) -> SchemaDocument:
        return normalize_document(
            {
                "tables": ["table: users name|string"],
                "models": ["User"],
                "controllers": ["UserController"],
            }
        )

    def test_declared_policy(self, make_generator: Callable[..., ScaffoldGenerator], colliding: SchemaDocument) -> None:
        storage = MemoryStorage()
        report = make_generator(storage, collision_policy="declared").build(colliding)
        assert report.success
        assert report.artifacts_written.count("app/models/user.py") == 1
        assert "Model 'User' is declared explicitly; table-derived one skipped." in report.warnings
        assert "__fillable__: ClassVar[List[str]] = [\"name\"]" in storage.files["app/models/user.py"]
        assert report.route_lines == [USERS_ROUTE]

    def test_derived_policy(self, make_generator: Callable[..., ScaffoldGenerator], colliding: SchemaDocument) -> None:
        report = make_generator(collision_policy="derived").build(colliding)
        assert "Declared model 'User' skipped in favour of the table-derived one." in report.warnings
        assert "Declared controller 'UserController' skipped in favour of the table-derived one." in report.warnings
        assert report.artifacts_written.count("app/controllers/user_controller.py") == 1

    def test_both_policy_goes_through_conflicts(
        self, make_generator: Callable[..., ScaffoldGenerator], colliding: SchemaDocument
    ) -> None:
        prompt = ScriptedPrompt(["n", "y"])
        report = make_generator(MemoryStorage(), prompt, collision_policy="both").build(colliding)
        assert len(prompt.asked) == 2
        assert report.artifacts_skipped == ["app/models/user.py"]
        assert report.artifacts_written.count("app/controllers/user_controller.py") == 2

    def test_ask_policy(self, make_generator: Callable[..., ScaffoldGenerator], colliding: SchemaDocument) -> None:
        prompt = ScriptedPrompt(["derived", "declared"])
        report = make_generator(MemoryStorage(), prompt).build(colliding)
        assert [method for method, _ in prompt.asked] == ["choose", "choose"]
        assert report.artifacts_written.count("app/models/user.py") == 1
        assert report.artifacts_written.count("app/controllers/user_controller.py") == 1
        assert "Declared model 'User' skipped in favour of the table-derived one." in report.warnings


class TestLayout:

    def test_module_scope(
        self, make_generator: Callable[..., ScaffoldGenerator], users_posts_document: SchemaDocument
    ) -> None:
        storage = MemoryStorage()
        report = make_generator(storage, module="blog").build(users_posts_document)
        assert "app/modules/blog/models/user.py" in storage.files
        assert "app/modules/blog/controllers/post_controller.py" in storage.files
        assert USERS_MIGRATION in storage.files
        assert report.route_lines[0] == 'resource("users", "app.modules.blog.controllers.user_controller.router")'
        assert "from app.modules.blog.models.post import Post" in storage.files[
            "app/modules/blog/controllers/post_controller.py"
        ]

    def test_table_and_general_views(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        storage = MemoryStorage()
        document = normalize_document(
            {
                "tables": [{"name": "users", "views": ["users/[index,edit]", {"path": "list", "template": "table"}]}],
                "views": ["partials/[header,footer]"],
            }
        )
        make_generator(storage, module="Admin").build(document)
        for path in (
            "app/templates/admin/users/index.html",
            "app/templates/admin/users/edit.html",
            "app/templates/admin/users/list.html",
            "app/templates/admin/partials/header.html",
            "app/templates/admin/partials/footer.html",
        ):
            assert path in storage.files, path
        assert "{% for user in users %}" in storage.files["app/templates/admin/users/list.html"]

    def test_standalone_components(self, make_generator: Callable[..., ScaffoldGenerator]) -> None:
        storage = MemoryStorage()
        document = normalize_document(
            {"models": [{"name": "Role", "relations": ["users:belongsToMany"]}], "controllers": ["Dashboard"]}
        )
        report = make_generator(storage).build(document)
        assert report.success
        assert 'users: Mapped[List["User"]] = relationship("User", secondary="users_pivot")' in storage.files[
            "app/models/role.py"
        ]
        assert '"controller": "DashboardController"' in storage.files["app/controllers/dashboard_controller.py"]


# ===========================================================================
# Real files
# ===========================================================================


class TestFileSystem:

    def test_example_schema_generates_valid_python(
        self, output_dir: pathlib.Path, example_dict: Dict[str, Any]
    ) -> None:
        document, config = parse_raw_schema(example_dict)
        generator = ScaffoldGenerator(
            FileSystemStorage(output_dir), config=config, clock=lambda: datetime(2024, 1, 15, 10, 30)
        )
        report = generator.build(document)
        assert report.success, report.failures

        py_files = list(output_dir.rglob("*.py"))
        assert len(py_files) >= 10
        for py_file in py_files:
            code = py_file.read_text(encoding="utf-8")
            try:
                ast.parse(code, filename=str(py_file))
            except SyntaxError as exc:
                pytest.fail(f"Syntax error in {py_file.relative_to(output_dir)}: {exc}\n{code[:500]}")
        assert (output_dir / "app" / "templates" / "users" / "index.html").is_file()

    def test_build_from_file(self, schema_yaml_path: pathlib.Path, output_dir: pathlib.Path) -> None:
        report = ScaffoldGenerator(FileSystemStorage(output_dir)).build_from_file(schema_yaml_path)
        assert report.success
        assert report.base_path == str(output_dir.resolve())
        assert (output_dir / "app" / "routes.py").is_file()
        assert not list(output_dir.rglob("*.tmp"))

    def test_load_schema_file_errors(self, tmp_path: pathlib.Path) -> None:
        from schemaforge.errors import SchemaParseError

        with pytest.raises(FileNotFoundError):
            load_schema_file(tmp_path / "missing.yaml")
        bad = tmp_path / "bad.yaml"
        bad.write_text("tables: [unclosed", encoding="utf-8")
        with pytest.raises(SchemaParseError):
            load_schema_file(bad)
        listing = tmp_path / "list.json"
        listing.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(SchemaParseError):
            load_schema_file(listing)

    def test_parse_raw_schema_overrides(self, users_posts_dict: Dict[str, Any]) -> None:
        raw = dict(users_posts_dict, config={"module": "Shop", "force": False})
        document, config = parse_raw_schema(raw, {"force": True, "module": None})
        assert config.module == "Shop"
        assert config.force is True
        assert document.table_names == ["users", "posts"]

    def test_report_defaults(self) -> None:
        report = BuildReport()
        assert not report.success
        assert report.route_action is None
