# File: schemaforge/cli.py
"""
SchemaForge - Command-Line Interface
======================================

Built on the standard-library ``argparse`` module.

Usage examples::

    # Generate into the current directory from a schema file
    python -m schemaforge --schema schema.yaml

    # Compact table lines, scoped to a module, no prompts
    python -m schemaforge -t "table: posts title|string|len(150), user_id:integer|rel(users)" \\
        --module Blog --no-interaction -o ./myapp

    # Overwrite everything and resolve collisions in favour of declared entries
    python -m schemaforge -s schema.yaml --force --collision declared

    # Validate only / preview without writing
    python -m schemaforge -s schema.yaml --validate-only
    python -m schemaforge -s schema.yaml --dry-run

Exit codes:
    0 — success
    1 — validation error
    2 — generation error (one or more tables or artifacts failed)
    4 — input/argument error
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence, Tuple

from schemaforge.errors import SchemaParseError
from schemaforge.generator import BuildReport, ScaffoldGenerator, load_schema_file, parse_raw_schema
from schemaforge.models import CollisionPolicy, GenerationConfig, SchemaDocument
from schemaforge.prompts import ConsolePrompt, NonInteractivePrompt, PromptProvider
from schemaforge.storage import FileSystemStorage, MemoryStorage, StorageSink
from schemaforge.utils import Timer
from schemaforge.validators import ValidationResult, validate_document

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("schemaforge")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_GENERATION_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the ``schemaforge`` logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter("%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s", datefmt="%H:%M:%S")
    )

    root_logger: logging.Logger = logging.getLogger("schemaforge")
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    from schemaforge import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="schemaforge",
        description=(
            "SchemaForge — schema-driven scaffolding.\n\n"
            "Turns table definitions (JSON/YAML or compact table lines) into "
            "Alembic migrations, SQLAlchemy models, FastAPI controllers, "
            "Jinja2 views and a route registry."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s -s schema.yaml -o ./myapp\n"
            '  %(prog)s -t "table: users name|string, email|string|unique" --no-interaction\n'
            "  %(prog)s -s schema.yaml --validate-only\n"
        ),
    )

    parser.add_argument("--version", action="version", version=f"SchemaForge v{__version__}")

    # --- Input ---
    input_group = parser.add_argument_group("input")
    input_group.add_argument(
        "-s", "--schema",
        type=str,
        default=None,
        metavar="PATH",
        help="Path to the schema definition file (JSON or YAML).",
    )
    input_group.add_argument(
        "-t", "--table",
        dest="tables",
        action="append",
        default=[],
        metavar="LINE",
        help='Compact table line, e.g. "table: users name|string|len(100)". Repeatable.',
    )

    # --- Output ---
    parser.add_argument(
        "-o", "--base-path",
        type=str,
        default=".",
        metavar="DIR",
        help="Root of the target application (default: current directory).",
    )

    # --- Modes ---
    mode_group = parser.add_argument_group("operation modes")
    mode_group.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Only validate the schema without generating code.",
    )
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Run the full pipeline in memory and list the files that would be written.",
    )

    # --- Behaviour ---
    behaviour_group = parser.add_argument_group("behaviour flags")
    behaviour_group.add_argument(
        "--module",
        type=str,
        default=None,
        metavar="NAME",
        help="Scope models, controllers and views under a module (letters only).",
    )
    behaviour_group.add_argument(
        "--force",
        action="store_true",
        default=None,
        help="Overwrite existing files and replace the route block without asking.",
    )
    behaviour_group.add_argument(
        "--collision",
        type=str,
        default=None,
        choices=[p.value for p in CollisionPolicy],
        help="What to do when a table-derived model/controller is also declared explicitly.",
    )
    behaviour_group.add_argument(
        "--no-interaction",
        action="store_true",
        default=False,
        help="Never prompt; every question takes its default answer.",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Input assembly
# ---------------------------------------------------------------------------


def _build_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.module is not None:
        overrides["module"] = args.module
    if args.force is not None:
        overrides["force"] = args.force
    if args.collision is not None:
        overrides["collision_policy"] = args.collision
    return overrides


def _load_input(args: argparse.Namespace) -> Tuple[SchemaDocument, GenerationConfig]:
    """
    Merge the schema file and any ``-t`` lines into one document.

    Raises:
        FileNotFoundError: schema file missing.
        SchemaParseError: unparseable file or invalid configuration.
    """
    raw: Dict[str, Any] = {}
    if args.schema:
        raw = load_schema_file(Path(args.schema).resolve())
    if args.tables:
        existing: Any = raw.get("tables") or []
        if not isinstance(existing, list):
            raise SchemaParseError(f"'tables' must be a list, got {type(existing).__name__}.")
        raw["tables"] = list(existing) + list(args.tables)
    return parse_raw_schema(raw, _build_config_overrides(args))


def _make_prompt(args: argparse.Namespace) -> PromptProvider:
    if args.no_interaction or not sys.stdin.isatty():
        return NonInteractivePrompt()
    return ConsolePrompt()


# ---------------------------------------------------------------------------
# Validate-only mode
# ---------------------------------------------------------------------------


def _run_validate_only(document: SchemaDocument, source: str) -> int:
    with Timer("validation") as t:
        result: ValidationResult = validate_document(document)

    print(f"\n{'=' * 50}")
    print("  Schema Validation Report")
    print(f"{'=' * 50}")
    print(f"  Source:   {source}")
    print(f"  Tables:   {len(document.tables)}")
    print(f"  Time:     {t.elapsed:.3f}s")
    print(f"  Valid:    {'Yes' if result.is_valid else 'No'}")

    if result.errors:
        print(f"\n  Errors ({len(result.errors)}):")
        for err in result.errors:
            print(f"    ✗ {err}")

    if result.warnings:
        print(f"\n  Warnings ({len(result.warnings)}):")
        for warn in result.warnings:
            print(f"    ⚠ {warn}")

    if result.is_valid and not result.warnings:
        print("\n  ✅ All validations passed!")

    print(f"{'=' * 50}\n")
    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


# ---------------------------------------------------------------------------
# Generation mode
# ---------------------------------------------------------------------------


def _run_generation(
    document: SchemaDocument,
    config: GenerationConfig,
    args: argparse.Namespace,
) -> int:
    storage: StorageSink
    if args.dry_run:
        logger.info("Dry-run mode: files will not be written to disk.")
        storage = MemoryStorage()
    else:
        storage = FileSystemStorage(args.base_path)

    generator: ScaffoldGenerator = ScaffoldGenerator(storage, config=config, prompt=_make_prompt(args))
    report: BuildReport = generator.build(document)

    print(report.summary())
    if args.dry_run:
        print("\n  Planned files (dry run, nothing written):")
        for path in report.artifacts_written:
            print(f"    • {path}")

    return EXIT_SUCCESS if report.success else EXIT_GENERATION_ERROR


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Args:
        argv: Optional argument list (defaults to sys.argv[1:]).
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    if args.quiet:
        verbosity: int = -1
        logging.disable(logging.CRITICAL)
    else:
        verbosity = args.verbose
    _setup_logging(verbosity)

    if not args.schema and not args.tables:
        logger.error("Nothing to do: pass a schema file (-s) or at least one table line (-t).")
        parser.print_usage(sys.stderr)
        sys.exit(EXIT_INPUT_ERROR)

    try:
        document, config = _load_input(args)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        sys.exit(EXIT_INPUT_ERROR)
    except SchemaParseError as exc:
        logger.error("Failed to load schema: %s", exc)
        sys.exit(EXIT_INPUT_ERROR)

    source: str = args.schema or f"{len(args.tables)} table line(s)"
    if args.validate_only:
        sys.exit(_run_validate_only(document, source))

    logger.info("Source:  %s", source)
    logger.info("Target:  %s", "(memory)" if args.dry_run else Path(args.base_path).resolve())

    exit_code: int = _run_generation(document, config, args)
    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation finished with failures (exit code %d).", exit_code)
    sys.exit(exit_code)


__all__: List[str] = [
    "cli_main",
    "EXIT_SUCCESS",
    "EXIT_VALIDATION_ERROR",
    "EXIT_GENERATION_ERROR",
    "EXIT_INPUT_ERROR",
]
