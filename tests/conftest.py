"""
tests/conftest.py
Shared fixtures for the schemaforge test suite.

No external mocking libraries are used: prompts are scripted with
``ScriptedPrompt``, storage is either ``MemoryStorage`` or a real
``FileSystemStorage`` inside pytest's ``tmp_path``.
"""

from __future__ import annotations

import copy
import pathlib
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import pytest
import yaml

from schemaforge.generator import ScaffoldGenerator
from schemaforge.models import GenerationConfig, SchemaDocument
from schemaforge.normalizer import normalize_document
from schemaforge.prompts import NonInteractivePrompt, PromptProvider
from schemaforge.storage import MemoryStorage, StorageSink


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"

FIXED_NOW: datetime = datetime(2024, 1, 15, 10, 30, 0, 123456)


def fixed_clock() -> datetime:
    return FIXED_NOW


# ---------------------------------------------------------------------------
# Raw schema data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_example_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session."""
    assert SCHEMA_EXAMPLE_PATH.exists(), f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}."
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def example_dict(raw_example_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_example_dict)


@pytest.fixture()
def users_posts_dict() -> Dict[str, Any]:
    """users + posts, posts.user_id → users.id ON DELETE cascade."""
    return {
        "tables": [
            {
                "name": "users",
                "timestamps": True,
                "columns": [
                    {"name": "name", "type": "string"},
                    {"name": "email", "type": "string", "unique": True},
                ],
            },
            {
                "name": "posts",
                "timestamps": True,
                "columns": [
                    {"name": "title", "type": "string"},
                    {
                        "name": "user_id",
                        "type": "integer",
                        "foreign": {"on": "users", "references": "id", "onDelete": "cascade"},
                    },
                ],
            },
        ]
    }


@pytest.fixture()
def users_posts_document(users_posts_dict: Dict[str, Any]) -> SchemaDocument:
    return normalize_document(users_posts_dict)


@pytest.fixture()
def schema_yaml_path(users_posts_dict: Dict[str, Any], tmp_path: pathlib.Path) -> pathlib.Path:
    """Write the users/posts schema to a temporary YAML file."""
    path = tmp_path / "schema.yaml"
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(users_posts_dict, fh, default_flow_style=False, allow_unicode=True)
    return path


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def make_generator() -> Callable[..., ScaffoldGenerator]:
    """
    Factory for generators with a fixed clock.

    Keyword arguments other than ``storage`` and ``prompt`` become
    ``GenerationConfig`` fields.
    """

    def _make(
        storage: Optional[StorageSink] = None,
        prompt: Optional[PromptProvider] = None,
        **config: Any,
    ) -> ScaffoldGenerator:
        return ScaffoldGenerator(
            storage if storage is not None else MemoryStorage(),
            config=GenerationConfig(**config),
            prompt=prompt if prompt is not None else NonInteractivePrompt(),
            clock=fixed_clock,
        )

    return _make


@pytest.fixture()
def output_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    """A clean target application root inside tmp_path."""
    out = tmp_path / "app_root"
    out.mkdir(parents=True, exist_ok=True)
    return out
