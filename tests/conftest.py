"""Shared test fixtures for block_visibility tests."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from block_visibility.config import Settings
from block_visibility.controls import (
    ControlRegistry,
    EvaluationContext,
    register_builtin_controls,
)


@pytest.fixture
def temp_settings_file(tmp_path):
    """Create an empty temporary settings file."""
    path = tmp_path / "settings.yaml"
    path.write_text("")
    return path


@pytest.fixture
def settings():
    """Default settings with every control enabled."""
    return Settings()


@pytest.fixture
def fresh_registry():
    """A registry holding only the built-in controls."""
    return register_builtin_controls(ControlRegistry())


@pytest.fixture
def empty_registry():
    """A registry with nothing registered."""
    return ControlRegistry()


@pytest.fixture
def now():
    return datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anonymous_context(now):
    """An anonymous visitor with an empty request."""
    return EvaluationContext(
        now=now,
        query_params={},
        cookies={},
        referrer="",
        url_path="/",
    )


@pytest.fixture
def editor_context(now):
    """A logged-in editor with an empty request."""
    return EvaluationContext(
        now=now,
        user_roles={"editor"},
        query_params={},
        cookies={},
        referrer="",
        url_path="/",
    )


def wp_fusion(user_tags: list[str], active: bool = True, tags: list[str] | None = None) -> dict:
    """Helper to build the wp_fusion integration entry."""
    entry = {"active": active, "user_tags": user_tags}
    if tags is not None:
        entry["tags"] = [{"value": tag, "label": tag.upper()} for tag in tags]
    return {"wp_fusion": entry}
