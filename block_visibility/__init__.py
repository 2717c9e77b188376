"""Conditional visibility for page-builder content blocks.

A block renders only when every visibility control configured on it
allows it. The same decision is made in the editor preview and in the
render pass:

    from block_visibility import build_context, is_block_visible

    context = build_context(roles=["editor"], now="2024-01-15T00:00:00Z")
    is_block_visible({"visibilityByRole": "logged-in"}, context)
"""

from .adapters import build_context, context_from_preview, context_from_request, render_blocks
from .blocks import has_visibility_controls
from .config import Settings, SettingsError, get_settings
from .controls import (
    ControlDefinition,
    ControlRegistry,
    DuplicateControlError,
    EvaluationContext,
    TriState,
    register_control,
    registry,
)
from .engine import ControlResult, combine, explain_block_visibility, is_block_visible
from .resolver import ResolvedControl, resolve

__all__ = [
    "ControlDefinition",
    "ControlRegistry",
    "ControlResult",
    "DuplicateControlError",
    "EvaluationContext",
    "ResolvedControl",
    "Settings",
    "SettingsError",
    "TriState",
    "build_context",
    "combine",
    "context_from_preview",
    "context_from_request",
    "explain_block_visibility",
    "get_settings",
    "has_visibility_controls",
    "is_block_visible",
    "register_control",
    "registry",
    "render_blocks",
    "resolve",
]
