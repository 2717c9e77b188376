"""Which blocks carry visibility controls."""

from typing import Any, Mapping

from .config import Settings


def has_visibility_controls(
    settings: Settings,
    block_name: str,
    supports: Mapping[str, Any] | None = None,
    parent: Any = None,
) -> bool:
    """Check whether a block type gets visibility controls.

    Blocks disabled in the settings never do. In full control mode every
    other block does; otherwise only blocks that can be added from the
    inserter and are not restricted to a parent block.
    """
    if block_name in settings.disabled_blocks:
        return False
    if settings.full_control_mode:
        return True
    if not isinstance(supports, Mapping):
        supports = {}
    if not supports.get("inserter", True):
        return False
    return not parent
