"""Extensible visibility control system for block_visibility.

Each control is one independently configurable condition (user role,
date and time, query string, ...). A control is a ControlDefinition
holding an evaluator that inspects the control's attributes and the
evaluation context and returns a TriState.

Usage:
    from block_visibility.controls import EvaluationContext, registry

    context = EvaluationContext(user_roles={"editor"})
    definition = registry.get("userRole")
    state, description = definition.evaluate(
        {"visibilityByRole": "logged-in"}, context, {}
    )

Adding new controls:
    1. Write an evaluator: (attributes, context, control_set) -> (TriState, str)
    2. Register it:
       @registry.control("myControl", label="My control")
       def evaluate_my_control(attributes, context, control_set):
           ...
    3. Store the control's attributes under "myControl" in a block's
       visibility attributes
"""

from .base import Evaluator, TriState
from .context import EvaluationContext
from .content import LOCATION, METADATA
from .device import BROWSER_DEVICE, SCREEN_SIZE
from .integrations import ACF, WP_FUSION, make_tag_control
from .registry import (
    ControlDefinition,
    ControlRegistry,
    DuplicateControlError,
    register_control,
    registry,
)
from .request import COOKIE, QUERY_STRING, REFERRAL_SOURCE, URL_PATH
from .schedule import DATE_TIME
from .user import HIDE_BLOCK, USER_ROLE

BUILTIN_CONTROLS = (
    HIDE_BLOCK,
    DATE_TIME,
    USER_ROLE,
    SCREEN_SIZE,
    BROWSER_DEVICE,
    QUERY_STRING,
    COOKIE,
    URL_PATH,
    REFERRAL_SOURCE,
    LOCATION,
    METADATA,
    WP_FUSION,
    ACF,
)


def register_builtin_controls(target: ControlRegistry) -> ControlRegistry:
    """Register every built-in control on a registry."""
    for definition in BUILTIN_CONTROLS:
        target.register(definition)
    return target


register_builtin_controls(registry)

__all__ = [
    "BUILTIN_CONTROLS",
    "ControlDefinition",
    "ControlRegistry",
    "DuplicateControlError",
    "EvaluationContext",
    "Evaluator",
    "TriState",
    "make_tag_control",
    "register_builtin_controls",
    "register_control",
    "registry",
]
