"""Controls based on the current user."""

from typing import Any, Mapping

from .base import TriState
from .context import EvaluationContext
from .common import as_list
from .registry import ControlDefinition

PUBLIC = "public"
ALL = "all"
LOGGED_IN = "logged-in"
LOGGED_OUT = "logged-out"

ROLE_VALUES = (ALL, PUBLIC, LOGGED_IN, LOGGED_OUT)


def evaluate_hide_block(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Hide the block outright.

    Accepts either a bare boolean or {"hideBlock": bool}.
    """
    if isinstance(attributes, Mapping):
        attributes = attributes.get("hideBlock", False)
    if attributes is True:
        return TriState.FALSE, "Block is hidden"
    return TriState.NOT_APPLICABLE, "Block is not hidden"


def configured_role_visibility(control_set: Mapping[str, Any]) -> str:
    """The visibilityByRole value configured for a block, default "public"."""
    user_role = control_set.get("userRole")
    if not isinstance(user_role, Mapping):
        return PUBLIC
    value = user_role.get("visibilityByRole", PUBLIC)
    return PUBLIC if value == ALL else value


def evaluate_user_role(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Gate on authentication state and, for logged-in users, on roles.

    Config:
        visibilityByRole: "all", "public", "logged-in" or "logged-out"
        restrictedRoles: Roles allowed when logged-in (empty means any role)
        hideOnRestrictedRoles: Hide from restrictedRoles instead of showing
    """
    if not isinstance(attributes, Mapping):
        return TriState.NOT_APPLICABLE, "User role not configured"

    visibility = attributes.get("visibilityByRole", ALL)
    if visibility not in ROLE_VALUES:
        return TriState.NOT_APPLICABLE, f"Unknown visibilityByRole '{visibility}'"
    if visibility in (ALL, PUBLIC):
        return TriState.NOT_APPLICABLE, "Visible to everyone"

    if visibility == LOGGED_OUT:
        met = not context.is_logged_in
        return TriState.of(met), "User is logged out" if met else "User is logged in"

    if not context.is_logged_in:
        return TriState.FALSE, "User is logged out"

    restricted = {str(role) for role in as_list(attributes.get("restrictedRoles"))}
    if not restricted:
        return TriState.TRUE, "User is logged in"

    has_role = bool(restricted & context.user_roles)
    if attributes.get("hideOnRestrictedRoles", False):
        return TriState.of(not has_role), (
            "User has a hidden role" if has_role else "User has no hidden role"
        )
    return TriState.of(has_role), (
        "User has a restricted role" if has_role else "User lacks the restricted roles"
    )


HIDE_BLOCK = ControlDefinition(
    identifier="hideBlock",
    evaluate=evaluate_hide_block,
    label="Hide Block",
    icon="hidden",
    defaults=False,
    setting_slug="hide_block",
    short_circuit=True,
)

USER_ROLE = ControlDefinition(
    identifier="userRole",
    evaluate=evaluate_user_role,
    label="User Role",
    icon="user-role",
    defaults={"visibilityByRole": ALL, "restrictedRoles": []},
    setting_slug="visibility_by_role",
)
