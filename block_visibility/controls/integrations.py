"""Controls backed by third-party integrations (WP Fusion tags, ACF fields)."""

from typing import Any, Mapping

from .base import Evaluator, TriState
from .context import EvaluationContext
from .common import as_list
from .content import evaluate_field_rules
from .registry import ControlDefinition
from .user import LOGGED_IN, LOGGED_OUT, configured_role_visibility


def _tag_value(tag: Any) -> str:
    if isinstance(tag, Mapping):
        return str(tag.get("value", ""))
    return str(tag)


def make_tag_evaluator(integration: str) -> Evaluator:
    """Create an evaluator for tags provided by an integration.

    The integration entry in the context looks like:
        {"active": True, "tags": [{"value": "vip", "label": "VIP"}],
         "user_tags": ["vip"]}

    The control narrows the User Role control: the "any"/"all" fields only
    apply when the block is configured for logged-in users, and the "not"
    field applies unless it is configured for logged-out users.
    """

    def evaluate(
        attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
    ) -> tuple[TriState, str]:
        if not isinstance(attributes, Mapping):
            return TriState.NOT_APPLICABLE, "Tags not configured"

        available = context.get_integration(f"{integration}.tags")
        known = None if available is None else {_tag_value(t) for t in as_list(available)}

        def selected(key: str) -> set[str]:
            tags = {_tag_value(t) for t in as_list(attributes.get(key)) if _tag_value(t)}
            return tags if known is None else tags & known

        user_tags = {_tag_value(t) for t in as_list(context.get_integration(f"{integration}.user_tags"))}
        role_visibility = configured_role_visibility(control_set)

        checks = []
        if role_visibility == LOGGED_IN:
            tags_any = selected("tagsAny")
            tags_all = selected("tagsAll")
            if tags_any:
                checks.append(("any", context.is_logged_in and bool(tags_any & user_tags)))
            if tags_all:
                checks.append(("all", context.is_logged_in and tags_all <= user_tags))
        if role_visibility != LOGGED_OUT:
            tags_not = selected("tagsNot")
            if tags_not:
                checks.append(("not", not (context.is_logged_in and tags_not & user_tags)))

        if not checks:
            return TriState.NOT_APPLICABLE, "No applicable tag rules"
        failed = [name for name, met in checks if not met]
        if failed:
            return TriState.FALSE, f"Tag rules failed: {', '.join(failed)}"
        return TriState.TRUE, "Tag rules matched"

    return evaluate


def make_tag_control(identifier: str, integration: str, label: str, **options: Any) -> ControlDefinition:
    """Build a control definition for a tag integration."""
    return ControlDefinition(
        identifier=identifier,
        evaluate=make_tag_evaluator(integration),
        label=label,
        setting_slug=integration,
        requires_integration=integration,
        depends_on=("userRole",),
        **options,
    )


WP_FUSION = make_tag_control("wpFusion", "wp_fusion", "WP Fusion", icon="wp-fusion")


def evaluate_acf(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match Advanced Custom Fields values of the current post.

    Field values come from the "acf" integration's ``fields`` mapping.

    Config:
        rules: [{"field": str, "operator": ..., "value": Any}], same
               operators as the metadata control
        anyAll: "all" (default) or "any"
    """
    return evaluate_field_rules(attributes, context.get_integration("acf.fields"), "ACF field")


ACF = ControlDefinition(
    identifier="acf",
    evaluate=evaluate_acf,
    label="Advanced Custom Fields",
    icon="acf",
    setting_slug="acf",
    requires_integration="acf",
)
