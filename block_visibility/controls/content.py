"""Controls based on the current post: custom fields and location."""

import logging
from typing import Any, Mapping

from .base import TriState
from .context import EvaluationContext
from .common import as_list, match_any_all, rule_entries
from .registry import ControlDefinition

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _as_number(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compare_field(operator: str, present: bool, actual: Any, expected: Any) -> bool | None:
    """Compare a custom field value. Returns None for unusable rules."""
    if operator == "empty":
        return not present or _is_empty(actual)
    if operator == "not-empty":
        return present and not _is_empty(actual)
    if operator == "=":
        return present and str(actual) == str(expected)
    if operator == "!=":
        return not present or str(actual) != str(expected)
    if operator == "contains":
        if isinstance(actual, (list, tuple, set, frozenset)):
            return str(expected) in {str(item) for item in actual}
        return present and str(expected) in str(actual)
    if operator in (">", "<"):
        left, right = _as_number(actual), _as_number(expected)
        if right is None:
            return None
        if left is None:
            return False
        return left > right if operator == ">" else left < right
    return None


def evaluate_field_rules(
    attributes: Any, fields: Mapping[str, Any] | None, kind: str
) -> tuple[TriState, str]:
    """Match {field, operator, value} rules against a mapping of field values.

    Shared by every custom-field style control. ``kind`` names the source
    in descriptions and log messages.
    """
    rules, any_all = rule_entries(attributes, key="rules")
    if not isinstance(fields, Mapping):
        return TriState.NOT_APPLICABLE, f"No {kind} available"

    matches = []
    for rule in rules:
        name = rule.get("field")
        if not name:
            continue
        met = compare_field(
            str(rule.get("operator", "=")), name in fields, fields.get(name), rule.get("value"),
        )
        if met is None:
            logger.warning(f"Skipping unusable {kind} rule for field '{name}'")
            continue
        matches.append(met)

    if not matches:
        return TriState.NOT_APPLICABLE, f"No {kind} rules configured"
    met = match_any_all(matches, any_all)
    label = f"{kind[:1].upper()}{kind[1:]} rules"
    return TriState.of(met), f"{label} {'matched' if met else 'not matched'}"


def evaluate_metadata(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match custom field values of the current post.

    Config:
        rules: [{"field": str, "operator": "="|"!="|"empty"|"not-empty"|
                 "contains"|">"|"<", "value": Any}]
        anyAll: "all" (default) or "any"
    """
    return evaluate_field_rules(attributes, context.metadata, "metadata")


def evaluate_location(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match facts about the page being rendered.

    Config:
        rules: [{"param": "postType"|"postId"|"pageTemplate"|...,
                 "operator": "any"|"none", "values": [...]}]
        anyAll: "all" (default) or "any"
    """
    rules, any_all = rule_entries(attributes, key="rules")
    if context.location is None:
        return TriState.NOT_APPLICABLE, "Location unknown"

    matches = []
    for rule in rules:
        param = rule.get("param")
        values = {str(v) for v in as_list(rule.get("values"))}
        operator = rule.get("operator", "any")
        if not param or not values or operator not in ("any", "none"):
            continue
        actual = {str(v) for v in as_list(context.location.get(param))}
        hit = bool(actual & values)
        matches.append(hit if operator == "any" else not hit)

    if not matches:
        return TriState.NOT_APPLICABLE, "No location rules configured"
    met = match_any_all(matches, any_all)
    return TriState.of(met), "Location rules " + ("matched" if met else "not matched")


METADATA = ControlDefinition(
    identifier="metadata",
    evaluate=evaluate_metadata,
    label="Metadata",
    icon="metadata",
    setting_slug="metadata",
)

LOCATION = ControlDefinition(
    identifier="location",
    evaluate=evaluate_location,
    label="Location",
    icon="location",
    setting_slug="location",
)
