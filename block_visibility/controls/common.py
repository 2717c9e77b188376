"""Helpers shared by the built-in evaluators."""

import logging
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

ANY = "any"
ALL = "all"


def as_list(value: Any) -> list:
    """Normalize a scalar, list or None into a list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def rule_entries(attributes: Any, key: str = "entries") -> tuple[list[Mapping], str]:
    """Split attributes into (entries, anyAll).

    Attributes may be the bare entry list or a mapping holding the list
    under ``key`` together with an ``anyAll`` setting (default "all").
    """
    if isinstance(attributes, Mapping):
        entries = attributes.get(key) or []
        any_all = str(attributes.get("anyAll", ALL)).lower()
    else:
        entries = as_list(attributes)
        any_all = ALL
    if any_all not in (ANY, ALL):
        logger.warning(f"Unknown anyAll value '{any_all}', using 'all'")
        any_all = ALL
    return [entry for entry in entries if isinstance(entry, Mapping)], any_all


def match_any_all(matches: Iterable[bool], any_all: str) -> bool:
    """Reduce per-entry matches with the control's own any/all setting."""
    if any_all == ANY:
        return any(matches)
    return all(matches)


def compare_entry(operator: str, present: bool, actual: Any, expected: Any) -> bool | None:
    """Compare one (operator, value) entry against an actual value.

    Returns None for an unknown operator so callers can skip the entry.
    """
    operator = (operator or "=").lower()
    if operator == "exists":
        return present
    if operator in ("not-exists", "not_exists", "!exists"):
        return not present
    if operator in ("=", "==", "equals"):
        return present and str(actual) == str(expected)
    if operator in ("!=", "not-equals"):
        return not present or str(actual) != str(expected)
    return None
