"""Controls based on the current request."""

import logging
import re
from typing import Any, Mapping
from urllib.parse import urlsplit

from .base import TriState
from .context import EvaluationContext
from .common import as_list, compare_entry, match_any_all, rule_entries
from .registry import ControlDefinition

logger = logging.getLogger(__name__)

EXACT = "exact"
PREFIX = "prefix"
REGEX = "regex"


def _evaluate_pairs(
    attributes: Any, values: Mapping[str, str] | None, name_key: str, kind: str
) -> tuple[TriState, str]:
    """Shared rule for query string and cookie triples."""
    entries, any_all = rule_entries(attributes)
    if values is None:
        return TriState.NOT_APPLICABLE, f"No {kind} data available"

    matches = []
    for entry in entries:
        name = entry.get(name_key) or entry.get("name")
        if not name:
            continue
        met = compare_entry(
            entry.get("operator", "="), name in values, values.get(name), entry.get("value")
        )
        if met is None:
            logger.warning(f"Unknown {kind} operator '{entry.get('operator')}'")
            continue
        matches.append(met)

    if not matches:
        return TriState.NOT_APPLICABLE, f"No {kind} rules configured"
    met = match_any_all(matches, any_all)
    return TriState.of(met), f"{kind.capitalize()} rules {'matched' if met else 'not matched'}"


def evaluate_query_string(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match query parameters.

    Config:
        entries: [{"param": str, "operator": "="|"!="|"exists"|"not-exists",
                   "value": str}], or the bare list
        anyAll: "all" (default) or "any"
    """
    return _evaluate_pairs(attributes, context.query_params, "param", "query string")


def evaluate_cookie(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match cookies, same shape as the query string control."""
    return _evaluate_pairs(attributes, context.cookies, "cookie", "cookie")


def _normalize_path(path: str) -> str:
    path = "/" + path.strip().lstrip("/")
    return path.rstrip("/") or "/"


def path_matches(pattern: str, path: str, mode: str) -> bool:
    """Match a URL path against one pattern.

    Raises:
        re.error: If a regex pattern does not compile
    """
    if mode == REGEX:
        return re.search(pattern, path) is not None
    if mode == PREFIX:
        prefix = _normalize_path(pattern)
        normalized = _normalize_path(path)
        return prefix == "/" or normalized == prefix or normalized.startswith(prefix + "/")
    return _normalize_path(pattern) == _normalize_path(path)


def evaluate_url_path(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match the request path.

    Config:
        paths: Patterns to match
        matchMode: "exact" (default), "prefix" or "regex"
        operator: "matches" (show on match, default) or "not-matches"
    """
    if not isinstance(attributes, Mapping):
        attributes = {"paths": attributes}
    patterns = [str(p) for p in as_list(attributes.get("paths")) if str(p).strip()]
    if not patterns:
        return TriState.NOT_APPLICABLE, "No URL paths configured"
    if context.url_path is None:
        return TriState.NOT_APPLICABLE, "URL path unknown"

    mode = str(attributes.get("matchMode", EXACT)).lower()
    if mode not in (EXACT, PREFIX, REGEX):
        return TriState.NOT_APPLICABLE, f"Unknown match mode '{mode}'"

    usable = 0
    matched = False
    for pattern in patterns:
        try:
            hit = path_matches(pattern, context.url_path, mode)
        except re.error as e:
            logger.warning(f"Skipping invalid URL path pattern '{pattern}': {e}")
            continue
        usable += 1
        matched = matched or hit

    if not usable:
        return TriState.NOT_APPLICABLE, "No valid URL path patterns"
    if attributes.get("operator") == "not-matches":
        return TriState.of(not matched), "URL path excluded" if matched else "URL path not excluded"
    return TriState.of(matched), "URL path matched" if matched else "URL path not matched"


def referrer_matches(source: str, referrer: str) -> bool:
    """Match a referral source against the referring URL.

    A bare host matches that host and its subdomains. A source with a path
    ("example.com/newsletter") also needs the referrer's path to start
    with that path. The query string is never searched.
    """
    source = source.strip().lower()
    referrer = referrer.strip().lower()
    if not source or not referrer:
        return False
    parts = urlsplit(referrer if "//" in referrer else f"//{referrer}")
    host = (parts.hostname or "").lower()
    source_host, _, source_path = source.split("//")[-1].partition("/")
    if not host or not (host == source_host or host.endswith("." + source_host)):
        return False
    return not source_path or parts.path.startswith("/" + source_path)


def evaluate_referral_source(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match the referring site.

    Config:
        sources: Hosts, optionally followed by a path
        hideOnMatch: Hide instead of show when a source matches
    """
    if not isinstance(attributes, Mapping):
        attributes = {"sources": attributes}
    sources = [str(s) for s in as_list(attributes.get("sources")) if str(s).strip()]
    if not sources:
        return TriState.NOT_APPLICABLE, "No referral sources configured"
    if context.referrer is None:
        return TriState.NOT_APPLICABLE, "Referrer unknown"

    matched = any(referrer_matches(source, context.referrer) for source in sources)
    if attributes.get("hideOnMatch", False):
        matched = not matched
    return TriState.of(matched), (
        "Referral source allowed" if matched else "Referral source not allowed"
    )


QUERY_STRING = ControlDefinition(
    identifier="queryString",
    evaluate=evaluate_query_string,
    label="Query String",
    icon="query-string",
    setting_slug="query_string",
)

COOKIE = ControlDefinition(
    identifier="cookie",
    evaluate=evaluate_cookie,
    label="Cookie",
    icon="cookie",
    setting_slug="cookie",
)

URL_PATH = ControlDefinition(
    identifier="urlPath",
    evaluate=evaluate_url_path,
    label="URL Path",
    icon="url-path",
    setting_slug="url_path",
)

REFERRAL_SOURCE = ControlDefinition(
    identifier="referralSource",
    evaluate=evaluate_referral_source,
    label="Referral Source",
    icon="referral-source",
    setting_slug="referral_source",
)
