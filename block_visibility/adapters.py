"""Build evaluation contexts for the editor preview and the render pass.

Both call sites go through build_context, so the same facts always
produce the same context and the same decision. They differ only in
where the facts come from:

- Editor preview: the editor simulates request facts and sends them as
  JSON (context_from_preview).
- Render pass: facts are read from the real HTTP request
  (context_from_request). The viewport width is never known server-side,
  so screen_width is None, the screen size control reports not
  applicable, and render_blocks emits CSS classes instead.
"""

import logging
from datetime import datetime, timezone as dt_timezone
from html import escape
from http.cookies import CookieError, SimpleCookie
from typing import Any, Iterable, Mapping
from urllib.parse import parse_qsl, urlsplit

from .blocks import has_visibility_controls
from .config import Settings
from .controls import ControlRegistry, EvaluationContext, registry as default_registry
from .controls.common import as_list
from .controls.device import screen_size_classes
from .engine import is_block_visible
from .resolver import resolve

logger = logging.getLogger(__name__)

ORIGINAL_URI_HEADER = "X-Original-URI"


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, accepting a trailing "Z"."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_query(value: Any) -> dict[str, str] | None:
    """Normalize a query string or mapping. The first value of a key wins."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return {str(k): str(v[0] if isinstance(v, (list, tuple)) and v else v) for k, v in value.items()}
    params: dict[str, str] = {}
    for key, item in parse_qsl(str(value).lstrip("?"), keep_blank_values=True):
        params.setdefault(key, item)
    return params


def parse_cookies(value: Any) -> dict[str, str] | None:
    """Normalize a Cookie header string or mapping."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    cookie = SimpleCookie()
    try:
        cookie.load(str(value))
    except CookieError as e:
        logger.warning(f"Ignoring unparsable cookie header: {e}")
        return {}
    return {name: morsel.value for name, morsel in cookie.items()}


def _mapping(name: str, value: Any) -> Mapping[str, Any] | None:
    if value is None or isinstance(value, Mapping):
        return value
    logger.warning(f"Ignoring {name}: expected a mapping, got {type(value).__name__}")
    return None


def build_context(
    now: Any = None,
    timezone: str = "UTC",
    roles: Iterable[str] | None = None,
    query: Any = None,
    cookies: Any = None,
    user_agent: str | None = None,
    device: str | None = None,
    referrer: str | None = None,
    url: str | None = None,
    screen_width: Any = None,
    integrations: Mapping[str, Any] | None = None,
    metadata: Mapping[str, Any] | None = None,
    location: Mapping[str, Any] | None = None,
) -> EvaluationContext:
    """Build an EvaluationContext from loosely typed facts.

    ``url`` may be a path or a full URL; its query string is used when
    ``query`` is not given. Integrations, metadata and location that are
    not mappings are logged and ignored.
    """
    integrations = _mapping("integrations", integrations) or {}
    integrations = {
        slug: entry for slug, entry in integrations.items()
        if _mapping(f"integration '{slug}'", entry) is not None
    }
    metadata = _mapping("metadata", metadata)
    location = _mapping("location", location)

    url_path = None
    if url is not None:
        parts = urlsplit(str(url))
        url_path = parts.path or "/"
        if query is None and parts.query:
            query = parts.query

    width = None
    if screen_width not in (None, ""):
        try:
            width = int(screen_width)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid screen width '{screen_width}'")

    try:
        parsed_now = parse_datetime(now)
    except ValueError:
        logger.warning(f"Ignoring invalid timestamp '{now}'")
        parsed_now = None

    return EvaluationContext(
        now=parsed_now,
        timezone=timezone or "UTC",
        user_roles=frozenset(str(role) for role in roles or ()),
        query_params=parse_query(query),
        cookies=parse_cookies(cookies),
        user_agent=user_agent,
        device=device,
        referrer=referrer,
        url_path=url_path,
        screen_width=width,
        integrations=integrations,
        metadata=metadata,
        location=location,
    )


def context_from_preview(
    payload: Mapping[str, Any], integrations: Mapping[str, Any] | None = None
) -> EvaluationContext:
    """Build a context from the facts simulated by the editor.

    Args:
        payload: JSON object with any of now, timezone, roles, query,
            cookies, userAgent, device, referrer, url (or path),
            screenWidth, integrations, userTags, metadata, location
        integrations: Server-side integration data; entries in the
            payload override these per integration

    userTags maps an integration slug to the simulated user's tags and
    replaces that integration's user_tags.
    """
    if not isinstance(payload, Mapping):
        logger.warning("Ignoring preview context: expected a mapping")
        payload = {}
    merged = dict(_mapping("integrations", integrations) or {})
    merged.update(_mapping("integrations", payload.get("integrations")) or {})
    for slug, tags in (_mapping("userTags", payload.get("userTags")) or {}).items():
        entry = merged.get(slug)
        merged[slug] = {
            **(entry if isinstance(entry, Mapping) else {}),
            "user_tags": [str(tag) for tag in as_list(tags)],
        }
    return build_context(
        now=payload.get("now"),
        timezone=payload.get("timezone", "UTC"),
        roles=payload.get("roles"),
        query=payload.get("query"),
        cookies=payload.get("cookies"),
        user_agent=payload.get("userAgent"),
        device=payload.get("device"),
        referrer=payload.get("referrer"),
        url=payload.get("url", payload.get("path")),
        screen_width=payload.get("screenWidth"),
        integrations=merged,
        metadata=payload.get("metadata"),
        location=payload.get("location"),
    )


def context_from_request(
    request: Any,
    user_roles: Iterable[str] | None = None,
    integrations: Mapping[str, Any] | None = None,
    metadata: Mapping[str, Any] | None = None,
    location: Mapping[str, Any] | None = None,
    timezone: str = "UTC",
    now: datetime | None = None,
) -> EvaluationContext:
    """Build a context from a Flask/Werkzeug request.

    The page path comes from the X-Original-URI header when a proxy sets
    it, else from the request itself. A real request's query is always
    known, so a URL without one gives an empty query, never None. A
    missing Referer header is read as a direct visit.
    """
    original_uri = request.headers.get(ORIGINAL_URI_HEADER)
    if original_uri:
        url, query = original_uri, urlsplit(original_uri).query
    else:
        url, query = request.full_path, request.args.to_dict()
    return build_context(
        now=now or datetime.now(dt_timezone.utc),
        timezone=timezone,
        roles=user_roles,
        query=query,
        cookies=request.cookies.to_dict(),
        user_agent=request.headers.get("User-Agent", ""),
        referrer=request.referrer or "",
        url=url,
        screen_width=None,
        integrations=integrations,
        metadata=metadata,
        location=location,
    )


def _screen_size_wrap(
    html: str,
    attributes: Any,
    settings: Settings,
    registry: ControlRegistry | None,
) -> str:
    resolved = resolve(attributes, registry or default_registry, settings)
    classes = [
        css_class
        for control in resolved
        if control.identifier == "screenSize"
        for css_class in screen_size_classes(control.attributes)
    ]
    if classes:
        return f'<div class="{escape(" ".join(classes))}">{html}</div>'
    return html


def render_block(
    block: Mapping[str, Any],
    context: EvaluationContext,
    settings: Settings,
    registry: ControlRegistry | None = None,
) -> str:
    """Render one block: its HTML when visible, "" when hidden.

    Blocks restricted by screen size are wrapped in CSS hide classes. A
    block that cannot be processed is logged and rendered as hidden, so
    the rest of the page still renders.
    """
    try:
        html = str(block.get("html", ""))
        attributes = block.get("attributes") or {}
        if not has_visibility_controls(
            settings, str(block.get("name", "")), block.get("supports"), block.get("parent")
        ):
            return html

        if not is_block_visible(attributes, context, settings, registry):
            return ""
        return _screen_size_wrap(html, attributes, settings, registry)
    except Exception as e:
        logger.error(f"Failed to render block, hiding it: {e}")
        return ""


def render_blocks(
    blocks: Iterable[Mapping[str, Any]],
    context: EvaluationContext,
    settings: Settings | None = None,
    registry: ControlRegistry | None = None,
) -> str:
    """Render a page of blocks in order, dropping hidden ones."""
    settings = settings or Settings()
    return "".join(render_block(block, context, settings, registry) for block in blocks)
