"""Evaluation context passed to every control evaluator."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping


def _freeze(value: Mapping | None) -> Mapping | None:
    if not isinstance(value, Mapping):
        return None
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only snapshot of the facts available at decision time.

    All fields are optional. A control whose required field is None
    reports NOT_APPLICABLE instead of failing:

    - now: aware datetime (naive values are read in ``timezone``)
    - user_roles: roles of the current user, empty for anonymous visitors
    - query_params / cookies: request query string and cookies
    - user_agent / device: raw user agent and an explicit device class
      ("desktop", "tablet", "mobile") that wins over the user agent
    - referrer: "" for a direct visit, None when unknown
    - url_path: request path without the query string
    - screen_width: viewport width in pixels, only known in the editor
    - integrations: third-party integrations keyed by slug, e.g.
      {"wp_fusion": {"active": True, "tags": [...], "user_tags": [...]}}
    - metadata: custom field values of the current post
    - location: page facts such as post type, post id or template
    """

    now: datetime | None = None
    timezone: str = "UTC"
    user_roles: frozenset[str] = frozenset()
    query_params: Mapping[str, str] | None = None
    cookies: Mapping[str, str] | None = None
    user_agent: str | None = None
    device: str | None = None
    referrer: str | None = None
    url_path: str | None = None
    screen_width: int | None = None
    integrations: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    metadata: Mapping[str, Any] | None = None
    location: Mapping[str, Any] | None = None

    def __post_init__(self):
        object.__setattr__(self, "user_roles", frozenset(self.user_roles or ()))
        for name in ("query_params", "cookies", "metadata", "location"):
            object.__setattr__(self, name, _freeze(getattr(self, name)))
        # Values that are not mappings are dropped.
        integrations = {
            slug: MappingProxyType(dict(settings))
            for slug, settings in _freeze(self.integrations or {}).items()
            if isinstance(settings, Mapping)
        }
        object.__setattr__(self, "integrations", MappingProxyType(integrations))

    @property
    def is_logged_in(self) -> bool:
        """A visitor counts as logged in when they carry at least one role."""
        return bool(self.user_roles)

    def integration_active(self, slug: str) -> bool:
        """Check whether a third-party integration is active."""
        return bool(self.get_integration(f"{slug}.active", False))

    def get_integration(self, path: str, default: Any = None) -> Any:
        """Get an integration value by dot-separated path.

        Example:
            context.get_integration('wp_fusion.user_tags', default=[])
        """
        keys = path.split(".")
        value: Any = self.integrations
        for key in keys:
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                return default
        return value
