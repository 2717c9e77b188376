"""Browser, device and screen size controls."""

import re
from typing import Any, Mapping

from .base import TriState
from .context import EvaluationContext
from .common import as_list
from .registry import ControlDefinition

DESKTOP = "desktop"
TABLET = "tablet"
MOBILE = "mobile"

TABLET_PATTERN = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.I)
MOBILE_PATTERN = re.compile(r"mobi|iphone|ipod|android|blackberry|opera mini|iemobile", re.I)

# Order matters: Edge and Opera also announce Chrome, Chrome announces Safari.
BROWSER_PATTERNS = (
    ("edge", re.compile(r"edg(e|a|ios)?/", re.I)),
    ("opera", re.compile(r"opr/|opera", re.I)),
    ("firefox", re.compile(r"firefox|fxios", re.I)),
    ("chrome", re.compile(r"chrome|crios|chromium", re.I)),
    ("safari", re.compile(r"safari", re.I)),
)

# Minimum width of each breakpoint, largest first.
BREAKPOINTS = (
    ("extraLarge", 1200),
    ("large", 992),
    ("medium", 768),
    ("small", 576),
    ("extraSmall", 0),
)

SCREEN_SIZE_CLASS = "block-visibility-hide-{}-screen"


def detect_device(user_agent: str) -> str:
    """Classify a user agent as desktop, tablet or mobile."""
    if TABLET_PATTERN.search(user_agent):
        return TABLET
    if MOBILE_PATTERN.search(user_agent):
        return MOBILE
    return DESKTOP


def detect_browser(user_agent: str) -> str | None:
    for name, pattern in BROWSER_PATTERNS:
        if pattern.search(user_agent):
            return name
    return None


def evaluate_browser_device(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Match the visitor's device class and browser.

    Config:
        devices: Any of "desktop", "tablet", "mobile"
        browsers: Any of "chrome", "firefox", "safari", "edge", "opera"
        hideOnMatch: Hide instead of show when matched
    """
    if not isinstance(attributes, Mapping):
        return TriState.NOT_APPLICABLE, "Device not configured"
    devices = {str(d).lower() for d in as_list(attributes.get("devices"))}
    browsers = {str(b).lower() for b in as_list(attributes.get("browsers"))}
    if not devices and not browsers:
        return TriState.NOT_APPLICABLE, "No devices configured"

    device = context.device or (detect_device(context.user_agent) if context.user_agent else None)
    browser = detect_browser(context.user_agent) if context.user_agent else None
    if (devices and device is None) or (browsers and browser is None):
        return TriState.NOT_APPLICABLE, "Device unknown"

    matched = (not devices or device in devices) and (not browsers or browser in browsers)
    if attributes.get("hideOnMatch", False):
        matched = not matched
    return TriState.of(matched), f"Device '{device or browser}' " + (
        "allowed" if matched else "not allowed"
    )


def breakpoint_for(width: int) -> str:
    for name, minimum in BREAKPOINTS:
        if width >= minimum:
            return name
    return BREAKPOINTS[-1][0]


def hidden_breakpoints(attributes: Any) -> list[str]:
    known = {name for name, _ in BREAKPOINTS}
    if not isinstance(attributes, Mapping):
        return []
    return [str(b) for b in as_list(attributes.get("hideOn")) if str(b) in known]


def screen_size_classes(attributes: Any) -> list[str]:
    """CSS classes that hide a block on the configured breakpoints.

    Used by the render pass, where the viewport width is not known.
    """
    return [SCREEN_SIZE_CLASS.format(name) for name in hidden_breakpoints(attributes)]


def evaluate_screen_size(
    attributes: Any, context: EvaluationContext, control_set: Mapping[str, Any]
) -> tuple[TriState, str]:
    """Hide the block on named breakpoints.

    Config:
        hideOn: Any of "extraLarge", "large", "medium", "small", "extraSmall"
    """
    hidden = hidden_breakpoints(attributes)
    if not hidden:
        return TriState.NOT_APPLICABLE, "No screen sizes configured"
    if context.screen_width is None:
        return TriState.NOT_APPLICABLE, "Screen width unknown"

    current = breakpoint_for(context.screen_width)
    met = current not in hidden
    return TriState.of(met), f"Screen size '{current}' " + ("shown" if met else "hidden")


BROWSER_DEVICE = ControlDefinition(
    identifier="browserDevice",
    evaluate=evaluate_browser_device,
    label="Browser & Device",
    icon="browser-device",
    setting_slug="browser_device",
)

SCREEN_SIZE = ControlDefinition(
    identifier="screenSize",
    evaluate=evaluate_screen_size,
    label="Screen Size",
    icon="screen-size",
    setting_slug="screen_size",
)
