"""Resolve a block's visibility attributes into an ordered control list."""

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from .config import Settings
from .controls import ControlDefinition, ControlRegistry
from .presets import PRESETS_KEY, expand_presets

logger = logging.getLogger(__name__)

BLOCK_VISIBILITY_KEY = "blockVisibility"
CONTROLS_KEY = "controls"
BLOCK_SOURCE = "block"

# Flat attributes written by the first releases, mapped onto controls.
LEGACY_ROLE_KEYS = ("visibilityByRole", "restrictedRoles", "hideOnRestrictedRoles")
LEGACY_DATE_KEYS = {"startDateTime": "start", "endDateTime": "end"}


@dataclass(frozen=True)
class ResolvedControl:
    """A control that applies to a block, with the attributes to evaluate."""

    definition: ControlDefinition
    attributes: Any
    source: str = BLOCK_SOURCE

    @property
    def identifier(self) -> str:
        return self.definition.identifier


def visibility_attributes(block_attributes: Any) -> Mapping[str, Any]:
    """Extract the visibility mapping, unwrapping "blockVisibility" if present."""
    if not isinstance(block_attributes, Mapping):
        return {}
    wrapped = block_attributes.get(BLOCK_VISIBILITY_KEY)
    if isinstance(wrapped, Mapping):
        return wrapped
    return block_attributes


def collect_controls(visibility: Mapping[str, Any]) -> dict[str, Any]:
    """Gather identifier -> attributes from every supported shape.

    Nested "controls" win over top-level keys, which win over the legacy
    flat attributes.
    """
    collected: dict[str, Any] = {}

    nested = visibility.get(CONTROLS_KEY)
    if isinstance(nested, Mapping):
        collected.update(nested)

    skip = {CONTROLS_KEY, PRESETS_KEY, *LEGACY_ROLE_KEYS, *LEGACY_DATE_KEYS}
    for key, value in visibility.items():
        if key not in skip:
            collected.setdefault(key, value)

    if "userRole" not in collected and any(key in visibility for key in LEGACY_ROLE_KEYS):
        collected["userRole"] = {
            key: visibility[key] for key in LEGACY_ROLE_KEYS if key in visibility
        }
    if "dateTime" not in collected and any(key in visibility for key in LEGACY_DATE_KEYS):
        collected["dateTime"] = {
            new: visibility[old] for old, new in LEGACY_DATE_KEYS.items() if old in visibility
        }
    return collected


def _candidates(
    visibility: Mapping[str, Any], settings: Settings
) -> Iterator[tuple[str, str, Any]]:
    for identifier, attributes in collect_controls(visibility).items():
        yield BLOCK_SOURCE, identifier, attributes
    if PRESETS_KEY in visibility:
        yield from expand_presets(visibility[PRESETS_KEY], settings.presets)


def order_controls(
    resolved: list[ResolvedControl], registry: ControlRegistry
) -> list[ResolvedControl]:
    """Order controls for evaluation.

    Short-circuit controls come first, the rest follow registration order
    with each control placed after every control it depends on.
    """
    position = {identifier: index for index, identifier in enumerate(registry.list_types())}
    first = [r for r in resolved if r.definition.short_circuit]
    pending = sorted(
        (r for r in resolved if not r.definition.short_circuit),
        key=lambda r: position.get(r.identifier, len(position)),
    )

    ordered = list(first)
    while pending:
        waiting = {r.identifier for r in pending}
        ready = next(
            (
                r for r in pending
                if not any(d in waiting and d != r.identifier for d in r.definition.depends_on)
            ),
            None,
        )
        if ready is None:
            logger.warning("Circular control dependencies, keeping registration order")
            ordered.extend(pending)
            break
        ordered.append(ready)
        pending.remove(ready)
    return ordered


def resolve(
    block_attributes: Any, registry: ControlRegistry, settings: Settings
) -> list[ResolvedControl]:
    """Select and order the controls that apply to a block.

    Unknown identifiers, unset or default attributes, and controls disabled
    in the settings are skipped. Presets expand into extra entries.
    """
    visibility = visibility_attributes(block_attributes)
    resolved = []

    for source, identifier, attributes in _candidates(visibility, settings):
        definition = registry.get(identifier)
        if definition is None:
            logger.debug(f"Ignoring unknown control '{identifier}'")
            continue
        if not settings.is_control_enabled(definition.slug):
            logger.debug(f"Control '{identifier}' is disabled in settings")
            continue
        if definition.is_default(attributes):
            continue
        resolved.append(ResolvedControl(definition, attributes, source))

    return order_controls(resolved, registry)
