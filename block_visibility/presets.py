"""Visibility presets: named bundles of control attributes."""

import logging
from typing import Any, Iterator, Mapping

from .controls.common import as_list

logger = logging.getLogger(__name__)

PRESETS_KEY = "visibilityPresets"


def expand_presets(
    preset_attributes: Any, presets: Mapping[str, Any]
) -> Iterator[tuple[str, str, Any]]:
    """Expand a block's preset selection into control attributes.

    Args:
        preset_attributes: {"presets": [names], "hideOnMissingPreset": bool}
            or a bare list of preset names
        presets: Preset definitions keyed by name, each holding a
            "controls" mapping of control identifier to attributes

    Yields:
        (source, identifier, attributes) for every control in the selected
        presets. A missing preset yields a hideBlock entry when
        hideOnMissingPreset is set and is skipped otherwise.
    """
    if isinstance(preset_attributes, Mapping):
        names = as_list(preset_attributes.get("presets"))
        hide_on_missing = bool(preset_attributes.get("hideOnMissingPreset", False))
    else:
        names = as_list(preset_attributes)
        hide_on_missing = False

    for name in names:
        source = f"preset:{name}"
        preset = presets.get(str(name))
        controls = preset.get("controls") if isinstance(preset, Mapping) else None
        if not isinstance(controls, Mapping):
            if hide_on_missing:
                logger.warning(f"Visibility preset '{name}' not found, hiding block")
                yield source, "hideBlock", True
            else:
                logger.warning(f"Visibility preset '{name}' not found, ignoring")
            continue
        for identifier, attributes in controls.items():
            yield source, identifier, attributes
