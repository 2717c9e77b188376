"""Settings loading for block_visibility."""

import copy
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

# Environment variable naming a settings file
SETTINGS_ENV_VAR = "BLOCK_VISIBILITY_SETTINGS"

# Default settings values
DEFAULT_SETTINGS = {
    "visibility_controls": {
        "hide_block": {"enable": True},
        "visibility_by_role": {"enable": True},
        "date_time": {"enable": True},
        "screen_size": {"enable": True},
        "browser_device": {"enable": True},
        "query_string": {"enable": True},
        "cookie": {"enable": True},
        "url_path": {"enable": True},
        "referral_source": {"enable": True},
        "location": {"enable": True},
        "metadata": {"enable": True},
        "wp_fusion": {"enable": True},
        "acf": {"enable": True},
    },
    "plugin_settings": {
        "enable_full_control_mode": False,
        "disabled_blocks": [],
    },
    "presets": {
        "logged-in-users": {
            "label": "Logged-in users only",
            "controls": {"userRole": {"visibilityByRole": "logged-in"}},
        },
        "logged-out-users": {
            "label": "Logged-out users only",
            "controls": {"userRole": {"visibilityByRole": "logged-out"}},
        },
    },
}


class SettingsError(Exception):
    """Raised when a settings file cannot be read."""


def _deep_merge(base: dict, override: Mapping) -> None:
    """Deep merge override into base dict."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, Mapping):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class Settings:
    """Read-only plugin settings.

    The engine only reads settings; nothing here writes back to disk.
    """

    def __init__(self, settings_path: Path | str | None = None):
        self.settings_path = Path(settings_path) if settings_path else None
        self._settings: dict[str, Any] = {}
        self.load()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "Settings":
        """Build settings from an in-memory mapping merged over the defaults."""
        settings = cls()
        if data:
            _deep_merge(settings._settings, data)
        return settings

    def load(self) -> None:
        """Load settings from file, merging with defaults.

        Raises:
            SettingsError: If the file exists but is not valid YAML
        """
        self._settings = copy.deepcopy(DEFAULT_SETTINGS)

        if self.settings_path and self.settings_path.exists():
            try:
                with open(self.settings_path, "r") as f:
                    user_settings = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise SettingsError(f"Invalid settings file {self.settings_path}: {e}") from e
            if not isinstance(user_settings, Mapping):
                raise SettingsError(f"Settings file {self.settings_path} must hold a mapping")
            _deep_merge(self._settings, user_settings)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a settings value by dot-separated key path."""
        keys = key.split(".")
        value = self._settings
        for k in keys:
            if isinstance(value, Mapping) and k in value:
                value = value[k]
            else:
                return default
        return value

    def is_control_enabled(self, slug: str) -> bool:
        """Check whether a control is globally enabled.

        Controls missing from the settings (e.g., third-party controls)
        are enabled.
        """
        control = self.get(f"visibility_controls.{slug}")
        if isinstance(control, Mapping):
            return bool(control.get("enable", True))
        if isinstance(control, bool):
            return control
        return True

    @property
    def enabled_controls(self) -> list[str]:
        """Slugs of the controls explicitly enabled in the settings."""
        return [
            slug for slug in self.get("visibility_controls", {})
            if self.is_control_enabled(slug)
        ]

    @property
    def full_control_mode(self) -> bool:
        return bool(self.get("plugin_settings.enable_full_control_mode", False))

    @property
    def disabled_blocks(self) -> list[str]:
        return list(self.get("plugin_settings.disabled_blocks", []) or [])

    @property
    def presets(self) -> dict[str, dict]:
        """Get the visibility preset definitions."""
        return self.get("presets", {}) or {}


def get_settings(settings_path: Path | str | None = None) -> Settings:
    """Get a Settings instance, defaulting to $BLOCK_VISIBILITY_SETTINGS."""
    if settings_path is None:
        settings_path = os.environ.get(SETTINGS_ENV_VAR) or None
    return Settings(settings_path)
