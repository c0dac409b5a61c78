"""
Configuration loader for performance-mode presets and environment variables.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


class ConfigurationError(RuntimeError):
    """Fatal session configuration problem, raised before any API call."""


# Used when configs/<mode>.yaml is absent
BUILTIN_MODES: Dict[str, Dict[str, Any]] = {
    "budget": {
        "field_tier": "minimal",
        "max_locations": 3,
        "max_api_calls": 5,
        "enable_text_search": False,
    },
    "balanced": {
        "field_tier": "standard",
        "max_locations": 5,
        "max_api_calls": 10,
        "enable_text_search": True,
    },
    "premium": {
        "field_tier": "enhanced",
        "max_locations": 8,
        "max_api_calls": 20,
        "enable_text_search": True,
    },
}

DEFAULT_MODE = "balanced"

# YAML files under configs/ that are not performance presets
NON_PRESET_FILES = frozenset({"radius"})


class ConfigLoader:
    """Load and manage configuration from YAML files and environment."""

    CONFIG_DIR = Path(__file__).parent.parent.parent / "configs"

    @classmethod
    def load_mode_profile(cls, mode: str = DEFAULT_MODE) -> Dict[str, Any]:
        """
        Load a performance-mode preset.

        Args:
            mode: Name of the preset (budget, balanced, premium)

        Returns:
            Dictionary with SessionConfig field values

        Raises:
            ConfigurationError: If the preset doesn't exist
        """
        name = mode.strip().lower()
        profile_path = cls.CONFIG_DIR / f"{name}.yaml"

        if name not in NON_PRESET_FILES and profile_path.exists():
            with open(profile_path, "r") as f:
                return yaml.safe_load(f) or {}

        if name in BUILTIN_MODES:
            return dict(BUILTIN_MODES[name])

        available = cls.available_modes()
        raise ConfigurationError(
            f"Mode '{mode}' not found. Available modes: {', '.join(available)}"
        )

    @classmethod
    def available_modes(cls) -> List[str]:
        """Built-in presets plus any preset YAML files under CONFIG_DIR."""
        files = {f.stem for f in cls.CONFIG_DIR.glob("*.yaml")} - NON_PRESET_FILES
        return sorted(set(BUILTIN_MODES) | files)

    @classmethod
    def get_mode_from_env(cls) -> Optional[str]:
        """Get performance mode from GROUPING_MODE environment variable."""
        return os.getenv("GROUPING_MODE")

    @classmethod
    def load_default_or_env_mode(cls) -> Dict[str, Any]:
        """Load the preset named by GROUPING_MODE, or the balanced default."""
        return cls.load_mode_profile(cls.get_mode_from_env() or DEFAULT_MODE)


def require_google_api_key() -> str:
    """Fetch the Google Maps API key from the environment at call time."""
    google_key = os.getenv("GOOGLE_MAPS_API_KEY", "")
    if not google_key:
        raise ConfigurationError(
            "Missing GOOGLE_MAPS_API_KEY. Copy .env.sample to .env and set your key before grouping contacts."
        )
    return google_key
