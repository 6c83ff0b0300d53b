"""Configuration management system"""

import copy
from pathlib import Path
from typing import Any, Optional
import yaml


DEFAULT_CONFIG = {
    "app": {
        "version": "0.1.0",
        "log_level": "INFO",
    },
    "landmark_filter": {
        "history_length": 3,
        "ewma_alpha": 0.80,
        "alpha_high": 0.3,       # weight on previous value when confident
        "alpha_low": 0.5,        # weight on previous value when uncertain
        "visibility_threshold": 0.35,
        "max_jump": 60.0,        # display pixels per frame
    },
    "alignment": {
        "align_indices": [11, 12, 23, 24, 25, 26, 27, 28],
        "fallback_indices": [11, 12, 23, 24],
        "align_min_visibility": 0.3,
        "min_align_points": 3,
        "visibility_threshold": 0.35,
        "min_scale": 0.5,
        "max_scale": 2.0,
        "min_spread": 1e-6,
    },
    "mirror": {
        "frames_threshold": 30,
        "relock_multiplier": 2,
        "tight_ratio": 0.85,
        "loose_ratio": 0.95,
    },
    "transform": {
        "lerp": 0.12,
    },
    "constraints": {
        "enabled": True,
        "iterations": 2,
        "min_length": 0.1,
    },
    "occlusion": {
        "visibility_threshold": 0.35,
        "ankle_min_visibility": 0.3,
        "min_shin_length": 5.0,
        "foot_length_ratio": 1.0,
        "heel_fraction": 0.3,
        "toe_fraction": 1.0,
    },
    "template": {
        "auto_capture": True,
        "stable_frames_threshold": 15,
        "stable_visibility": 0.6,
        "auto_align": True,
    },
    "editing": {
        "pick_radius": 30.0,
    },
    "trail": {
        "landmark": 16,
        "max_length": 200,
        "min_distance": 3.0,
        "visibility_threshold": 0.35,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    result = base.copy()
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class Config:
    """Centralized configuration manager with dot-notation access.

    Values from ``config.yaml`` are merged over ``DEFAULT_CONFIG``, so a
    partial file (or no file at all) still yields a complete configuration.
    """

    def __init__(self, config_path: Optional[str] = None, overrides: Optional[dict] = None):
        self._config_path: Optional[str] = None

        if config_path is None:
            config_path = self._find_config()

        self._load(config_path)

        if overrides:
            self._config = _deep_merge(self._config, overrides)

    def _find_config(self) -> Optional[str]:
        """Find config.yaml in project root."""
        current = Path(__file__).parent
        for _ in range(5):
            config_file = current / "config.yaml"
            if config_file.exists():
                return str(config_file)
            current = current.parent

        return None

    def _load(self, config_path: Optional[str]) -> None:
        """Load configuration from YAML file."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        if config_path is None:
            return

        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, "r") as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ValueError(f"Config must be a mapping: {config_path}")

        self._config = _deep_merge(self._config, loaded)
        self._config_path = str(path)

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load(self._config_path)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value using dot notation.

        Example:
            config.get("mirror.frames_threshold", 30)
            config.get("landmark_filter.max_jump")
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set config value using dot notation (runtime only, not persisted)."""
        keys = key.split(".")
        config = self._config

        for k in keys[:-1]:
            if k not in config:
                config[k] = {}
            config = config[k]

        config[keys[-1]] = value

    def save(self, path: Optional[str] = None) -> None:
        """Save current configuration to file."""
        save_path = path or self._config_path
        if save_path is None:
            raise ValueError("No path given and config was not loaded from a file")
        with open(save_path, "w") as f:
            yaml.dump(self._config, f, default_flow_style=False, sort_keys=False)

    @property
    def app(self) -> dict:
        return self._config.get("app", {})

    @property
    def landmark_filter(self) -> dict:
        return self._config.get("landmark_filter", {})

    @property
    def alignment(self) -> dict:
        return self._config.get("alignment", {})

    @property
    def mirror(self) -> dict:
        return self._config.get("mirror", {})

    @property
    def transform(self) -> dict:
        return self._config.get("transform", {})

    @property
    def constraints(self) -> dict:
        return self._config.get("constraints", {})

    @property
    def occlusion(self) -> dict:
        return self._config.get("occlusion", {})

    @property
    def template(self) -> dict:
        return self._config.get("template", {})

    @property
    def editing(self) -> dict:
        return self._config.get("editing", {})

    @property
    def trail(self) -> dict:
        return self._config.get("trail", {})

    def __repr__(self) -> str:
        return f"Config({self._config_path or 'defaults'})"
