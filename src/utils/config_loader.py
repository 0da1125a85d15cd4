"""
Configuration loading for the TTC pipeline.

Configurations are YAML mappings layered over DEFAULT_CONFIG: a file only
needs the keys it changes. Values with a constrained range are checked
after merging so a bad file fails at startup instead of mid-sequence.
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


DEFAULT_CONFIG: Dict[str, Any] = {
    "calibration": {
        "singularity_eps": 1e-9,
    },
    "association": {
        "shrink_factor": 0.10,
    },
    "lidar": {
        "crop": {
            "min_x": 2.0,
            "max_x": 20.0,
            "max_y": 2.0,
            "min_z": -1.5,
            "max_z": -0.9,
            "min_reflectivity": 0.1,
        },
    },
    "match_filter": {
        "ratio": 0.7,
        "direction": "drop_below",
    },
    "ttc": {
        "frame_rate": 10.0,
        "camera_min_dist": 100.0,
        "degenerate_eps": 1e-9,
    },
    "keypoints": {
        "detector": "ORB",
        "max_features": 2000,
    },
    "visualization": {
        "enabled": False,
        "world_size": [4.0, 20.0],
        "image_size": [1000, 2000],
        "wait": True,
    },
    "logging": {
        "level": "INFO",
        "file": None,
    },
}

FILTER_DIRECTIONS = ("drop_below", "drop_above")


class ConfigLoader:
    """Read, cache, merge and write YAML configuration files."""

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: Directory searched for bare file names.
        """
        self.config_dir = Path(config_dir) if config_dir else Path("configs")
        self._cache: Dict[str, Dict] = {}

    def resolve(self, config_path: Union[str, Path]) -> Path:
        """Return ``config_path`` as given if it exists, else relative to ``config_dir``."""
        config_path = Path(config_path)
        if config_path.is_absolute() or config_path.exists():
            return config_path
        if config_path.parts and config_path.parts[0] == self.config_dir.name:
            return config_path
        return self.config_dir / config_path

    def load(
        self,
        config_path: Union[str, Path],
        use_cache: bool = True,
    ) -> Dict[str, Any]:
        """
        Load one YAML file.

        Args:
            config_path: File path or name inside ``config_dir``.
            use_cache: Reuse a previously loaded file.

        Returns:
            Configuration dictionary (empty for an empty file).

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ValueError: If the file is not a mapping.
        """
        config_path = self.resolve(config_path)
        cache_key = str(config_path)

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key].copy()

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        if use_cache:
            self._cache[cache_key] = config

        return config.copy()

    def merge(
        self,
        base: Dict[str, Any],
        override: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Deep merge ``override`` into a copy of ``base``."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def save(
        self,
        config: Dict[str, Any],
        path: Union[str, Path],
    ) -> None:
        """Write a configuration as block-style YAML, creating parent dirs."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    def clear_cache(self) -> None:
        self._cache.clear()


def validate_config(config: Dict[str, Any]) -> None:
    """
    Check value ranges of a merged configuration.

    Raises:
        ValueError: On the first out-of-range value.
    """
    shrink = get_nested(config, "association.shrink_factor")
    if not 0.0 <= shrink < 1.0:
        raise ValueError(f"association.shrink_factor must be in [0, 1), got {shrink}")

    frame_rate = get_nested(config, "ttc.frame_rate")
    if frame_rate <= 0:
        raise ValueError(f"ttc.frame_rate must be positive, got {frame_rate}")

    degenerate_eps = get_nested(config, "ttc.degenerate_eps")
    if degenerate_eps < 0:
        raise ValueError(f"ttc.degenerate_eps must be non-negative, got {degenerate_eps}")

    ratio = get_nested(config, "match_filter.ratio")
    if ratio < 0:
        raise ValueError(f"match_filter.ratio must be non-negative, got {ratio}")

    direction = get_nested(config, "match_filter.direction")
    if direction not in FILTER_DIRECTIONS:
        raise ValueError(
            f"match_filter.direction must be one of {FILTER_DIRECTIONS}, got '{direction}'"
        )

    for key in ("visualization.world_size", "visualization.image_size"):
        value = get_nested(config, key)
        if len(value) != 2 or min(value) <= 0:
            raise ValueError(f"{key} must be two positive numbers, got {value}")


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the run configuration.

    Layers, last wins: DEFAULT_CONFIG, the YAML file, ``overrides``.

    Args:
        config_path: YAML file (defaults only if None).
        overrides: Values applied after the file.

    Returns:
        Validated configuration dictionary.

    Example:
        >>> config = load_config("configs/default.yaml", {"ttc": {"frame_rate": 20.0}})
        >>> get_nested(config, "ttc.frame_rate")
        20.0
    """
    loader = ConfigLoader()
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path is not None:
        config = loader.merge(config, loader.load(config_path))

    if overrides:
        config = loader.merge(config, overrides)

    validate_config(config)
    return config


def get_nested(
    config: Dict[str, Any],
    key: str,
    default: Any = None,
) -> Any:
    """
    Look up a value by dot-separated key, e.g. ``'lidar.crop.min_x'``.

    Returns ``default`` when any level is missing.
    """
    value = config
    for part in key.split("."):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    return value
