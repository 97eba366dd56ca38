"""
config.py - Analysis configuration for linktrace

Settings come from three layers, later layers winning:
1. DEFAULT_CONFIG below
2. an optional YAML file (--config)
3. command-line flags and --set KEY=VALUE overrides

Example file:

    bin_width_ms: 500
    time_begin_ms: 0
    plot:
      dpi: 200
"""

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigError


DEFAULT_CONFIG: Dict[str, Any] = {
    'bin_width_ms': None,
    'time_begin_ms': None,
    'percentile': 0.95,
    'clamp_signal_delay': False,
    'plot': {
        'title': None,
        'width_in': 12,
        'height_in': 5,
        'dpi': 150,
    },
    'gnuplot': {
        'terminal': 'svg',
        'size': '1024,560',
        'executable': 'gnuplot',
    },
    'logging': {
        'level': 'INFO',
        'file': None,
    },
}


def merge_config(base: Dict[str, Any], override: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Deep-merge override into a copy of base. Unknown keys are rejected."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        path = f"{prefix}.{key}" if prefix else key
        if key not in merged:
            raise ConfigError(f"Unknown configuration key: {path}")
        if isinstance(merged[key], dict):
            if not isinstance(value, dict):
                raise ConfigError(f"Configuration key {path} must be a mapping")
            merged[key] = merge_config(merged[key], value, path)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file on top of DEFAULT_CONFIG.

    Args:
        config_path: Path to YAML file, or None for defaults only

    Returns:
        Complete configuration dictionary
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {config_path}: {e}") from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path} must contain a mapping at top level")

    return merge_config(DEFAULT_CONFIG, loaded)


def convert_value(value_str: str) -> Any:
    """Convert string value to appropriate type."""
    try:
        return int(value_str)
    except ValueError:
        pass

    try:
        return float(value_str)
    except ValueError:
        pass

    if value_str.lower() in ('true', 'yes', 'on'):
        return True
    if value_str.lower() in ('false', 'no', 'off'):
        return False
    if value_str.lower() in ('null', 'none'):
        return None

    return value_str


def set_nested_value(config: Dict[str, Any], key_path: str, value: str):
    """
    Set value in nested config using dot notation, e.g. "plot.dpi".

    Raises:
        ConfigError: if the path does not name an existing setting
    """
    keys = key_path.split('.')
    current = config
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            raise ConfigError(f"Unknown configuration key: {key_path}")
        current = current[key]

    final_key = keys[-1]
    if final_key not in current or isinstance(current[final_key], dict):
        raise ConfigError(f"Unknown configuration key: {key_path}")
    current[final_key] = convert_value(value)


def apply_overrides(config: Dict[str, Any], assignments: List[str]) -> Dict[str, Any]:
    """Apply KEY=VALUE strings from the command line."""
    for assignment in assignments:
        if '=' not in assignment:
            raise ConfigError(f"Override must be KEY=VALUE, got: {assignment}")
        key, value = assignment.split('=', 1)
        set_nested_value(config, key.strip(), value.strip())
    return config


def validate_config(config: Dict[str, Any]):
    """Check the analysis parameters that every run needs."""
    bin_width = config.get('bin_width_ms')
    if isinstance(bin_width, bool) or not isinstance(bin_width, int) or bin_width <= 0:
        raise ConfigError(f"bin_width_ms must be a positive integer, got {bin_width!r}")

    time_begin = config.get('time_begin_ms')
    if isinstance(time_begin, bool) or not isinstance(time_begin, int):
        raise ConfigError(f"time_begin_ms must be an integer, got {time_begin!r}")

    percentile = config.get('percentile')
    if isinstance(percentile, bool) or not isinstance(percentile, (int, float)) \
            or not 0.0 <= percentile <= 1.0:
        raise ConfigError(f"percentile must be between 0 and 1, got {percentile!r}")
