"""Configuration file loading and default settings."""

import json
from pathlib import Path
from typing import Any

CONFIG_DIR = Path.home() / ".config" / "trackmap"
CONFIG_PATH = CONFIG_DIR / "trackmap.json"
LOCAL_CONFIG_PATH = Path("trackmap.json")
CACHE_DIR = Path.home() / ".cache" / "trackmap"

# Default values for engine and CLI settings
DEFAULTS = {
    "dist_func": 0,  # 0=haversine, 1=thomas, 2=vincenty, 3=karney
    "assume_dt": 1.0,  # seconds between points without timestamps
    "asc_eps": 5.0,  # meters; elevation changes below this are noise
    "smooth_rad": 10,  # points; half-window of elevation smoothing
    "dist_bin": 1000.0,  # meters; bin width for pace plots
    "map_scale": 1.0,
    "map_overdraw": 0.1,  # extra margin around the track, fraction of its extent
    "skip_buildings": True,
    "skip_labels": True,
    "skip_unnecessary_tags": True,
    "cache_dir": str(CACHE_DIR / "maps"),
}


def load_config() -> dict:
    """Load configuration from config files.

    Merges config from global and local files:
    1. ~/.config/trackmap/trackmap.json (global, loaded first)
    2. ./trackmap.json (local, overrides global)

    Returns:
        Dict with merged config values, empty dict if no files exist.
    """
    config = {}
    for config_path in [CONFIG_PATH, LOCAL_CONFIG_PATH]:
        if config_path.exists():
            try:
                with config_path.open() as f:
                    config.update(json.load(f))
            except (json.JSONDecodeError, OSError):
                continue
    return config


def get_setting(config: dict | None, key: str) -> Any:
    """Look up a setting, falling back to DEFAULTS.

    The default's type is applied to the configured value, so "5" in a
    config file still yields a float threshold.
    """
    default = DEFAULTS[key]
    if not config or key not in config:
        return default
    value = config[key]
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    try:
        return type(default)(value)
    except (TypeError, ValueError):
        return default
