"""
WordCleanse Settings

Engine configuration, passed explicitly to the cleaner. Loaded from a YAML
file with sections ``processing``, ``cache``, ``debug`` and ``content_types``.
"""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

ENGINE_VERSION = "1.0.0"

MIN_CACHE_ENTRIES = 10
MAX_CACHE_ENTRIES = 1000
MIN_CACHE_TTL = 60


@dataclass
class CleanerSettings:
    """Engine-wide switches and limits."""
    enable_cleaning: bool = True
    use_tree_processing: bool = True
    cache_enabled: bool = True
    max_cache_entries: int = 100
    cache_ttl: int = 3600
    cache_max_age: int = 86400
    chunk_size: int = 40000
    parse_error_tolerance: int = 10
    engine_version: str = ENGINE_VERSION
    debug: bool = False
    content_type_overrides: dict = field(default_factory=dict)

    def __post_init__(self):
        self.max_cache_entries = clamp_cache_entries(self.max_cache_entries)
        self.cache_ttl = max(MIN_CACHE_TTL, int(self.cache_ttl))


def clamp_cache_entries(value) -> int:
    return max(MIN_CACHE_ENTRIES, min(MAX_CACHE_ENTRIES, int(value)))


def settings_from_dict(config: dict) -> CleanerSettings:
    """Build settings from a parsed config document. Unknown keys are ignored."""
    processing = config.get("processing") or {}
    cache = config.get("cache") or {}
    debug = config.get("debug") or {}

    kwargs = {}
    for key in ("enable_cleaning", "use_tree_processing", "chunk_size", "parse_error_tolerance"):
        if key in processing:
            kwargs[key] = processing[key]

    cache_keys = {
        "enabled": "cache_enabled",
        "max_entries": "max_cache_entries",
        "ttl": "cache_ttl",
        "max_age": "cache_max_age",
    }
    for key, name in cache_keys.items():
        if key in cache:
            kwargs[name] = cache[key]

    if isinstance(debug, dict):
        if "enabled" in debug:
            kwargs["debug"] = bool(debug["enabled"])
    else:
        kwargs["debug"] = bool(debug)

    if "engine_version" in config:
        kwargs["engine_version"] = str(config["engine_version"])

    kwargs["content_type_overrides"] = dict(config.get("content_types") or {})
    return CleanerSettings(**kwargs)


def load_settings(config_path: Path) -> CleanerSettings:
    """Load settings from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")
    return settings_from_dict(config)
