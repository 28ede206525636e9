"""
JSON file I/O for the settings file.
"""
import json
import logging
import os

logger = logging.getLogger(__name__)


def load_json(filepath: str, default=None):
    """Load JSON from file, returning default if file doesn't exist or is invalid."""
    if default is None:
        default = {}
    if not os.path.exists(filepath):
        logger.info(f"Settings file not found: {filepath}, using defaults")
        return default
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.error(f"Error loading JSON from {filepath}: {e}")
        return default
    if not isinstance(data, dict):
        logger.error(f"Expected a JSON object in {filepath}, got {type(data).__name__}")
        return default
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Return a copy of base with override applied; nested dicts merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
