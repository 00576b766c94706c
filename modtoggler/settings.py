"""Load application settings from config/settings.yaml."""

import os
from pathlib import Path
from typing import Any

import yaml

from modtoggler.discovery.extractor import DEFAULT_DENY_LIST
from modtoggler.sdk import MARKER_NAME

_DEFAULTS: dict[str, Any] = {
    "modules": {
        # Directory that contains the "modules" folder. Relative paths resolve
        # against the project root. MODTOGGLER_ROOT_DIR overrides it.
        "root_dir": "sandbox",
        "directory": "modules",
        "extension": ".pkg",
        "disabled_suffix": ".disabled",
        "marker": MARKER_NAME,
        "deny_list": list(DEFAULT_DENY_LIST),
    },
    "scheduler": {
        "grace_period": 1.0,
        "max_attempts": 3,
        "retry_pause": 0.2,
    },
    "server": {
        "host": "127.0.0.1",
        "port": 9977,
        "path": "/modtoggler",
    },
    "logging": {
        "file": "sandbox/logs/modtoggler.log",
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 5242880,  # 5 MB
        "backup_count": 3,
        # Per-logger level overrides, applied after the root level.
        "loggers": {
            "uvicorn.access": "WARNING",
            "uvicorn.error": "INFO",
        },
    },
}

_ENV_ROOT_DIR = "MODTOGGLER_ROOT_DIR"

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'scheduler.grace_period')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def reload_settings() -> None:
    """Clear the settings cache. Call after config files change."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns merged defaults + file values.

    The MODTOGGLER_ROOT_DIR environment variable, when set, wins over
    modules.root_dir from the file.
    """
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    env_root = os.environ.get(_ENV_ROOT_DIR)
    if env_root:
        result["modules"]["root_dir"] = env_root

    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
