"""Helpers for the user settings file (~/.config/reddock/settings.json)."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

STAGING_ROOT_ENV = "REDDOCK_STAGING_ROOT"
RUNTIME_ENV = "REDDOCK_RUNTIME"
VERIFY_ENV = "REDDOCK_VERIFY_CHECKSUMS"

DEFAULT_STAGING_ROOT = Path("/tmp/reddock-addons")


def get_config_dir() -> Path:
    """Directory holding settings.json and config.json."""
    if xdg := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg) / "reddock"
    return Path.home() / ".config" / "reddock"


def get_settings_path() -> Path:
    return get_config_dir() / "settings.json"


@lru_cache(maxsize=1)
def load_settings() -> dict[str, Any]:
    """Load settings from disk (cached).

    A missing or unreadable file means "no settings"; container state lives
    in the separate configuration store and is validated strictly there.
    """

    path = get_settings_path()
    if not path.exists():
        return {}

    try:
        raw = path.read_text()
    except OSError:
        return {}

    try:
        data = json.loads(raw)
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data

    return {}


def get_setting(key: str, default: Any | None = None) -> Any | None:
    """Fetch a settings value by key."""

    return load_settings().get(key, default)


def reload_settings() -> None:
    """Force the cached settings to be reloaded on next access."""

    load_settings.cache_clear()


def get_staging_root() -> Path:
    """Staging root: env var, then settings file, then /tmp/reddock-addons."""
    if value := os.environ.get(STAGING_ROOT_ENV):
        return Path(value)
    value = get_setting("staging_root")
    if isinstance(value, str) and value:
        return Path(value).expanduser()
    return DEFAULT_STAGING_ROOT


def get_runtime_preference() -> str | None:
    """Explicitly configured container engine binary, if any."""
    value = os.environ.get(RUNTIME_ENV) or get_setting("runtime")
    return value if isinstance(value, str) and value else None


def verify_checksums_enabled() -> bool:
    """Whether downloaded archives are checked against their recorded MD5."""
    if value := os.environ.get(VERIFY_ENV):
        return value.lower() in ("1", "true", "yes", "on")
    return bool(get_setting("verify_checksums", False))
