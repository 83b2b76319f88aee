"""Per-user directory helpers for deeplink runtime and configuration files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir, user_runtime_dir

APP_NAME = "deeplink"


def get_runtime_dir() -> Path:
    """Get the runtime directory holding channel sockets, endpoints and locks.

    The directory is per-user, which keeps channel names from colliding with
    other users' instances of the same application on a shared host.
    """
    override = os.environ.get("DEEPLINK_RUNTIME_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_runtime_dir(APP_NAME))


def get_config_dir() -> Path:
    """Get the config directory for deeplink (config.toml)."""
    override = os.environ.get("DEEPLINK_CONFIG_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_config_dir(APP_NAME))


def get_config_path() -> Path:
    """Get the path to the main config file."""
    return get_config_dir() / "config.toml"


def ensure_runtime_dir(runtime_dir: Path | None = None) -> Path:
    """Create the runtime directory (owner-only on POSIX) and return it."""
    path = runtime_dir if runtime_dir is not None else get_runtime_dir()
    path.mkdir(parents=True, exist_ok=True, mode=0o700)
    return path
