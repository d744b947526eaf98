"""Configuration utilities for PlantSync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

# Keys required before any command can talk to the remote
REQUIRED_KEYS = ("remote_url", "auth_token", "owner_id")


def get_config_dir() -> Path:
    """Get the configuration directory for PlantSync.

    Returns:
        Path from $PLANTSYNC_HOME, or ~/.plantsync.
    """
    home = os.environ.get("PLANTSYNC_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".plantsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_db_path() -> Path:
    """Get the path to the local database."""
    return get_config_dir() / "plantsync.db"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_media_root(config: dict[str, str]) -> Path:
    """Get the directory local-only media URIs are resolved against.

    Returns:
        Configured media root, or <config_dir>/media.
    """
    if config.get("media_root"):
        return Path(config["media_root"]).expanduser().resolve()
    return get_config_dir() / "media"


def is_configured(config: dict[str, str]) -> bool:
    """Check whether every required key is set."""
    return all(config.get(key) for key in REQUIRED_KEYS)
