"""Locations of per-user configuration and cache directories.

``SKILLCHAIN_HOME`` overrides the configuration root (handy for tests and
portable installs).  Otherwise the XDG base directories are used.
"""

import os
from pathlib import Path

APP_DIR_NAME = "skillchain"


def config_dir() -> Path:
    """Return (and create) the per-user configuration directory."""
    override = os.environ.get("SKILLCHAIN_HOME")
    if override:
        directory = Path(override)
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        directory = Path(base) / APP_DIR_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def cache_dir() -> Path:
    """Return (and create) the per-user cache directory."""
    override = os.environ.get("SKILLCHAIN_HOME")
    if override:
        directory = Path(override) / "cache"
    else:
        base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
        directory = Path(base) / APP_DIR_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def skills_dir() -> Path:
    """Directory holding community skills and packs."""
    directory = config_dir() / "skills"
    directory.mkdir(parents=True, exist_ok=True)
    return directory
