"""JSON-file persistence for usage, trust and settings."""

from .paths import config_dir, cache_dir, skills_dir
from .usage import UsageStore
from .trust import TrustStore
from .settings import Settings, SettingsStore

__all__ = [
    "config_dir",
    "cache_dir",
    "skills_dir",
    "UsageStore",
    "TrustStore",
    "Settings",
    "SettingsStore",
]
