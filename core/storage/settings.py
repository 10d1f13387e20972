"""User settings persisted between runs."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..session.types import DEFAULT_ACCENT_COLOR, DEFAULT_NAMING_PATTERN
from .paths import config_dir

SETTINGS_FILE_NAME = "settings.json"


@dataclass
class Settings:
    output_folder: str = ""
    naming_pattern: str = DEFAULT_NAMING_PATTERN
    accent_color: str = DEFAULT_ACCENT_COLOR

    def with_defaults(self) -> "Settings":
        return Settings(
            output_folder=self.output_folder or "",
            naming_pattern=self.naming_pattern or DEFAULT_NAMING_PATTERN,
            accent_color=self.accent_color or DEFAULT_ACCENT_COLOR,
        )


class SettingsStore:
    """Loads and saves :class:`Settings` as JSON."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path) if path else config_dir() / SETTINGS_FILE_NAME

    def load(self) -> Settings:
        """Load settings, falling back to defaults when the file is absent."""
        if not self.path.exists():
            return Settings()
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f) or {}
        return Settings(
            output_folder=data.get("outputFolder", ""),
            naming_pattern=data.get("namingPattern", ""),
            accent_color=data.get("accentColor", ""),
        ).with_defaults()

    def save(self, settings: Settings) -> None:
        settings = settings.with_defaults()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "outputFolder": settings.output_folder,
                    "namingPattern": settings.naming_pattern,
                    "accentColor": settings.accent_color,
                },
                f,
                indent=2,
            )
