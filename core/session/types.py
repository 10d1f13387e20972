"""Session value types returned to callers."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

DEFAULT_NAMING_PATTERN = "{name}_{skill}.{ext}"
DEFAULT_ACCENT_COLOR = "99,102,241"


class Mode(str, Enum):
    """How the host applies skills to the selection."""
    BATCH = "batch"
    PER_FILE = "per_file"


@dataclass
class AppliedSkill:
    """One entry of a file's transformation history."""
    skill_id: str
    params: dict[str, Any] = field(default_factory=dict)
    applied_at: str = ""

    @classmethod
    def now(cls, skill_id: str, params: Optional[dict[str, Any]] = None) -> "AppliedSkill":
        return cls(
            skill_id=skill_id,
            params=dict(params or {}),
            applied_at=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"skillId": self.skill_id, "params": self.params, "appliedAt": self.applied_at}


@dataclass
class WorkingFile:
    """State of an imported file as seen by callers."""
    id: str
    name: str
    extension: str
    current_extension: str
    original_path: str
    working_path: str
    size: int = 0
    preview_data_url: str = ""
    applied_skills: list[AppliedSkill] = field(default_factory=list)

    def copy(self) -> "WorkingFile":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "extension": self.extension,
            "currentExtension": self.current_extension,
            "originalPath": self.original_path,
            "workingPath": self.working_path,
            "size": self.size,
            "previewDataUrl": self.preview_data_url,
            "appliedSkills": [a.to_dict() for a in self.applied_skills],
        }


@dataclass
class SessionSnapshot:
    """Session-wide settings shown by the host."""
    mode: Mode = Mode.BATCH
    output_folder: str = ""
    naming_pattern: str = DEFAULT_NAMING_PATTERN
    accent_color: str = DEFAULT_ACCENT_COLOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "outputFolder": self.output_folder,
            "namingPattern": self.naming_pattern,
            "accentColor": self.accent_color,
        }


@dataclass
class ExportResult:
    file_id: str
    output_path: str
