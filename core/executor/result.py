"""Result types returned by the executor and the host service."""

from dataclasses import dataclass, field
from typing import Any, Optional

from ..session.types import SessionSnapshot, WorkingFile


@dataclass
class FileOutcome:
    """Outcome of applying a skill to one file of a batch."""
    index: int
    file_id: str
    file: Optional[WorkingFile] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SkillResult:
    """What the host returns after executing a skill."""
    updated_files: list[WorkingFile] = field(default_factory=list)
    session: SessionSnapshot = field(default_factory=SessionSnapshot)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "updatedFiles": [f.to_dict() for f in self.updated_files],
            "session": self.session.to_dict(),
        }
        if self.message:
            result["message"] = self.message
        return result
