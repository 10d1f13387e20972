"""Session workspace and per-file state."""

from .types import AppliedSkill, ExportResult, Mode, SessionSnapshot, WorkingFile
from .workspace import Workspace, copy_file
from .state import FileState, SessionState, export_name

__all__ = [
    "AppliedSkill",
    "ExportResult",
    "Mode",
    "SessionSnapshot",
    "WorkingFile",
    "Workspace",
    "copy_file",
    "FileState",
    "SessionState",
    "export_name",
]
