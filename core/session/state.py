"""Mutable session state: imported files and their histories."""

from __future__ import annotations

import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Optional

from .types import (
    DEFAULT_ACCENT_COLOR,
    DEFAULT_NAMING_PATTERN,
    AppliedSkill,
    Mode,
    SessionSnapshot,
    WorkingFile,
)
from .workspace import Workspace, copy_file

logger = logging.getLogger("skillchain")


class FileState:
    """One imported file: its current state, history and snapshots.

    ``lock`` guards every field.  Accessors take it briefly; the executor
    holds it for the whole of an apply or rebuild so that the history and
    the snapshot list move together.
    """

    def __init__(self, data: WorkingFile, base_path: Path):
        self.lock = threading.RLock()
        self._data = data
        self._base_path = base_path
        self._snapshots: list[str] = []

    @property
    def id(self) -> str:
        return self._data.id

    @property
    def base_path(self) -> Path:
        return self._base_path

    @property
    def file_dir(self) -> Path:
        return self._base_path.parent

    def data(self) -> WorkingFile:
        with self.lock:
            return self._data.copy()

    def applied_skills(self) -> list[AppliedSkill]:
        with self.lock:
            return [AppliedSkill(a.skill_id, dict(a.params), a.applied_at)
                    for a in self._data.applied_skills]

    def current(self) -> tuple[Path, str]:
        """Current materialized path and extension."""
        with self.lock:
            return Path(self._data.working_path), self._data.current_extension

    def set_current_path(self, path: str | Path, ext: str, size: int) -> None:
        with self.lock:
            self._data.working_path = str(path)
            self._data.current_extension = ext
            self._data.size = size

    def commit_output(self, output_path: str | Path, ext: str) -> Path:
        """Make *output_path* the file's ``current<ext>``.

        The previous current file is removed when the extension changed.
        """
        with self.lock:
            output_path = Path(output_path)
            target = self.file_dir / f"current{ext}"
            previous = Path(self._data.working_path)
            if output_path != target:
                os.replace(output_path, target)
            if previous != target and previous.exists():
                previous.unlink()
            self.set_current_path(target, ext, target.stat().st_size)
            return target

    def set_preview(self, preview: str) -> None:
        with self.lock:
            self._data.preview_data_url = preview

    def append_applied(self, applied: AppliedSkill) -> None:
        with self.lock:
            self._data.applied_skills.append(applied)

    def replace_applied(self, applied: list[AppliedSkill]) -> None:
        with self.lock:
            self._data.applied_skills = list(applied)

    def snapshots(self) -> list[str]:
        with self.lock:
            return list(self._snapshots)

    def snapshot_at(self, index: int) -> Optional[str]:
        with self.lock:
            if 0 <= index < len(self._snapshots):
                return self._snapshots[index]
            return None

    def set_snapshot(self, index: int, path: str | Path) -> None:
        """Overwrite snapshot *index* or append it as the next one.

        Raises:
            IndexError: If *index* would leave a gap in the list.
        """
        with self.lock:
            if index < 0 or index > len(self._snapshots):
                raise IndexError(
                    f"snapshot index {index} out of range for {len(self._snapshots)} snapshots"
                )
            if index < len(self._snapshots):
                self._snapshots[index] = str(path)
            else:
                self._snapshots.append(str(path))

    def trim_snapshots(self, index: int) -> None:
        """Keep snapshots ``[0, index)`` and delete the rest from disk."""
        with self.lock:
            index = max(index, 0)
            for stale in self._snapshots[index:]:
                if stale:
                    Path(stale).unlink(missing_ok=True)
            self._snapshots = self._snapshots[:index]


class SessionState:
    """All files imported during this run plus session-wide settings."""

    def __init__(
        self,
        snapshot: Optional[SessionSnapshot] = None,
        workspace: Optional[Workspace] = None,
    ):
        snapshot = snapshot or SessionSnapshot()
        self._lock = threading.RLock()
        self._files: dict[str, FileState] = {}
        self._order: list[str] = []
        self.workspace = workspace or Workspace()
        self._mode = snapshot.mode or Mode.BATCH
        self._output_folder = snapshot.output_folder
        self._naming_pattern = snapshot.naming_pattern.strip() or DEFAULT_NAMING_PATTERN
        self._accent_color = snapshot.accent_color.strip() or DEFAULT_ACCENT_COLOR

    # -- Files ---------------------------------------------------------

    def add_file(self, path: str | Path) -> WorkingFile:
        """Import *path*: copy it to ``base`` and ``current`` in a new file dir.

        Raises:
            FileNotFoundError: If *path* does not exist.
        """
        source = Path(path)
        size = source.stat().st_size
        file_id = str(uuid.uuid4())
        ext = source.suffix.lower()
        file_dir = self.workspace.ensure_file_dir(file_id)
        base_path = file_dir / f"base{ext}"
        current_path = file_dir / f"current{ext}"
        copy_file(source, base_path)
        copy_file(source, current_path)

        data = WorkingFile(
            id=file_id,
            name=source.stem,
            extension=ext,
            current_extension=ext,
            original_path=str(source),
            working_path=str(current_path),
            size=size,
        )
        with self._lock:
            self._files[file_id] = FileState(data, base_path)
            self._order.append(file_id)
        logger.debug("Imported %s as %s", source, file_id)
        return data.copy()

    def get_file(self, file_id: str) -> Optional[FileState]:
        with self._lock:
            return self._files.get(file_id)

    def list_files(self) -> list[WorkingFile]:
        with self._lock:
            states = [self._files[i] for i in self._order if i in self._files]
        return [state.data() for state in states]

    # -- Settings ------------------------------------------------------

    @property
    def mode(self) -> Mode:
        with self._lock:
            return self._mode

    def set_mode(self, mode: Mode) -> None:
        with self._lock:
            self._mode = mode

    @property
    def output_folder(self) -> str:
        with self._lock:
            return self._output_folder

    def set_output_folder(self, folder: str) -> None:
        with self._lock:
            self._output_folder = folder

    @property
    def naming_pattern(self) -> str:
        with self._lock:
            return self._naming_pattern

    def set_naming_pattern(self, pattern: str) -> None:
        with self._lock:
            if pattern.strip():
                self._naming_pattern = pattern

    @property
    def accent_color(self) -> str:
        with self._lock:
            return self._accent_color

    def set_accent_color(self, color: str) -> None:
        with self._lock:
            if color.strip():
                self._accent_color = color

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                mode=self._mode,
                output_folder=self._output_folder,
                naming_pattern=self._naming_pattern,
                accent_color=self._accent_color,
            )

    def clear(self) -> None:
        """Forget every file, reset settings and wipe the workspace.

        The accent color is a UI preference, not part of the working
        session, and survives a clear.
        """
        with self._lock:
            self._files = {}
            self._order = []
            self._mode = Mode.BATCH
            self._output_folder = ""
            self._naming_pattern = DEFAULT_NAMING_PATTERN
            self.workspace.reset()


def export_name(pattern: str, name: str, ext: str, skill: str) -> str:
    """Render an export file name from a ``{name}/{skill}/{ext}`` pattern."""
    if not pattern.strip():
        pattern = DEFAULT_NAMING_PATTERN
    bare_ext = ext.lstrip(".")
    skill = skill.replace(" ", "_").replace("-", "_")
    out = (
        pattern.replace("{name}", name)
        .replace("{ext}", bare_ext)
        .replace("{skill}", skill)
    )
    if "." not in out:
        out = f"{out}.{bare_ext}"
    return out
