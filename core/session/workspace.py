"""Per-run scratch directory tree."""

from __future__ import annotations

import logging
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..storage.paths import cache_dir

logger = logging.getLogger("skillchain")


def copy_file(src: str | Path, dst: str | Path) -> None:
    """Copy file contents (not metadata) from *src* to *dst*."""
    shutil.copyfile(src, dst)


class Workspace:
    """Root directory holding one subdirectory per imported file.

    Layout::

        <root>/<file-id>/base.jpg           immutable copy of the original
        <root>/<file-id>/current.jpg        current state
        <root>/<file-id>/snapshot-000.jpg   state after history[0]
        <root>/<file-id>/.stage-<hex>.jpg   transient driver output
    """

    def __init__(self, root: Optional[str | Path] = None):
        if root is None:
            stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            root = cache_dir() / "workspace" / stamp
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def file_dir(self, file_id: str) -> Path:
        return self.root / file_id

    def ensure_file_dir(self, file_id: str) -> Path:
        directory = self.file_dir(file_id)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def snapshot_path(self, file_id: str, index: int, ext: str) -> Path:
        return self.file_dir(file_id) / f"snapshot-{index:03d}{ext}"

    @staticmethod
    def stage_path(file_dir: str | Path, ext: str) -> Path:
        """A fresh path for a driver to write into."""
        return Path(file_dir) / f".stage-{uuid.uuid4().hex}{ext}"

    @staticmethod
    def is_stage_path(path: str | Path) -> bool:
        return Path(path).name.startswith(".stage-")

    def reset(self) -> None:
        """Delete every file tree and recreate an empty root."""
        logger.info("Clearing workspace %s", self.root)
        shutil.rmtree(self.root, ignore_errors=True)
        self.root.mkdir(parents=True, exist_ok=True)
