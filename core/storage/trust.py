"""Persistent user trust decisions for community skills.

Core skills are implicitly trusted and never consult this store.
"""

import json
import threading
from pathlib import Path
from typing import Optional

from .paths import config_dir

TRUST_FILE_NAME = "trust.json"


class TrustStore:
    """Trusted skill ids, kept in ``{"trustedSkills": {id: true}}``."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path) if path else config_dir() / TRUST_FILE_NAME
        self._lock = threading.Lock()

    def load(self) -> dict[str, bool]:
        with self._lock:
            return self._read()

    def _read(self) -> dict[str, bool]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            state = json.load(f) or {}
        return dict(state.get("trustedSkills") or {})

    def is_trusted(self, skill_id: str) -> bool:
        return bool(self.load().get(skill_id, False))

    def set_trusted(self, skill_id: str, trusted: bool) -> None:
        with self._lock:
            trusted_skills = self._read()
            if trusted:
                trusted_skills[skill_id] = True
            else:
                trusted_skills.pop(skill_id, None)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({"trustedSkills": trusted_skills}, f, indent=2)
