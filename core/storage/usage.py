"""Persistent per-skill usage counters."""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from skills.ranking import UsageStats

from .paths import config_dir

logger = logging.getLogger("skillchain")

USAGE_FILE_NAME = "usage_stats.json"


class UsageStore:
    """Invocation count and last-used time per skill, kept in a JSON file."""

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self.path = Path(path) if path else config_dir() / USAGE_FILE_NAME
        self._lock = threading.Lock()
        self._data: dict[str, UsageStats] = self._load()

    def _load(self) -> dict[str, UsageStats]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read usage stats %s: %s", self.path, exc)
            return {}

        stats: dict[str, UsageStats] = {}
        for skill_id, entry in (raw or {}).items():
            if not isinstance(entry, dict):
                continue
            last_used = None
            if entry.get("lastUsed"):
                try:
                    last_used = datetime.fromisoformat(entry["lastUsed"])
                except (TypeError, ValueError):
                    last_used = None
            stats[skill_id] = UsageStats(count=int(entry.get("count", 0)), last_used=last_used)
        return stats

    def all(self) -> dict[str, UsageStats]:
        """Return a copy of every skill's stats."""
        with self._lock:
            return {k: UsageStats(v.count, v.last_used) for k, v in self._data.items()}

    def increment(self, skill_id: str) -> None:
        """Count one use of *skill_id* and persist."""
        with self._lock:
            stat = self._data.setdefault(skill_id, UsageStats())
            stat.count += 1
            stat.last_used = datetime.now(timezone.utc)
            payload = {
                k: {
                    "count": v.count,
                    "lastUsed": v.last_used.isoformat() if v.last_used else None,
                }
                for k, v in self._data.items()
            }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
