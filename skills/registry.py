"""Skill registry: the read side over the loader plus search."""

from __future__ import annotations

import queue
from pathlib import Path
from typing import Optional, Sequence

from .loader import EMBEDDED_ROOT, LoadReport, SkillLoader
from .ranking import Ranker, UsageStats, input_matches, levenshtein
from .schema import Skill


def matches_query(skill: Skill, query: str) -> bool:
    """Loose text filter applied before ranking.

    *query* must already be lower-cased and stripped.
    """
    name = skill.name.lower()
    if query in name:
        return True

    for alias in skill.aliases:
        if query in alias.lower():
            return True

    if query in skill.description.lower():
        return True

    name_words = name.split()
    for qw in query.split():
        if any(nw.startswith(qw) for nw in name_words):
            return True

    # Allow typos once the query is long enough to mean something.
    if len(query) >= 3 and levenshtein(name, query) <= 2:
        return True

    return False


class SkillRegistry:
    """Central registry for all available skills."""

    def __init__(
        self,
        loader: Optional[SkillLoader] = None,
        ranker: Optional[Ranker] = None,
        load: bool = True,
    ):
        """Initialize the registry.

        Args:
            loader: Loader to read from. Defaults to embedded skills only.
            ranker: Ranker used by :meth:`search`.
            load: Run an initial :meth:`reload`.
        """
        self.loader = loader or SkillLoader()
        self.ranker = ranker or Ranker()
        if load:
            self.loader.load_all()

    @classmethod
    def from_roots(
        cls,
        embedded_root: Optional[Path] = EMBEDDED_ROOT,
        disk_core_root: Optional[Path] = None,
        community_root: Optional[Path] = None,
        ranker: Optional[Ranker] = None,
    ) -> "SkillRegistry":
        loader = SkillLoader(
            embedded_root=embedded_root,
            disk_core_root=disk_core_root,
            community_root=community_root,
        )
        return cls(loader=loader, ranker=ranker)

    def get_by_id(self, skill_id: str) -> Optional[Skill]:
        """Get a skill by id, or None."""
        return self.loader.get_by_id(skill_id)

    def list(self) -> list[Skill]:
        """List all registered skills."""
        return self.loader.list()

    def reload(self) -> LoadReport:
        return self.loader.load_all()

    @property
    def last_report(self) -> LoadReport:
        return self.loader.last_report

    def start_hot_reload(self) -> None:
        self.loader.watch()

    def stop_hot_reload(self) -> None:
        self.loader.stop_watching()

    def changes(self) -> queue.Queue:
        return self.loader.changes()

    def search(
        self,
        query: str = "",
        input_types: Sequence[str] = (),
        usage: Optional[dict[str, UsageStats]] = None,
    ) -> list[Skill]:
        """Filter skills by query and input types, then rank them.

        Args:
            query: Free-text query; empty lists everything compatible.
            input_types: Extensions of the files the caller has selected.
            usage: Usage statistics keyed by skill id.

        Returns:
            Ranked list of matching skills.
        """
        trimmed = query.strip()
        q = trimmed.lower()

        filtered = []
        for skill in self.list():
            if q and not matches_query(skill, q):
                continue
            if skill.is_meta or not input_types or input_matches(skill, input_types):
                filtered.append(skill)

        return self.ranker.rank(filtered, trimmed, input_types, usage)
