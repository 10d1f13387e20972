"""Skill ranking: category weight + text match + input fit + frecency."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from .schema import Skill


@dataclass
class UsageStats:
    """Per-skill invocation counter."""
    count: int = 0
    last_used: Optional[datetime] = None


def _default_category_weights() -> dict[str, float]:
    return {
        "convert": 800,
        "transform": 700,
        "compress": 650,
        "filter": 600,
        "meta": 400,
    }


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        curr = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            curr[j] = min(curr[j - 1] + 1, prev[j] + 1, prev[j - 1] + cost)
        prev = curr
    return prev[len(b)]


def input_matches(skill: Skill, input_types: Sequence[str]) -> bool:
    """Whether *skill* accepts any of the caller's input types.

    A skill that declares no input types only fits a caller that declares
    none either.
    """
    if not skill.input_types:
        return not input_types
    if "*" in skill.input_types:
        return True
    if not input_types:
        return False
    supported = {t.lower() for t in skill.input_types}
    return any(t.lower() in supported for t in input_types)


def alias_match(aliases: Iterable[str], query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return False
    return any(a.lower() == q or a.lower().startswith(q) for a in aliases)


def fuzzy_score(text: str, query: str) -> float:
    """Score how well *query* matches *text* (case-insensitive)."""
    if not text or not query:
        return 0.0
    t = text.lower()
    q = query.lower()
    if t == q:
        return 900.0
    if t.startswith(q):
        return 700.0
    if q in t:
        return 450.0
    similarity = 1 - levenshtein(t, q) / max(len(t), len(q))
    return max(similarity, 0.0) * 400


@dataclass
class Ranker:
    """Scores and orders skills for a query.

    Defaults favour conversions over filters, decay usage with a 14 day
    half-life and give anything used in the last day a flat boost.
    """
    half_life_days: float = 14
    recent_boost: float = 250
    adaptive_learning_weight: float = 400
    input_match_boost: float = 600
    alias_match_boost: float = 500
    meta_boost: float = 150
    category_weights: dict[str, float] = field(default_factory=_default_category_weights)
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    def rank(
        self,
        skills: Iterable[Skill],
        query: str = "",
        input_types: Sequence[str] = (),
        usage: Optional[dict[str, UsageStats]] = None,
    ) -> list[Skill]:
        """Order *skills* by descending score, ties by ascending name."""
        usage = usage or {}
        now = self.clock()
        scored = [
            (self.score(skill, query, input_types, usage, now), skill)
            for skill in skills
        ]
        scored.sort(key=lambda item: (-item[0], item[1].name))
        return [skill for _, skill in scored]

    def score(
        self,
        skill: Skill,
        query: str,
        input_types: Sequence[str],
        usage: dict[str, UsageStats],
        now: Optional[datetime] = None,
    ) -> float:
        base = self.category_weights.get(skill.category, 0.0)
        if skill.is_meta:
            base += self.meta_boost

        match = 0.0
        if query.strip():
            match = fuzzy_score(skill.name, query)
            if alias_match(skill.aliases, query):
                match += self.alias_match_boost

        if input_matches(skill, input_types):
            match += self.input_match_boost

        return base + match + self.frecency(skill.id, usage, now)

    def frecency(
        self,
        skill_id: str,
        usage: dict[str, UsageStats],
        now: Optional[datetime] = None,
    ) -> float:
        stat = usage.get(skill_id)
        if stat is None or stat.count <= 0:
            return 0.0
        now = now or self.clock()
        age_days = 0.0
        if stat.last_used is not None:
            last_used = stat.last_used
            if last_used.tzinfo is None:
                last_used = last_used.replace(tzinfo=timezone.utc)
            # Clock skew can put last_used in the future.
            age_days = max((now - last_used).total_seconds() / 86400, 0.0)
        decay = math.exp(-math.log(2) / self.half_life_days * age_days)
        recent = self.recent_boost if age_days < 1 else 0.0
        return stat.count * self.adaptive_learning_weight * decay + recent
