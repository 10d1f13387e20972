"""Error hierarchy shared by the registry, executor and drivers."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional


class SkillError(RuntimeError):
    """Base class for all skill-related runtime errors."""


class SkillDefinitionError(SkillError):
    """Raised for a malformed or incomplete skill definition file."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"skills: invalid {self.path}: {reason}")


class SkillResolutionError(SkillError):
    """Raised when a skill, driver, file or history entry cannot be resolved."""


class PipelineDepthError(SkillResolutionError):
    """Raised when nested pipelines exceed the maximum depth."""

    def __init__(self, max_depth: int, detail: Optional[str] = None) -> None:
        self.max_depth = max_depth
        message = f"pipeline depth exceeded (max {max_depth})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PipelineCycleError(PipelineDepthError):
    """Raised when a pipeline step refers back to one of its ancestors."""

    def __init__(self, max_depth: int, chain: Iterable[str]) -> None:
        self.chain = list(chain)
        super().__init__(max_depth, "cycle " + " -> ".join(self.chain))


class SkillTrustError(SkillError):
    """Raised when a community skill needs elevated capabilities without trust."""

    def __init__(self, skill_id: str, missing: Iterable[str]) -> None:
        self.skill_id = skill_id
        self.missing = list(missing)
        super().__init__(f"skill requires trust: {', '.join(self.missing)}")


class DriverError(SkillError):
    """Raised by a driver when the transformation itself fails."""
