"""SkillChain skill system.

Skills are declared as data (JSON or YAML) and loaded from three tiers:

1. Embedded: definitions shipped in ``skills/builtin``
2. Disk core: an optional on-disk override used during development
3. Community: user-contributed definitions and packs

The registry merges the tiers, hot-reloads the on-disk ones and ranks
skills for search.
"""

from .schema import Skill, ParamDef, ParameterType, ExecutorSpec, ExecutorType, PipelineStep, SkillSource
from .loader import SkillLoader, LoadReport
from .ranking import Ranker, UsageStats
from .registry import SkillRegistry

__all__ = [
    "Skill",
    "ParamDef",
    "ParameterType",
    "ExecutorSpec",
    "ExecutorType",
    "PipelineStep",
    "SkillSource",
    "SkillLoader",
    "LoadReport",
    "Ranker",
    "UsageStats",
    "SkillRegistry",
]
