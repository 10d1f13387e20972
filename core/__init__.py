"""
SkillChain Core Module

Contains the session workspace, execution drivers, the pipeline executor,
persistent stores and the host-facing service.  Submodules are imported
explicitly (``from core.executor import PipelineExecutor``); only the
error hierarchy is re-exported here.
"""

from .errors import (
    DriverError,
    PipelineCycleError,
    PipelineDepthError,
    SkillDefinitionError,
    SkillError,
    SkillResolutionError,
    SkillTrustError,
)

__all__ = [
    "SkillError",
    "SkillDefinitionError",
    "SkillResolutionError",
    "PipelineDepthError",
    "PipelineCycleError",
    "SkillTrustError",
    "DriverError",
]
