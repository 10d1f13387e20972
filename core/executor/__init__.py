"""Skill execution: resolution, per-file application and history rebuild."""

from .executor import MAX_PIPELINE_DEPTH, PipelineExecutor, TrustLookup, effective_output_ext, merge_params
from .preview import PreviewGenerator
from .result import FileOutcome, SkillResult

__all__ = [
    "MAX_PIPELINE_DEPTH",
    "PipelineExecutor",
    "TrustLookup",
    "effective_output_ext",
    "merge_params",
    "PreviewGenerator",
    "FileOutcome",
    "SkillResult",
]
