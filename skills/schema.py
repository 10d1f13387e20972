"""Skill definition types.

A skill is pure data: what it accepts, what it produces, which driver
runs it and how (the executor descriptor).  Instances are immutable once
the loader has built them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class SkillSource(str, Enum):
    """Tier a skill was loaded from, lowest precedence first."""
    CORE_EMBEDDED = "core:embedded"
    CORE_DISK = "core:disk"
    COMMUNITY = "community"


class ExecutorType(str, Enum):
    """How a skill is executed."""
    NATIVE = "native"
    CLI = "cli"
    PIPELINE = "pipeline"
    META = "meta"


class ParameterType(str, Enum):
    """Types of skill parameters."""
    NUMBER = "number"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    BOOL = "bool"
    CHOICE = "choice"
    COLOR = "color"


NUMERIC_TYPES = (ParameterType.NUMBER, ParameterType.INT, ParameterType.FLOAT)


@dataclass(frozen=True)
class ParamDef:
    """Definition of a skill parameter."""
    name: str
    type: ParameterType = ParameterType.STRING
    label: str = ""
    default: Any = None
    presets: tuple = ()
    options: tuple[str, ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    unit: str = ""

    def coerce(self, value: Any) -> Any:
        """Coerce *value* to the declared type and clamp it into bounds.

        Values that cannot be coerced are returned unchanged.
        """
        if self.type in NUMERIC_TYPES:
            try:
                if self.type == ParameterType.INT:
                    value = int(float(value))
                elif not isinstance(value, (int, float)) or isinstance(value, bool):
                    value = float(value)
            except (ValueError, TypeError):
                return value
            if self.min is not None and value < self.min:
                value = type(value)(self.min)
            if self.max is not None and value > self.max:
                value = type(value)(self.max)
        elif self.type == ParameterType.BOOL and isinstance(value, str):
            value = value.strip().lower() in ("true", "1", "yes", "on")
        return value


@dataclass(frozen=True)
class PipelineStep:
    """A single step of a pipeline skill."""
    skill_id: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutorSpec:
    """Executor descriptor (tagged by ``type``)."""
    type: str = ""

    # native
    handler: str = ""

    # cli
    command: str = ""
    args: tuple[str, ...] = ()
    output_extension: str = ""
    timeout_ms: int = 0

    # pipeline
    steps: tuple[PipelineStep, ...] = ()

    @property
    def kind(self) -> Optional[ExecutorType]:
        """The normalized executor type, or None when unknown/empty."""
        value = self.type.strip().lower()
        if value == "external-process":
            value = ExecutorType.CLI.value
        try:
            return ExecutorType(value)
        except ValueError:
            return None

    @property
    def is_pipeline(self) -> bool:
        return self.kind is ExecutorType.PIPELINE

    @property
    def is_cli(self) -> bool:
        return self.kind is ExecutorType.CLI


@dataclass(frozen=True)
class Skill:
    """Definition of a file-transforming skill."""
    id: str
    name: str
    version: str = ""
    author: str = ""
    aliases: tuple[str, ...] = ()
    category: str = ""
    description: str = ""
    input_types: tuple[str, ...] = ()
    output_type: str = ""
    params: tuple[ParamDef, ...] = ()
    driver: str = ""
    is_meta: bool = False
    executor: ExecutorSpec = field(default_factory=ExecutorSpec)
    permissions: tuple[str, ...] = ()
    danger_level: int = 0
    source: SkillSource = SkillSource.CORE_EMBEDDED
    definition_path: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def resolve_params(self, params: Optional[dict[str, Any]]) -> dict[str, Any]:
        """Fill defaults, coerce and clamp declared params.

        Keys the skill does not declare pass through untouched so that
        pipelines can thread params down to their steps.
        """
        resolved = dict(params or {})
        for param in self.params:
            if param.name not in resolved:
                if param.default is not None:
                    resolved[param.name] = param.default
                continue
            resolved[param.name] = param.coerce(resolved[param.name])
        return resolved
