"""Base class for execution drivers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional

from skills.schema import Skill

ProgressCallback = Callable[[float], None]


class Driver(ABC):
    """Abstract base class for drivers.

    A driver turns one input file into one output file for the skills it
    supports.  It must never modify ``input_path`` and signals failure by
    raising :class:`core.errors.DriverError`.
    """

    id: str = ""

    @abstractmethod
    def supports(self, skill: Skill) -> bool:
        """Check whether this driver can execute *skill*."""
        pass

    @abstractmethod
    def execute(
        self,
        input_path: Path,
        output_path: Path,
        skill: Skill,
        params: dict[str, Any],
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Run *skill* on *input_path*, writing *output_path*.

        Args:
            input_path: File to read. Never modified.
            output_path: File to create.
            skill: Skill definition being executed.
            params: Resolved parameters.
            progress: Optional callback receiving increasing values in [0, 1].

        Raises:
            DriverError: If the transformation fails.
        """
        pass


def read_float(params: Optional[dict[str, Any]], key: str, fallback: float) -> float:
    """Read a numeric param, accepting numbers or numeric strings."""
    if not params or key not in params:
        return fallback
    value = params[key]
    if isinstance(value, bool):
        return fallback
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback
