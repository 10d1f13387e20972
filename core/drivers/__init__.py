"""Execution drivers keyed by the ``driver`` tag skills declare."""

from .base import Driver, ProgressCallback
from .image import ImageDriver
from .cli import CLIDriver


def default_drivers() -> dict[str, Driver]:
    """The statically registered drivers, keyed by tag."""
    drivers: list[Driver] = [ImageDriver(), CLIDriver()]
    return {d.id: d for d in drivers}


__all__ = [
    "Driver",
    "ProgressCallback",
    "ImageDriver",
    "CLIDriver",
    "default_drivers",
]
