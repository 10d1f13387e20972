"""Test doubles and definition builders shared by the test modules."""

import threading
from pathlib import Path

import yaml

from core.drivers import Driver
from core.errors import DriverError


class FakeDriver(Driver):
    """Deterministic driver: output = input bytes + ``|<skill>:<params>``.

    Inputs whose content starts with ``FAIL`` raise :class:`DriverError`.
    """

    id = "fake"

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self._lock = threading.Lock()

    def supports(self, skill):
        return skill.driver == self.id

    def execute(self, input_path, output_path, skill, params, progress=None):
        with self._lock:
            self.calls.append((skill.id, dict(params)))
        data = Path(input_path).read_bytes()
        if data.startswith(b"FAIL"):
            raise DriverError(f"fake failure: {data.decode(errors='replace')}")
        tag = ",".join(f"{k}={params[k]}" for k in sorted(params))
        Path(output_path).write_bytes(data + f"|{skill.id}:{tag}".encode())
        if progress:
            progress(1.0)


class RecordingUsage:
    """Usage store stand-in that records increments."""

    def __init__(self):
        self.increments: list[str] = []

    def increment(self, skill_id):
        self.increments.append(skill_id)


def write_skill(root: Path, data: dict, filename: str = "") -> Path:
    """Write a YAML skill definition under *root*."""
    root.mkdir(parents=True, exist_ok=True)
    path = root / (filename or f"{data['id']}.yaml")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def fake_skill(skill_id: str, **overrides) -> dict:
    data = {
        "id": skill_id,
        "name": skill_id.replace("_", " ").title(),
        "version": "1.0.0",
        "category": "transform",
        "inputTypes": ["*"],
        "driver": "fake",
        "executor": {"type": "native"},
        "permissions": ["files.read", "files.write"],
    }
    data.update(overrides)
    return data


def pipeline_skill(skill_id: str, steps: list, **overrides) -> dict:
    data = {
        "id": skill_id,
        "name": skill_id.replace("_", " ").title(),
        "version": "1.0.0",
        "category": "convert",
        "inputTypes": ["*"],
        "executor": {"type": "pipeline", "steps": steps},
    }
    data.update(overrides)
    return data


class MemoryTrust:
    """Trust store stand-in kept in memory."""

    def __init__(self, trusted=()):
        self.trusted = set(trusted)

    def is_trusted(self, skill_id):
        return skill_id in self.trusted

    def set_trusted(self, skill_id, trusted):
        if trusted:
            self.trusted.add(skill_id)
        else:
            self.trusted.discard(skill_id)
