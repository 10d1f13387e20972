"""Pytest configuration and shared fixtures for SkillChain tests.

Sets up sys.path so that package imports (e.g. `from skills.registry import ...`)
work when running pytest from the project root, and keeps every store and
workspace under ``tmp_path``.
"""

import os
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add project root to sys.path so `skills` and `core` are importable
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from core.executor import PipelineExecutor  # noqa: E402
from core.session import SessionState, Workspace  # noqa: E402
from skills.registry import SkillRegistry  # noqa: E402

from helpers import FakeDriver, RecordingUsage, fake_skill, pipeline_skill, write_skill  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point per-user config and cache dirs into the test's tmp dir."""
    home = tmp_path / "home"
    monkeypatch.setenv("SKILLCHAIN_HOME", str(home))
    return home


@pytest.fixture
def photo_jpg(tmp_path):
    """A 500x500 RGB JPEG named photo.jpg."""
    path = tmp_path / "input" / "photo.jpg"
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (500, 500), (200, 120, 40)).save(path, format="JPEG")
    return path


@pytest.fixture
def text_file(tmp_path):
    """Factory for small text inputs."""
    def _make(name: str, content: str = "seed") -> Path:
        path = tmp_path / "input" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _make


@pytest.fixture
def fake_root(tmp_path):
    """Embedded root populated with fake-driver skills and pipelines."""
    root = tmp_path / "fake_skills"
    for skill_id in ("step_a", "step_b", "step_c"):
        write_skill(root, fake_skill(skill_id))
    write_skill(root, fake_skill("to_out", outputType=".out", category="convert"))
    write_skill(root, fake_skill(
        "scaled",
        params=[{"name": "level", "type": "int", "default": 3, "min": 1, "max": 5}],
    ))
    write_skill(root, pipeline_skill("composite", [
        {"skillId": "step_a"},
        {"skillId": "step_b"},
        {"skillId": "step_c"},
    ]))
    write_skill(root, pipeline_skill("nested", [
        {"skillId": "composite"},
        {"skillId": "to_out"},
    ]))
    write_skill(root, pipeline_skill("loop_a", [{"skillId": "loop_b"}]))
    write_skill(root, pipeline_skill("loop_b", [{"skillId": "loop_a"}]))
    write_skill(root, pipeline_skill("empty_pipeline", []))
    write_skill(root, {
        "id": "noop_meta",
        "name": "Noop Meta",
        "version": "1.0.0",
        "category": "meta",
        "isMeta": True,
        "executor": {"type": "meta"},
    })
    return root


@pytest.fixture
def fake_registry(fake_root):
    return SkillRegistry.from_roots(embedded_root=fake_root)


@pytest.fixture
def session(tmp_path):
    return SessionState(workspace=Workspace(tmp_path / "workspace"))


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def usage():
    return RecordingUsage()


@pytest.fixture
def executor(fake_registry, session, usage, fake_driver):
    return PipelineExecutor(fake_registry, session, usage, drivers={"fake": fake_driver})
