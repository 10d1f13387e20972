"""Driver for declarative external-process (``cli``) skills.

Skills describe a command and argument templates; no code is needed to
add one.  Templates may reference ``{{input}}``, ``{{output}}`` and any
param as ``{{name}}``.
"""

import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Any, Iterable, Optional

from skills.permissions import PERM_TOOLS_EXEC, PERM_TOOLS_EXEC_ANY
from skills.schema import Skill, SkillSource

from ..errors import DriverError
from .base import Driver, ProgressCallback

logger = logging.getLogger("skillchain")

# Managed tools community skills may run with only the base permission.
DEFAULT_ALLOWED_COMMANDS = ("ffmpeg", "magick", "convert", "identify")

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")


def render_template(template: str, input_path: str, output_path: str, params: Optional[dict[str, Any]]) -> str:
    """Substitute ``{{input}}``, ``{{output}}`` and ``{{param}}`` placeholders.

    Unknown placeholders are left as-is.
    """
    values = {k: str(v) for k, v in (params or {}).items()}
    values["input"] = input_path
    values["output"] = output_path

    def _sub(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    return _PLACEHOLDER.sub(_sub, template)


def _command_base(command: str) -> str:
    name = Path(command).name.lower()
    if name.endswith(".exe"):
        name = name[:-4]
    return name


class CLIDriver(Driver):
    """Runs ``executor.type == cli`` skills as subprocesses."""

    id = "cli"

    def __init__(self, allowed_commands: Optional[Iterable[str]] = None):
        """Initialize the driver.

        Args:
            allowed_commands: Commands community skills may run without
                ``tools.exec.any``. Defaults to the managed media tools.
        """
        commands = allowed_commands if allowed_commands is not None else DEFAULT_ALLOWED_COMMANDS
        self.allowed_commands = {c.lower() for c in commands}

    def supports(self, skill: Skill) -> bool:
        return skill.driver == self.id or skill.executor.is_cli

    def is_allowed(self, command: str) -> bool:
        return _command_base(command) in self.allowed_commands

    def build_args(self, input_path: Path, output_path: Path, skill: Skill, params: dict[str, Any]) -> list[str]:
        args = [skill.executor.command]
        for template in skill.executor.args:
            args.append(render_template(template, str(input_path), str(output_path), params))
        return args

    def execute(
        self,
        input_path: Path,
        output_path: Path,
        skill: Skill,
        params: dict[str, Any],
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        executor = skill.executor
        if not executor.is_cli:
            raise DriverError("cli driver requires executor.type=cli")
        if not executor.command.strip():
            raise DriverError("cli driver requires executor.command")
        if PERM_TOOLS_EXEC not in skill.permissions:
            raise DriverError(f"skill missing required permission: {PERM_TOOLS_EXEC}")

        base = _command_base(executor.command)
        if (
            skill.source is SkillSource.COMMUNITY
            and PERM_TOOLS_EXEC_ANY not in skill.permissions
            and not self.is_allowed(executor.command)
        ):
            raise DriverError(f"community skill requires {PERM_TOOLS_EXEC_ANY} to run {base!r}")

        args = self.build_args(input_path, output_path, skill, params)
        resolved = shutil.which(args[0])
        if resolved is None:
            raise DriverError(f"cli skill failed: command not found: {args[0]}")
        args[0] = resolved

        timeout = executor.timeout_ms / 1000 if executor.timeout_ms > 0 else None
        logger.debug("Running cli skill '%s': %s", skill.id, " ".join(args))

        if progress:
            progress(0.2)
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise DriverError(
                f"cli skill timed out after {executor.timeout_ms} ms: {base}"
            ) from exc
        except OSError as exc:
            raise DriverError(f"cli skill failed: {exc}") from exc
        if progress:
            progress(1.0)

        if result.returncode != 0:
            detail = (result.stderr or "").strip() or (result.stdout or "").strip()
            if detail:
                raise DriverError(f"cli skill failed: {detail}")
            raise DriverError(f"cli skill failed: exit status {result.returncode}")
