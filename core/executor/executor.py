"""Pipeline executor: applies skills to session files and rebuilds history.

Every application runs against a file's *current* state and produces a
new ``current`` plus a snapshot of that state.  Removing a history entry
replays the remaining entries from the nearest earlier snapshot instead
of trying to undo anything.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Optional, Protocol

from skills.permissions import elevated_permissions, needs_trust_grant
from skills.registry import SkillRegistry
from skills.schema import Skill

from ..drivers import Driver, default_drivers
from ..errors import (
    DriverError,
    PipelineCycleError,
    PipelineDepthError,
    SkillResolutionError,
    SkillTrustError,
)
from ..session.state import FileState, SessionState
from ..session.types import AppliedSkill, WorkingFile
from ..session.workspace import Workspace, copy_file
from .preview import PreviewGenerator
from .result import FileOutcome

logger = logging.getLogger("skillchain")

MAX_PIPELINE_DEPTH = 6


class UsageRecorder(Protocol):
    def increment(self, skill_id: str) -> None: ...


class TrustLookup(Protocol):
    def is_trusted(self, skill_id: str) -> bool: ...

    def set_trusted(self, skill_id: str, trusted: bool) -> None: ...


def merge_params(base: Optional[dict[str, Any]], override: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Overlay *override* on *base*; *override* wins on key collisions."""
    merged = dict(base or {})
    merged.update(override or {})
    return merged


def normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


def effective_output_ext(skill: Skill, current_ext: str) -> str:
    """Extension a skill's output will carry."""
    output_type = skill.output_type.strip()
    if output_type and output_type.lower() != "none":
        return normalize_extension(output_type)
    if skill.executor.is_cli and skill.executor.output_extension.strip():
        return normalize_extension(skill.executor.output_extension)
    return current_ext


class PipelineExecutor:
    """Resolves skills to driver invocations and records file history."""

    def __init__(
        self,
        registry: SkillRegistry,
        session: SessionState,
        usage: Optional[UsageRecorder] = None,
        drivers: Optional[dict[str, Driver]] = None,
        preview: Optional[PreviewGenerator] = None,
        trust: Optional[TrustLookup] = None,
    ):
        """Initialize the executor.

        Args:
            registry: Where skill ids are resolved.
            session: Owner of all file state and paths.
            usage: Receives one ``increment`` per successful apply call.
            drivers: Drivers keyed by tag. Defaults to image + cli.
            preview: Preview generator. Defaults to PNG data URLs.
            trust: User trust decisions for community skills. Without
                one, no community skill is trusted.
        """
        self.registry = registry
        self.session = session
        self.usage = usage
        self.drivers = drivers if drivers is not None else default_drivers()
        self.preview = preview or PreviewGenerator()
        self.trust = trust

    # ------------------------------------------------------------------ #
    #  Resolution                                                         #
    # ------------------------------------------------------------------ #

    def resolve_skill(self, skill_id: str) -> Skill:
        skill = self.registry.get_by_id(skill_id)
        if skill is None:
            raise SkillResolutionError(f"unknown skill: {skill_id}")
        return skill

    def resolve_driver(self, skill: Skill) -> Driver:
        driver_id = skill.driver.strip()
        if not driver_id and skill.executor.is_cli:
            driver_id = "cli"
        driver = self.drivers.get(driver_id)
        if driver is None:
            raise SkillResolutionError(f"missing driver: {driver_id}")
        if not driver.supports(skill):
            raise SkillResolutionError(f"driver '{driver_id}' does not support skill: {skill.id}")
        return driver

    # ------------------------------------------------------------------ #
    #  Authorization                                                      #
    # ------------------------------------------------------------------ #

    def is_trusted(self, skill_id: str) -> bool:
        return self.trust is not None and self.trust.is_trusted(skill_id)

    def authorize(self, skill: Skill) -> None:
        """Check *skill* and every skill its pipeline reaches against the trust store.

        Pipelines are expanded with the same depth and cycle rules as
        execution, so structural errors also surface here, before any
        file is touched.

        Raises:
            SkillTrustError: A community skill with elevated capabilities
                that the user has not trusted.
            SkillResolutionError: Unknown or meta pipeline step.
            PipelineDepthError: Nesting deeper than the limit, or a cycle.
        """
        for needed in self._skills_needing_trust(skill, 0, ()):
            if not self.is_trusted(needed.id):
                raise SkillTrustError(needed.id, elevated_permissions(needed.permissions))

    def _skills_needing_trust(self, skill: Skill, depth: int, stack: tuple[str, ...]) -> list[Skill]:
        needed = [skill] if needs_trust_grant(skill) else []
        if not skill.executor.is_pipeline:
            return needed
        if depth > MAX_PIPELINE_DEPTH:
            raise PipelineDepthError(MAX_PIPELINE_DEPTH, skill.id)
        stack = stack + (skill.id,)
        for step in skill.executor.steps:
            step_skill = self._resolve_step(step.skill_id, stack)
            needed.extend(self._skills_needing_trust(step_skill, depth + 1, stack))
        return needed

    def _resolve_step(self, step_id: str, stack: tuple[str, ...]) -> Skill:
        if step_id in stack:
            raise PipelineCycleError(MAX_PIPELINE_DEPTH, stack + (step_id,))
        step_skill = self.registry.get_by_id(step_id)
        if step_skill is None:
            raise SkillResolutionError(f"unknown pipeline step skill: {step_id}")
        if step_skill.is_meta:
            raise SkillResolutionError(f"pipeline step cannot be meta: {step_id}")
        return step_skill

    # ------------------------------------------------------------------ #
    #  Execution                                                          #
    # ------------------------------------------------------------------ #

    def execute_skill_to_output(
        self,
        input_path: Path,
        input_ext: str,
        file_dir: Path,
        skill: Skill,
        params: Optional[dict[str, Any]],
        depth: int = 0,
        _stack: tuple[str, ...] = (),
    ) -> tuple[Path, str]:
        """Run *skill* on *input_path* and return the output path and extension.

        The output is a fresh stage file inside *file_dir*; *input_path*
        is never modified. Pipelines recurse into their steps, threading
        each step's output into the next.

        Raises:
            SkillResolutionError: Meta skill, unknown step or missing driver.
            PipelineDepthError: Nested pipelines deeper than the limit.
            PipelineCycleError: A step refers back to an enclosing pipeline.
            DriverError: The driver failed.
        """
        if skill.is_meta:
            raise SkillResolutionError(f"meta skills cannot be executed on files: {skill.id}")

        if skill.executor.is_pipeline:
            return self._execute_pipeline(input_path, input_ext, file_dir, skill, params, depth, _stack)

        driver = self.resolve_driver(skill)
        output_ext = effective_output_ext(skill, input_ext)
        output_path = Workspace.stage_path(file_dir, output_ext)
        try:
            driver.execute(Path(input_path), output_path, skill, skill.resolve_params(params))
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise
        if not output_path.exists():
            raise DriverError(f"driver '{driver.id}' produced no output for skill: {skill.id}")
        return output_path, output_ext

    def _execute_pipeline(
        self,
        input_path: Path,
        input_ext: str,
        file_dir: Path,
        skill: Skill,
        params: Optional[dict[str, Any]],
        depth: int,
        stack: tuple[str, ...],
    ) -> tuple[Path, str]:
        if depth > MAX_PIPELINE_DEPTH:
            raise PipelineDepthError(MAX_PIPELINE_DEPTH, skill.id)
        stack = stack + (skill.id,)

        input_path = Path(input_path)
        current_path, current_ext = input_path, input_ext
        try:
            for step in skill.executor.steps:
                step_skill = self._resolve_step(step.skill_id, stack)
                logger.debug("Pipeline '%s' step '%s' (depth %d)", skill.id, step.skill_id, depth)
                out_path, out_ext = self.execute_skill_to_output(
                    current_path, current_ext, file_dir, step_skill,
                    merge_params(params, step.params), depth + 1, stack,
                )
                self._discard_intermediate(current_path, input_path)
                current_path, current_ext = out_path, out_ext
        except BaseException:
            self._discard_intermediate(current_path, input_path)
            raise
        return current_path, current_ext

    @staticmethod
    def _discard_intermediate(path: Path, keep: Path) -> None:
        if path != keep and Workspace.is_stage_path(path):
            path.unlink(missing_ok=True)

    # ------------------------------------------------------------------ #
    #  Apply                                                              #
    # ------------------------------------------------------------------ #

    def apply_skill(
        self,
        file_ids: list[str],
        skill_id: str,
        params: Optional[dict[str, Any]] = None,
    ) -> list[WorkingFile]:
        """Apply a skill to every file, one concurrent task per file.

        Files whose task succeeded keep their new state even when a sibling
        fails; use :meth:`apply_skill_outcomes` to see every outcome.

        Returns:
            Updated files, in the order of *file_ids*.

        Raises:
            The error of the lowest-index failed file, unchanged.
        """
        outcomes = self.apply_skill_outcomes(file_ids, skill_id, params)
        for outcome in outcomes:
            if outcome.error is not None:
                raise outcome.error
        return [outcome.file for outcome in outcomes]

    def apply_skill_outcomes(
        self,
        file_ids: list[str],
        skill_id: str,
        params: Optional[dict[str, Any]] = None,
    ) -> list[FileOutcome]:
        """Apply a skill to every file and report each file's outcome.

        Resolution and trust errors for the skill itself (unknown, meta,
        no driver, untrusted step) are raised before any file is touched.
        Usage is recorded once, and only when every file succeeded.
        """
        skill = self.resolve_skill(skill_id)
        if skill.is_meta:
            raise SkillResolutionError(f"meta skills cannot be executed on files: {skill.id}")
        self.authorize(skill)
        if not skill.executor.is_pipeline:
            self.resolve_driver(skill)

        params = dict(params or {})
        if not file_ids:
            return []

        with ThreadPoolExecutor(max_workers=len(file_ids), thread_name_prefix="apply") as pool:
            futures = [
                pool.submit(self._apply_to_file, file_id, skill, params)
                for file_id in file_ids
            ]
            outcomes = []
            for index, (file_id, future) in enumerate(zip(file_ids, futures)):
                try:
                    outcomes.append(FileOutcome(index, file_id, file=future.result()))
                except Exception as exc:
                    logger.warning("Skill '%s' failed on file %s: %s", skill_id, file_id, exc)
                    outcomes.append(FileOutcome(index, file_id, error=exc))

        if all(o.ok for o in outcomes):
            self._record_usage(skill_id)
        return outcomes

    def _record_usage(self, skill_id: str) -> None:
        if self.usage is None:
            return
        try:
            self.usage.increment(skill_id)
        except OSError as exc:
            logger.warning("Failed to record usage for '%s': %s", skill_id, exc)

    def _file_state(self, file_id: str) -> FileState:
        state = self.session.get_file(file_id)
        if state is None:
            raise SkillResolutionError(f"file not found: {file_id}")
        return state

    def _apply_to_file(self, file_id: str, skill: Skill, params: dict[str, Any]) -> WorkingFile:
        state = self._file_state(file_id)
        with state.lock:
            current_path, current_ext = state.current()
            output_path, output_ext = self.execute_skill_to_output(
                current_path, current_ext, state.file_dir, skill, params, 0,
            )
            self._commit_step(state, len(state.applied_skills()), output_path, output_ext)
            state.append_applied(AppliedSkill.now(skill.id, params))
            self._refresh_preview(state)
            return state.data()

    def _commit_step(self, state: FileState, index: int, output_path: Path, output_ext: str) -> None:
        """Promote a step's output to ``current`` and store it as snapshot *index*."""
        committed = state.commit_output(output_path, output_ext)
        snapshot = self.session.workspace.snapshot_path(state.id, index, output_ext)
        copy_file(committed, snapshot)
        state.set_snapshot(index, snapshot)

    def _refresh_preview(self, state: FileState) -> None:
        current_path, _ = state.current()
        try:
            state.set_preview(self.preview.image_preview(current_path))
        except (OSError, ValueError) as exc:
            logger.debug("No preview for %s: %s", current_path, exc)

    # ------------------------------------------------------------------ #
    #  Remove / rebuild                                                   #
    # ------------------------------------------------------------------ #

    def remove_skill(self, file_id: str, index: int) -> WorkingFile:
        """Drop history entry *index* and replay everything after it.

        If a replayed step fails, history is truncated to the steps that
        replayed successfully and the error is re-raised; the file, its
        history and its snapshots stay consistent.
        """
        state = self._file_state(file_id)
        with state.lock:
            applied = state.applied_skills()
            if index < 0 or index >= len(applied):
                raise SkillResolutionError(f"invalid skill index: {index}")
            seed = self._seed_path(state, index)
            del applied[index]
            state.replace_applied(applied)
            self._rebuild_from(state, index, seed)
            return state.data()

    @staticmethod
    def _seed_path(state: FileState, start: int) -> Path:
        """State to replay from: the base file or the snapshot before *start*."""
        if start == 0:
            return state.base_path
        snapshot = state.snapshot_at(start - 1)
        if not snapshot or not Path(snapshot).exists():
            raise SkillResolutionError(f"missing snapshot {start - 1} for file: {state.id}")
        return Path(snapshot)

    def _rebuild_from(self, state: FileState, start: int, seed: Path) -> None:
        seed_ext = seed.suffix.lower()
        stage = Workspace.stage_path(state.file_dir, seed_ext)
        copy_file(seed, stage)
        state.commit_output(stage, seed_ext)
        state.trim_snapshots(start)

        applied = state.applied_skills()
        i = start
        try:
            for i in range(start, len(applied)):
                entry = applied[i]
                skill = self.resolve_skill(entry.skill_id)
                current_path, current_ext = state.current()
                output_path, output_ext = self.execute_skill_to_output(
                    current_path, current_ext, state.file_dir, skill, entry.params, 0,
                )
                self._commit_step(state, i, output_path, output_ext)
                logger.debug("Replayed '%s' at index %d for %s", entry.skill_id, i, state.id)
        except Exception as exc:
            logger.warning(
                "Replay of '%s' failed for %s; history truncated to %d entries: %s",
                applied[i].skill_id, state.id, i, exc,
            )
            state.replace_applied(applied[:i])
            raise
        finally:
            self._refresh_preview(state)
