"""Host-facing service: the operations a UI or CLI front end calls."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from skills.ranking import UsageStats
from skills.registry import SkillRegistry
from skills.schema import Skill

from .drivers import Driver
from .errors import SkillResolutionError
from .executor import PipelineExecutor, PreviewGenerator, SkillResult, TrustLookup
from .session import ExportResult, Mode, SessionSnapshot, SessionState, WorkingFile, Workspace
from .session import copy_file, export_name
from .storage import Settings, SettingsStore, TrustStore, UsageStore, skills_dir

logger = logging.getLogger("skillchain")

DEFAULT_EXPORT_SKILL_NAME = "skillchain"
MAX_COLLISION_SUFFIX = 1000


def resolve_output_path(folder: str | Path, filename: str) -> Path:
    """Return ``folder/filename``, or the first free ``name-N.ext`` variant."""
    output_path = Path(folder) / filename
    if not output_path.exists():
        return output_path
    stem, ext = os.path.splitext(filename)
    for i in range(1, MAX_COLLISION_SUFFIX):
        candidate = Path(folder) / f"{stem}-{i}{ext}"
        if not candidate.exists():
            return candidate
    return output_path


class SkillApp:
    """Wires registry, session, executor and stores together."""

    def __init__(
        self,
        registry: SkillRegistry,
        session: SessionState,
        executor: PipelineExecutor,
        usage: Optional[UsageStore] = None,
        trust: Optional[TrustLookup] = None,
        settings: Optional[SettingsStore] = None,
        preview: Optional[PreviewGenerator] = None,
    ):
        self.registry = registry
        self.session = session
        self.executor = executor
        self.usage = usage
        # One trust lookup, enforced by the executor.
        if trust is not None:
            executor.trust = trust
        self.trust = executor.trust
        self.settings = settings
        self.preview = preview or executor.preview

    @classmethod
    def create(
        cls,
        workspace_root: Optional[str | Path] = None,
        disk_core_root: Optional[str | Path] = None,
        community_root: Optional[str | Path] = None,
        drivers: Optional[dict[str, Driver]] = None,
    ) -> "SkillApp":
        """Build an app from the per-user stores and skill directories.

        Args:
            workspace_root: Scratch directory. Defaults to a timestamped
                directory under the cache dir.
            disk_core_root: Optional on-disk override of the core skills.
            community_root: Community skills. Defaults to ``<config>/skills``.
            drivers: Drivers keyed by tag. Defaults to image + cli.
        """
        settings_store = SettingsStore()
        usage_store = UsageStore()
        trust_store = TrustStore()
        settings = settings_store.load()

        session = SessionState(
            SessionSnapshot(
                mode=Mode.BATCH,
                output_folder=settings.output_folder,
                naming_pattern=settings.naming_pattern,
                accent_color=settings.accent_color,
            ),
            workspace=Workspace(workspace_root),
        )
        registry = SkillRegistry.from_roots(
            disk_core_root=Path(disk_core_root) if disk_core_root else None,
            community_root=Path(community_root) if community_root else skills_dir(),
        )
        executor = PipelineExecutor(registry, session, usage_store, drivers=drivers, trust=trust_store)
        return cls(registry, session, executor, usage_store, trust_store, settings_store)

    # -- Skills --------------------------------------------------------

    def get_skills(self, query: str = "", input_types: Optional[list[str]] = None) -> list[Skill]:
        usage: dict[str, UsageStats] = self.usage.all() if self.usage else {}
        return self.registry.search(query, input_types or (), usage)

    def get_skill_trust(self, skill_id: str) -> bool:
        if self.trust is None:
            return False
        return self.trust.is_trusted(skill_id)

    def set_skill_trust(self, skill_id: str, trusted: bool) -> None:
        if self.trust is None:
            return
        self.trust.set_trusted(skill_id, trusted)

    def check_trust(self, skill: Skill) -> None:
        """Raise :class:`SkillTrustError` if *skill*, or any step it runs, needs a grant it lacks."""
        self.executor.authorize(skill)

    # -- Files ---------------------------------------------------------

    def add_files(self, paths: list[str]) -> list[WorkingFile]:
        """Import *paths* into the session; unreadable paths are skipped."""
        added = []
        for path in paths:
            try:
                file = self.session.add_file(path)
            except OSError as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            state = self.session.get_file(file.id)
            try:
                state.set_preview(self.preview.image_preview(file.working_path))
            except (OSError, ValueError) as exc:
                logger.debug("No preview for %s: %s", path, exc)
            added.append(state.data())
        return added

    def execute_skill(
        self,
        file_ids: list[str],
        skill_id: str,
        params: Optional[dict[str, Any]] = None,
    ) -> SkillResult:
        """Run a skill on the selected files, or perform a meta action.

        Raises:
            SkillResolutionError: Unknown skill or unknown meta action.
            SkillTrustError: Community skill with elevated capabilities that
                the user has not trusted. Raised before any file is touched.
        """
        skill = self.registry.get_by_id(skill_id)
        if skill is None:
            raise SkillResolutionError(f"unknown skill: {skill_id}")

        self.check_trust(skill)

        if skill.is_meta:
            return self._execute_meta_skill(skill_id, params or {}, file_ids)

        if not file_ids:
            return SkillResult(session=self.session.snapshot())

        updated = self.executor.apply_skill(file_ids, skill_id, params)
        return SkillResult(updated_files=updated, session=self.session.snapshot())

    def remove_skill(self, file_id: str, index: int) -> WorkingFile:
        return self.executor.remove_skill(file_id, index)

    def export_files(self, file_ids: Optional[list[str]] = None) -> list[ExportResult]:
        """Copy the current state of each file to the output folder.

        Every file in the session is exported when *file_ids* is empty.
        Unknown ids are skipped.
        """
        if not file_ids:
            file_ids = [f.id for f in self.session.list_files()]

        results = []
        for file_id in file_ids:
            state = self.session.get_file(file_id)
            if state is None:
                logger.debug("Export skipped unknown file %s", file_id)
                continue
            with state.lock:
                data = state.data()
                folder = self.session.output_folder or os.path.dirname(data.original_path)
                skill_name = DEFAULT_EXPORT_SKILL_NAME
                if data.applied_skills:
                    skill_name = data.applied_skills[-1].skill_id
                filename = export_name(
                    self.session.naming_pattern, data.name, data.current_extension, skill_name,
                )
                output_path = resolve_output_path(folder, filename)
                Path(folder).mkdir(parents=True, exist_ok=True)
                copy_file(data.working_path, output_path)
            logger.info("Exported %s to %s", data.name, output_path)
            results.append(ExportResult(file_id=file_id, output_path=str(output_path)))
        return results

    # -- Session -------------------------------------------------------

    def get_session(self) -> SessionSnapshot:
        return self.session.snapshot()

    def set_mode(self, mode: str) -> SessionSnapshot:
        try:
            self.session.set_mode(Mode(mode))
        except ValueError:
            raise ValueError(f"invalid mode: {mode!r}") from None
        return self.session.snapshot()

    def clear_all(self) -> None:
        self.session.clear()

    def _save_settings(self) -> None:
        if self.settings is None:
            return
        snapshot = self.session.snapshot()
        try:
            self.settings.save(Settings(
                output_folder=snapshot.output_folder,
                naming_pattern=snapshot.naming_pattern,
                accent_color=snapshot.accent_color,
            ))
        except OSError as exc:
            logger.warning("Failed to save settings: %s", exc)

    def _execute_meta_skill(self, skill_id: str, params: dict[str, Any], file_ids: list[str]) -> SkillResult:
        message = ""
        if skill_id == "switch_to_batch":
            self.session.set_mode(Mode.BATCH)
        elif skill_id == "switch_to_per_file":
            self.session.set_mode(Mode.PER_FILE)
        elif skill_id == "set_output_folder":
            folder = str(params.get("folder") or "").strip()
            if folder:
                self.session.set_output_folder(folder)
                self._save_settings()
        elif skill_id == "set_naming_pattern":
            pattern = str(params.get("pattern") or "")
            if pattern.strip():
                self.session.set_naming_pattern(pattern)
                self._save_settings()
        elif skill_id == "set_accent_color":
            color = str(params.get("color") or "")
            if color.strip():
                self.session.set_accent_color(color)
                self._save_settings()
                message = "Accent updated"
        elif skill_id == "export":
            outputs = self.export_files(file_ids)
            message = f"Exported {len(outputs)} files"
        elif skill_id == "clear_all":
            self.session.clear()
            message = "Cleared all files"
        else:
            raise SkillResolutionError(f"unknown meta skill: {skill_id}")
        return SkillResult(session=self.session.snapshot(), message=message)
