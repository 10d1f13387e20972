"""Multi-tier skill definition loader.

Skills are discovered in three roots, lowest precedence first:

    skills/builtin/               # shipped with the package (embedded)
    <dev checkout>/skills/core/   # optional on-disk override of core skills
    <config>/skills/              # user-contributed (community) skills and packs
    ├── my_skill.yaml
    └── retro-pack/
        ├── pack.yaml             # reserved, never parsed as a skill
        ├── _notes.json           # '_' prefix = metadata, skipped
        └── skills/
            └── vhs.json

Definitions may be JSON or YAML.  When the same ``id`` appears in more
than one tier the higher tier wins entirely.  A malformed file is
reported and skipped; it never takes the rest of the registry down.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from core.errors import SkillDefinitionError

from .permissions import normalize_permissions
from .schema import (
    ExecutorSpec,
    ParamDef,
    ParameterType,
    PipelineStep,
    Skill,
    SkillSource,
)

logger = logging.getLogger("skillchain")

EMBEDDED_ROOT = Path(__file__).resolve().parent / "builtin"

DEFINITION_SUFFIXES = (".json", ".yaml", ".yml")
RESERVED_STEMS = ("manifest", "pack")
RELOAD_DEBOUNCE_SECONDS = 0.15

# ------------------------------------------------------------------ #
#   Mapping → Skill conversion                                       #
# ------------------------------------------------------------------ #

_TYPE_MAP: dict[str, ParameterType] = {
    "number": ParameterType.NUMBER,
    "slider": ParameterType.NUMBER,
    "int": ParameterType.INT,
    "integer": ParameterType.INT,
    "float": ParameterType.FLOAT,
    "string": ParameterType.STRING,
    "str": ParameterType.STRING,
    "text": ParameterType.STRING,
    "bool": ParameterType.BOOL,
    "boolean": ParameterType.BOOL,
    "choice": ParameterType.CHOICE,
    "select": ParameterType.CHOICE,
    "color": ParameterType.COLOR,
}

_DRIVER_BY_EXECUTOR = {
    "cli": "cli",
    "external-process": "cli",
    "pipeline": "pipeline",
    "meta": "meta",
}


def is_definition_file(name: str) -> bool:
    """Whether a file name looks like a skill definition."""
    lower = name.lower()
    if not lower.endswith(DEFINITION_SUFFIXES):
        return False
    # Hidden files and '_'-prefixed metadata are never skills.
    if lower.startswith((".", "_")):
        return False
    stem = lower.rsplit(".", 1)[0]
    return stem not in RESERVED_STEMS


def is_watchable_file(path: str) -> bool:
    """Whether a file-system event on *path* should trigger a reload."""
    name = Path(path).name.lower()
    return name.endswith(DEFINITION_SUFFIXES) and not name.startswith(".")


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_parameter(data: dict[str, Any]) -> ParamDef:
    """Convert a ``params`` entry into a :class:`ParamDef`."""
    ptype = _TYPE_MAP.get(str(data.get("type", "string")).lower(), ParameterType.STRING)
    return ParamDef(
        name=str(data.get("name", "")),
        type=ptype,
        label=str(data.get("label", "")),
        default=data.get("default"),
        presets=tuple(_as_list(data.get("presets"))),
        options=tuple(str(o) for o in _as_list(data.get("options"))),
        min=_optional_float(data.get("min")),
        max=_optional_float(data.get("max")),
        unit=str(data.get("unit", "")),
    )


def _parse_executor(data: Any) -> ExecutorSpec:
    if not isinstance(data, dict):
        return ExecutorSpec()
    steps = []
    for raw_step in _as_list(data.get("steps")):
        if not isinstance(raw_step, dict):
            continue
        step_params = raw_step.get("params") or {}
        steps.append(PipelineStep(
            skill_id=str(raw_step.get("skillId", "")),
            params=dict(step_params) if isinstance(step_params, dict) else {},
        ))
    try:
        timeout_ms = int(data.get("timeoutMs") or 0)
    except (TypeError, ValueError):
        timeout_ms = 0
    return ExecutorSpec(
        type=str(data.get("type", "")).strip(),
        handler=str(data.get("handler", "")),
        command=str(data.get("command", "")),
        args=tuple(str(a) for a in _as_list(data.get("args"))),
        output_extension=str(data.get("outputExtension", "")),
        timeout_ms=timeout_ms,
        steps=tuple(steps),
    )


def skill_from_mapping(
    data: Any,
    source: SkillSource,
    path: str | Path = "",
) -> Skill:
    """Build a normalized :class:`Skill` from a parsed definition.

    Raises:
        SkillDefinitionError: If the definition is not a mapping or lacks
            ``id``, ``name`` or ``version``.
    """
    if not isinstance(data, dict):
        raise SkillDefinitionError(path, "top-level must be a mapping")

    for required in ("id", "name", "version"):
        if not str(data.get(required) or "").strip():
            raise SkillDefinitionError(path, f"missing {required}")

    executor = _parse_executor(data.get("executor"))

    # Infer the driver when omitted.
    driver = str(data.get("driver") or "").strip()
    if not driver and executor.type:
        driver = _DRIVER_BY_EXECUTOR.get(executor.type.lower(), "")
    if not driver:
        driver = "meta"

    params = [
        _parse_parameter(p) for p in _as_list(data.get("params"))
        if isinstance(p, dict)
    ]

    try:
        danger_level = int(data.get("dangerLevel") or 0)
    except (TypeError, ValueError):
        danger_level = 0

    return Skill(
        id=str(data["id"]).strip(),
        name=str(data["name"]).strip(),
        version=str(data["version"]).strip(),
        author=str(data.get("author") or ""),
        aliases=tuple(str(a) for a in _as_list(data.get("aliases"))),
        category=str(data.get("category") or ""),
        description=str(data.get("description") or ""),
        input_types=tuple(str(t) for t in _as_list(data.get("inputTypes"))),
        output_type=str(data.get("outputType") or ""),
        params=tuple(params),
        driver=driver,
        is_meta=bool(data.get("isMeta", False)),
        executor=executor,
        permissions=normalize_permissions(_as_list(data.get("permissions"))),
        danger_level=danger_level,
        source=source,
        definition_path=str(path),
        raw=data,
    )


def load_skill_file(path: Path, source: SkillSource) -> Skill:
    """Parse a single JSON or YAML definition file.

    Raises:
        SkillDefinitionError: If the file cannot be read, parsed or validated.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.suffix.lower() == ".json":
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise SkillDefinitionError(path, f"parse error: {exc}") from exc
    return skill_from_mapping(data, source, path)


# ------------------------------------------------------------------ #
#   Loader                                                            #
# ------------------------------------------------------------------ #

@dataclass
class LoadReport:
    """Outcome of one :meth:`SkillLoader.load_all` pass."""
    loaded: int = 0
    errors: list[SkillDefinitionError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def collect_from_dir(
    root: Path,
    source: SkillSource,
    report: LoadReport,
) -> dict[str, Skill]:
    """Load every definition under *root*, recording failures in *report*."""
    loaded: dict[str, Skill] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file() or not is_definition_file(path.name):
            continue
        try:
            skill = load_skill_file(path, source)
        except SkillDefinitionError as exc:
            logger.warning("%s", exc)
            report.errors.append(exc)
            continue
        loaded[skill.id] = skill
    return loaded


class _ReloadHandler(FileSystemEventHandler):
    """Forwards definition-file events to the loader's debounced reload."""

    def __init__(self, loader: "SkillLoader"):
        self.loader = loader

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and is_watchable_file(str(p)) for p in paths):
            self.loader.schedule_reload()


class SkillLoader:
    """Loads, merges and hot-reloads skill definitions."""

    def __init__(
        self,
        embedded_root: Optional[Path] = EMBEDDED_ROOT,
        disk_core_root: Optional[Path] = None,
        community_root: Optional[Path] = None,
        debounce_seconds: float = RELOAD_DEBOUNCE_SECONDS,
    ):
        """Initialize the loader.

        Args:
            embedded_root: Bundled core skills. Never watched.
            disk_core_root: Optional development override of core skills.
            community_root: User-contributed skills; created when watching.
            debounce_seconds: Quiet period before a watched change reloads.
        """
        self.embedded_root = Path(embedded_root) if embedded_root else None
        self.disk_core_root = Path(disk_core_root) if disk_core_root else None
        self.community_root = Path(community_root) if community_root else None
        self.debounce_seconds = debounce_seconds

        # Replaced wholesale on every load; never mutated after publishing.
        self._skills: dict[str, Skill] = {}
        self._changed: queue.Queue = queue.Queue(maxsize=1)
        self._load_lock = threading.Lock()
        self.last_report = LoadReport()

        self._watch_lock = threading.Lock()
        self._observer: Optional[Observer] = None
        self._debounce: Optional[threading.Timer] = None

    # -- Reads ---------------------------------------------------------

    def list(self) -> list[Skill]:
        return list(self._skills.values())

    def get_by_id(self, skill_id: str) -> Optional[Skill]:
        return self._skills.get(skill_id)

    def changes(self) -> queue.Queue:
        """Queue receiving one ``None`` token per unconsumed change."""
        return self._changed

    # -- Loading -------------------------------------------------------

    def _tiers(self) -> list[tuple[SkillSource, Optional[Path]]]:
        return [
            (SkillSource.CORE_EMBEDDED, self.embedded_root),
            (SkillSource.CORE_DISK, self.disk_core_root),
            (SkillSource.COMMUNITY, self.community_root),
        ]

    def load_all(self) -> LoadReport:
        """Load all tiers and atomically publish the merged registry.

        Returns:
            LoadReport with the number of skills published and every
            definition error encountered.
        """
        report = LoadReport()
        merged: dict[str, Skill] = {}

        with self._load_lock:
            for source, root in self._tiers():
                if root is None or not root.is_dir():
                    continue
                # Later tiers replace earlier ones entirely.
                merged.update(collect_from_dir(root, source, report))

            report.loaded = len(merged)
            self._skills = merged
            self.last_report = report

        try:
            self._changed.put_nowait(None)
        except queue.Full:
            pass

        logger.info(
            "Loaded %d skill(s) (%d definition error(s))",
            report.loaded, len(report.errors),
        )
        return report

    # -- Hot reload ----------------------------------------------------

    @property
    def watching(self) -> bool:
        return self._observer is not None

    def schedule_reload(self) -> None:
        """Reload after a quiet period; bursts collapse into one reload."""
        with self._watch_lock:
            if self._debounce is not None:
                self._debounce.cancel()
            self._debounce = threading.Timer(self.debounce_seconds, self._reload_from_watch)
            self._debounce.daemon = True
            self._debounce.start()

    def _reload_from_watch(self) -> None:
        try:
            self.load_all()
        except Exception as exc:
            logger.error("Skill hot reload failed: %s", exc, exc_info=True)

    def watch(self) -> None:
        """Start watching the on-disk tiers for changes."""
        with self._watch_lock:
            if self._observer is not None:
                return

            roots: list[Path] = []
            if self.disk_core_root is not None and self.disk_core_root.is_dir():
                roots.append(self.disk_core_root)
            if self.community_root is not None:
                self.community_root.mkdir(parents=True, exist_ok=True)
                roots.append(self.community_root)

            observer = Observer()
            handler = _ReloadHandler(self)
            for root in roots:
                # Recursive schedules also cover subdirectories created later.
                observer.schedule(handler, str(root), recursive=True)
            observer.daemon = True
            observer.start()
            self._observer = observer

        logger.info("Watching skill roots: %s", ", ".join(str(r) for r in roots) or "(none)")

    def stop_watching(self) -> None:
        """Stop the observer and cancel any pending reload."""
        with self._watch_lock:
            observer, self._observer = self._observer, None
            if self._debounce is not None:
                self._debounce.cancel()
                self._debounce = None
        if observer is not None:
            observer.stop()
            observer.join(timeout=5)
