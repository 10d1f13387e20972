"""Capability strings declared by skills and the trust rules built on them.

Permissions stay plain strings so skills can be authored without code
changes.  *Base* capabilities are implicitly granted to every skill;
*elevated* ones need an explicit user trust decision when the skill comes
from the community tier.  Core skills are trusted by provenance.
"""

from __future__ import annotations

from typing import Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from .schema import Skill

PERM_FILES_READ = "files.read"          # read input files
PERM_FILES_WRITE = "files.write"        # write output files
PERM_FILES_TEMP = "files.temp"          # create temp files
PERM_FILES_ANYWHERE = "files.anywhere"  # access outside input/output/temp
PERM_NETWORK = "network"
PERM_TOOLS_EXEC = "tools.exec"          # run managed tools (ffmpeg, magick, ...)
PERM_TOOLS_EXEC_ANY = "tools.exec.any"  # run arbitrary executables
PERM_SYSTEM = "system"

BASE_PERMISSIONS = frozenset({
    PERM_FILES_READ,
    PERM_FILES_WRITE,
    PERM_FILES_TEMP,
    PERM_TOOLS_EXEC,
})

ELEVATED_PERMISSIONS = frozenset({
    PERM_FILES_ANYWHERE,
    PERM_NETWORK,
    PERM_TOOLS_EXEC_ANY,
    PERM_SYSTEM,
})


def normalize_permissions(perms: Iterable[str] | None) -> tuple[str, ...]:
    """Drop empty entries, de-duplicate and sort."""
    if not perms:
        return ()
    return tuple(sorted({str(p) for p in perms if p}))


def elevated_permissions(perms: Iterable[str] | None) -> list[str]:
    """Return the sorted elevated capabilities found in *perms*."""
    return [p for p in normalize_permissions(perms) if p in ELEVATED_PERMISSIONS]


def is_base_permission(perm: str) -> bool:
    return perm in BASE_PERMISSIONS


def is_elevated_permission(perm: str) -> bool:
    return perm in ELEVATED_PERMISSIONS


def requires_trust(skill: "Skill") -> bool:
    """True when the skill declares at least one elevated capability."""
    return bool(elevated_permissions(skill.permissions))


def needs_trust_grant(skill: "Skill") -> bool:
    """True when running *skill* needs an explicit user trust decision.

    Only community skills are gated; embedded and disk-core skills are
    trusted regardless of what they declare.
    """
    from .schema import SkillSource

    return skill.source is SkillSource.COMMUNITY and requires_trust(skill)
