"""Locate the project documents a run should process.

Targets may be project files, solution files, directories or glob
patterns. Paths that do not exist are passed through unchanged so that
the per-document task can report them as load failures.
"""

from __future__ import annotations

import glob
import logging
import re
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_EXTENSIONS: tuple[str, ...] = (".csproj", ".vbproj", ".fsproj")

_EXCLUDED_DIRS: frozenset[str] = frozenset({"bin", "obj", ".git", ".vs", "node_modules"})

# Project("{type-guid}") = "Name", "relative\path.csproj", "{project-guid}"
_SLN_PROJECT_RE = re.compile(
    r'^Project\("\{[^}]+\}"\)\s*=\s*"[^"]*"\s*,\s*"(?P<path>[^"]+)"', re.M
)


def is_project_file(path: Path) -> bool:
    """True if *path* has an MSBuild project extension."""
    return path.suffix.lower() in PROJECT_EXTENSIONS


def projects_in_solution(solution: Path) -> list[Path]:
    """List the project files referenced by a ``.sln`` file.

    Solution folders and non-MSBuild entries (web sites) are skipped.
    """
    text = solution.read_text(encoding="utf-8-sig", errors="replace")
    projects: list[Path] = []
    for match in _SLN_PROJECT_RE.finditer(text):
        relative = Path(match.group("path").replace("\\", "/"))
        if is_project_file(relative):
            projects.append(solution.parent / relative)
    return projects


def projects_in_directory(directory: Path) -> list[Path]:
    """Recursively find project files, skipping build output directories."""
    found: list[Path] = []
    for path in sorted(directory.rglob("*")):
        if not is_project_file(path) or not path.is_file():
            continue
        relative_parts = path.relative_to(directory).parts[:-1]
        if any(part.lower() in _EXCLUDED_DIRS for part in relative_parts):
            continue
        found.append(path)
    return found


def find_project_paths(targets: Iterable[str | Path] = ()) -> list[Path]:
    """Expand targets into an ordered, de-duplicated list of project paths.

    Args:
        targets: Project files, ``.sln`` files, directories or glob
            patterns. Empty means the current directory.

    Returns:
        Project paths in first-seen order.
    """
    expanded: list[Path] = []
    for target in list(targets) or [Path.cwd()]:
        path = Path(target)
        if path.is_dir():
            expanded.extend(projects_in_directory(path))
        elif path.suffix.lower() == ".sln" and path.is_file():
            expanded.extend(projects_in_solution(path))
        elif any(ch in str(target) for ch in "*?["):
            matches = sorted(glob.glob(str(target), recursive=True))
            if not matches:
                logger.warning("No project files match %s", target)
            for match in matches:
                candidate = Path(match)
                if candidate.suffix.lower() == ".sln":
                    expanded.extend(projects_in_solution(candidate))
                elif is_project_file(candidate):
                    expanded.append(candidate)
        else:
            expanded.append(path)

    unique: list[Path] = []
    seen: set[Path] = set()
    for path in expanded:
        key = path.resolve()
        if key not in seen:
            seen.add(key)
            unique.append(path)
    return unique
