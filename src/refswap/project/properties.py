"""MSBuild property evaluation for project documents.

Only the subset needed to evaluate item includes and metadata is
supported: ``$(Name)`` references. The reserved ``MSBuildProject*`` properties
and global properties cannot be overridden by the project; the project's
own ``<PropertyGroup>`` values, in document order, override environment
variables.
Property functions (``$([...])``) and conditions are not evaluated.
Property names are case-insensitive, as in MSBuild.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from xml.etree import ElementTree

_PROPERTY_REF_RE = re.compile(r"\$\(\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\)")


def top_level_groups(root: ElementTree.Element, tag: str) -> list[ElementTree.Element]:
    """Return evaluation-time groups: direct children and ``<Choose>`` branches.

    Groups nested in ``<Target>`` run at build time and are skipped.
    """
    groups: list[ElementTree.Element] = []
    for element in root:
        if element.tag == tag:
            groups.append(element)
        elif element.tag == "Choose":
            for branch in element:
                if branch.tag in ("When", "Otherwise"):
                    groups.extend(top_level_groups(branch, tag))
    return groups


def reserved_properties(path: Path) -> dict[str, str]:
    """Return the reserved properties MSBuild defines for a project file."""
    full = path.resolve()
    directory = str(full.parent)
    return {
        "msbuildprojectdirectory": directory,
        "msbuildprojectfullpath": str(full),
        "msbuildprojectfile": full.name,
        "msbuildprojectname": full.stem,
        "msbuildprojectextension": full.suffix,
        "msbuildthisfiledirectory": directory + os.sep,
    }


def expand(value: str, properties: Mapping[str, str]) -> str:
    """Replace ``$(Name)`` references; unknown properties expand to ''."""
    return _PROPERTY_REF_RE.sub(lambda m: properties.get(m.group(1).lower(), ""), value)


def evaluate_properties(
    root: ElementTree.Element,
    path: Path,
    global_properties: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Evaluate the property table of a project.

    Args:
        root: Namespace-stripped ``<Project>`` element.
        path: Location of the project file.
        global_properties: Properties that the project cannot override.
            Reserved ``MSBuildProject*`` properties take precedence over them.
        environ: Environment variables (default: ``os.environ``).

    Returns:
        Lower-cased property name to value mapping.
    """
    env = os.environ if environ is None else environ
    properties = {k.lower(): v for k, v in env.items()}
    fixed = {k.lower(): v for k, v in (global_properties or {}).items()}
    fixed.update(reserved_properties(path))
    properties.update(fixed)

    for group in top_level_groups(root, "PropertyGroup"):
        for element in group:
            if not isinstance(element.tag, str):
                continue
            name = element.tag.lower()
            if name in fixed:
                continue
            properties[name] = expand((element.text or "").strip(), properties)
    return properties
