"""NuGet version parsing and ordering.

NuGet versions extend SemVer 2.0.0 with an optional fourth numeric part
(``1.2.3.4``) and allow fewer than three parts (``1.0``). Ordering follows
SemVer precedence: numeric parts compare as integers, a prerelease version
ranks below the associated release, and build metadata is ignored.

References
----------
.. [SemVer] Preston-Werner, T. (2013). "Semantic Versioning 2.0.0."
   https://semver.org/
.. [NuGetVer] Microsoft. "NuGet package versioning."
   https://learn.microsoft.com/nuget/concepts/package-versioning
"""

from __future__ import annotations

import re

_NUGET_VERSION_RE = re.compile(
    r"^(?P<release>\d+(?:\.\d+){0,3})"
    r"(?:-(?P<pre>[0-9A-Za-z\-.]+))?"
    r"(?:\+(?P<build>[0-9A-Za-z\-.]+))?$"
)


def parse_version(version: str) -> tuple[tuple[int, int, int, int], tuple[str, ...]]:
    """Split a NuGet version string into release and prerelease parts.

    Args:
        version: Version string (e.g., "13.0.3", "1.0.0-beta.2", "4.5.0.1").

    Returns:
        A ``(release, prerelease)`` pair where *release* is padded to four
        integers and *prerelease* holds the dot-separated labels.

    Raises:
        ValueError: If the string is not a valid NuGet version.
    """
    m = _NUGET_VERSION_RE.match(version.strip())
    if not m:
        raise ValueError(f"Invalid NuGet version: {version!r}")
    parts = [int(p) for p in m.group("release").split(".")]
    parts.extend([0] * (4 - len(parts)))
    pre = tuple(m.group("pre").split(".")) if m.group("pre") else ()
    return (parts[0], parts[1], parts[2], parts[3]), pre


def is_prerelease(version: str) -> bool:
    """Return True if *version* carries a prerelease label.

    Unparseable strings are checked for a dash in the release part only.
    """
    try:
        return bool(parse_version(version)[1])
    except ValueError:
        return "-" in version.split("+", 1)[0]


def _label_key(label: str) -> tuple[int, int, str]:
    # Numeric labels rank below alphanumeric ones.
    if label.isdigit():
        return 0, int(label), ""
    return 1, 0, label.lower()


def version_key(version: str) -> tuple:
    """Sort key implementing NuGet version precedence (ascending)."""
    release, pre = parse_version(version)
    if not pre:
        return release, 1, ()
    return release, 0, tuple(_label_key(label) for label in pre)


def sort_versions_descending(versions: list[str]) -> list[str]:
    """Sort version strings newest-first, dropping unparseable entries.

    Args:
        versions: Version strings in any order.

    Returns:
        A new list ordered by descending NuGet precedence.
    """
    valid: list[str] = []
    for v in versions:
        try:
            parse_version(v)
        except ValueError:
            continue
        valid.append(v)
    return sorted(valid, key=version_key, reverse=True)
