"""Local folder feed registry.

Supports both NuGet folder layouts:

* flat: ``<feed>/<id>.<version>.nupkg``
* hierarchical: ``<feed>/<id>/<version>/<id>.<version>.nupkg``

Package identity is read from the ``.nuspec`` embedded in each ``.nupkg``
rather than parsed from file names, which are ambiguous when ids end in
digits. Scans are blocking filesystem work and run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import zipfile
from pathlib import Path
from xml.etree import ElementTree

from refswap.exceptions import RegistryError
from refswap.registry.base import (
    DEFAULT_TAKE,
    PackageCandidate,
    PackageRegistry,
    RegistryEndpoint,
)
from refswap.registry.versions import is_prerelease, sort_versions_descending

logger = logging.getLogger(__name__)


class LocalFolderRegistry(PackageRegistry):
    """Registry backed by a directory of ``.nupkg`` files."""

    def __init__(self, endpoint: RegistryEndpoint) -> None:
        super().__init__(endpoint)
        self.root = Path(endpoint.source)

    async def search(
        self,
        name: str,
        *,
        include_prerelease: bool = False,
        skip: int = 0,
        take: int = DEFAULT_TAKE,
    ) -> list[PackageCandidate]:
        """Find packages whose id contains *name* (case-insensitive)."""
        packages = await asyncio.to_thread(self._scan)
        needle = name.lower()
        # Exact id matches rank first, like a feed's relevance ordering.
        ids = sorted(
            (pid for pid in packages if needle in pid.lower()),
            key=lambda pid: (pid.lower() != needle, pid.lower()),
        )
        candidates: list[PackageCandidate] = []
        for pid in ids:
            versions = [
                v for v in packages[pid] if include_prerelease or not is_prerelease(v)
            ]
            if not versions:
                continue
            candidates.append(
                PackageCandidate(
                    title=pid,
                    registry_name=self.registry_name,
                    versions=tuple(sort_versions_descending(versions)),
                )
            )
        return candidates[skip:skip + take]

    def _scan(self) -> dict[str, list[str]]:
        """Map package ids to their versions found under the feed root."""
        if not self.root.is_dir():
            raise RegistryError(f"Local feed {self.root} does not exist")
        try:
            archives = sorted(self.root.rglob("*.nupkg"))
        except OSError as exc:
            raise RegistryError(f"Cannot scan local feed {self.root}: {exc}") from exc
        packages: dict[str, list[str]] = {}
        for nupkg in archives:
            identity = read_nupkg_identity(nupkg)
            if identity is None:
                continue
            pid, version = identity
            versions = packages.setdefault(pid, [])
            if version not in versions:
                versions.append(version)
        return packages


def read_nupkg_identity(path: Path) -> tuple[str, str] | None:
    """Read ``(id, version)`` from the nuspec inside a ``.nupkg``.

    Returns:
        The identity pair, or None if the archive or its nuspec is unreadable.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            nuspec_names = [
                n for n in archive.namelist() if n.endswith(".nuspec") and "/" not in n
            ]
            if not nuspec_names:
                return None
            root = ElementTree.fromstring(archive.read(nuspec_names[0]))
    except (OSError, zipfile.BadZipFile, ElementTree.ParseError) as exc:
        logger.warning("Skipping unreadable package %s: %s", path, exc)
        return None

    pid = version = ""
    for element in root.iter():
        tag = element.tag.rsplit("}", 1)[-1]
        if tag == "id" and not pid:
            pid = (element.text or "").strip()
        elif tag == "version" and not version:
            version = (element.text or "").strip()
    if not pid or not version:
        return None
    return pid, version
