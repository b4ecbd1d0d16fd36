"""Base classes and data models for package registries.

Defines the ``PackageRegistry`` abstract base class that the concrete
registries (NuGet V3 HTTP feeds, local folder feeds) implement, along with
the ``RegistryEndpoint`` configuration record and the ``PackageCandidate``
search result.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# Number of search results requested from each registry.
DEFAULT_TAKE: int = 10


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RegistryEndpoint:
    """A configured package source.

    Attributes:
        name: Source key from NuGet.Config (e.g. "nuget.org").
        source: Feed URL or local folder path.
        protocol_version: NuGet protocol version ("3" for service-index feeds).
        priority: Position in the search order; lower values are queried first.
    """

    name: str
    source: str
    protocol_version: str = "3"
    priority: int = 0

    @property
    def is_http(self) -> bool:
        """True if the source is an HTTP(S) feed rather than a folder."""
        return self.source.lower().startswith(("http://", "https://"))


@dataclass(frozen=True)
class PackageCandidate:
    """A search result proposed as the replacement for an assembly reference.

    Attributes:
        title: Exact package id as published in the registry.
        registry_name: Name of the registry that produced the result.
        versions: Published versions, newest first, when the registry
            returned them with the search result.
        fetch_versions: Coroutine factory used when ``versions`` is None.
    """

    title: str
    registry_name: str = ""
    versions: tuple[str, ...] | None = None
    fetch_versions: Callable[[], Awaitable[list[str]]] | None = field(
        default=None, compare=False, repr=False
    )

    async def get_versions(self) -> list[str]:
        """Return the published version list in registry order."""
        if self.versions is not None:
            return list(self.versions)
        if self.fetch_versions is None:
            return []
        return list(await self.fetch_versions())


# ---------------------------------------------------------------------------
# Abstract base registry
# ---------------------------------------------------------------------------


class PackageRegistry(ABC):
    """Abstract base class for package registries.

    Subclasses implement ``search``. Registries hold only immutable
    configuration, so one instance may be shared by concurrent tasks.
    """

    def __init__(self, endpoint: RegistryEndpoint) -> None:
        self.endpoint = endpoint

    @property
    def registry_name(self) -> str:
        """Human-readable name of this registry."""
        return self.endpoint.name

    @abstractmethod
    async def search(
        self,
        name: str,
        *,
        include_prerelease: bool = False,
        skip: int = 0,
        take: int = DEFAULT_TAKE,
    ) -> list[PackageCandidate]:
        """Search the registry for packages matching *name*.

        Args:
            name: Search term (usually a package id).
            include_prerelease: Whether prerelease versions are returned.
            skip: Number of results to skip.
            take: Maximum number of results to return.

        Returns:
            Candidates in registry ranking order.

        Raises:
            RegistryError: If the registry cannot be queried.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.endpoint.name!r}, {self.endpoint.source!r})"
