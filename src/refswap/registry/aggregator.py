"""Ordered aggregation over the configured package registries.

The aggregator turns the run's ``RegistryEndpoint`` list into registry
clients once, then answers "which package is called X?" by asking each
registry in priority order and stopping at the first exact match.

A registry failure is localized: it is logged and treated as "no
candidate" for that registry, and the next registry is tried.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from refswap.exceptions import RegistryError
from refswap.registry.base import (
    DEFAULT_TAKE,
    PackageCandidate,
    PackageRegistry,
    RegistryEndpoint,
)
from refswap.registry.local_feed import LocalFolderRegistry
from refswap.registry.nuget_v3 import NuGetV3Registry

logger = logging.getLogger(__name__)


def create_registry(
    endpoint: RegistryEndpoint, client: httpx.AsyncClient | None = None
) -> PackageRegistry | None:
    """Build the registry client for an endpoint.

    HTTP registries send their requests through *client* when given.

    Returns:
        A registry, or None for sources this tool cannot query (NuGet V2
        HTTP feeds).
    """
    if not endpoint.is_http:
        return LocalFolderRegistry(endpoint)
    if endpoint.protocol_version == "3" or endpoint.source.lower().endswith("index.json"):
        return NuGetV3Registry(endpoint, client)
    logger.warning(
        "Skipping package source %s: NuGet V2 feeds are not supported (%s)",
        endpoint.name, endpoint.source,
    )
    return None


class RegistryAggregator:
    """Searches an ordered list of registries, first match wins.

    Usage::

        aggregator = RegistryAggregator.from_endpoints(config.endpoints)
        package = await aggregator.find_package("Newtonsoft.Json")
    """

    def __init__(self, registries: Sequence[PackageRegistry]) -> None:
        self._registries: tuple[PackageRegistry, ...] = tuple(registries)

    @classmethod
    def from_endpoints(
        cls,
        endpoints: Sequence[RegistryEndpoint],
        client: httpx.AsyncClient | None = None,
    ) -> RegistryAggregator:
        """Create registry clients for endpoints sorted by priority."""
        registries = []
        for endpoint in sorted(endpoints, key=lambda e: e.priority):
            registry = create_registry(endpoint, client)
            if registry is not None:
                registries.append(registry)
        return cls(registries)

    def list_registries(self) -> tuple[PackageRegistry, ...]:
        """Return the registries in search order."""
        return self._registries

    async def search(
        self,
        registry: PackageRegistry,
        name: str,
        include_prerelease: bool = False,
    ) -> PackageCandidate | None:
        """Query one registry for a package whose title equals *name* exactly.

        Args:
            registry: The registry to query.
            name: Exact, case-sensitive package id to look for.
            include_prerelease: Whether prerelease versions are acceptable.

        Returns:
            The first exact match among the first result page, or None.
        """
        try:
            results = await registry.search(
                name, include_prerelease=include_prerelease, skip=0, take=DEFAULT_TAKE
            )
        except RegistryError as exc:
            logger.warning("Registry %s unavailable: %s", registry.registry_name, exc)
            return None
        return next((p for p in results if p.title == name), None)

    async def find_package(
        self, name: str, include_prerelease: bool = False
    ) -> PackageCandidate | None:
        """Search registries left to right, stopping at the first match."""
        for registry in self._registries:
            package = await self.search(registry, name, include_prerelease)
            if package is not None:
                logger.debug("Found %s in %s", name, registry.registry_name)
                return package
        return None
