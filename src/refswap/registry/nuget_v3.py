"""NuGet V3 protocol registry (nuget.org and compatible HTTP feeds).

Resolves the feed's service index, then queries its ``SearchQueryService``
resource. Version lists come from the ``versions`` array of each search
result; when a result omits it, the ``PackageBaseAddress`` (flat container)
resource is queried instead.

Usage::

    async with create_client() as client:
        registry = NuGetV3Registry(RegistryEndpoint("nuget.org", NUGET_ORG_V3), client)
        candidates = await registry.search("Newtonsoft.Json")
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from refswap.exceptions import RegistryError
from refswap.registry.base import (
    DEFAULT_TAKE,
    PackageCandidate,
    PackageRegistry,
    RegistryEndpoint,
)
from refswap.registry.http_client import fetch_json
from refswap.registry.versions import is_prerelease

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NUGET_ORG_V3: str = "https://api.nuget.org/v3/index.json"

SEARCH_RESOURCE_TYPE: str = "SearchQueryService"
PACKAGE_BASE_RESOURCE_TYPE: str = "PackageBaseAddress"

SEMVER_LEVEL: str = "2.0.0"


# ---------------------------------------------------------------------------
# NuGet V3 registry
# ---------------------------------------------------------------------------


class NuGetV3Registry(PackageRegistry):
    """Registry backed by a NuGet V3 service index."""

    def __init__(
        self, endpoint: RegistryEndpoint, client: httpx.AsyncClient | None = None
    ) -> None:
        super().__init__(endpoint)
        self._client = client
        self._resources: dict[str, str] | None = None

    async def search(
        self,
        name: str,
        *,
        include_prerelease: bool = False,
        skip: int = 0,
        take: int = DEFAULT_TAKE,
    ) -> list[PackageCandidate]:
        """Query the feed's search service.

        Raises:
            RegistryError: If the service index or search response is
                missing or malformed.
        """
        search_url = await self._resource_url(SEARCH_RESOURCE_TYPE)
        params = {
            "q": name,
            "skip": str(skip),
            "take": str(take),
            "prerelease": "true" if include_prerelease else "false",
            "semVerLevel": SEMVER_LEVEL,
        }
        data = await fetch_json(search_url, params=params, client=self._client)
        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise RegistryError(
                f"Malformed search response from {self.registry_name} for {name!r}"
            )
        candidates: list[PackageCandidate] = []
        for item in data["data"][:take]:
            if isinstance(item, dict):
                candidate = self._to_candidate(item, include_prerelease)
                if candidate is not None:
                    candidates.append(candidate)
        return candidates

    async def list_versions(self, package_id: str, *, include_prerelease: bool = False) -> list[str]:
        """List published versions from the flat container, newest first."""
        base_url = await self._resource_url(PACKAGE_BASE_RESOURCE_TYPE)
        url = f"{base_url.rstrip('/')}/{package_id.lower()}/index.json"
        data = await fetch_json(url, client=self._client)
        versions = data.get("versions", []) if isinstance(data, dict) else []
        return _newest_first(
            [str(v) for v in versions if isinstance(v, str)], include_prerelease
        )

    # -- Internal helpers ---------------------------------------------------

    async def _resource_url(self, resource_type: str) -> str:
        """Return the first service-index resource URL of the given type."""
        if self._resources is None:
            self._resources = await _load_service_index(self.endpoint.source, self._client)
        url = self._resources.get(resource_type)
        if not url:
            raise RegistryError(
                f"{self.registry_name} does not expose a {resource_type} resource"
            )
        return url

    def _to_candidate(
        self, item: dict[str, Any], include_prerelease: bool
    ) -> PackageCandidate | None:
        package_id = str(item.get("id") or item.get("title") or "")
        if not package_id:
            return None
        raw_versions = item.get("versions")
        if isinstance(raw_versions, list) and raw_versions:
            listed = [
                str(v.get("version", "")) for v in raw_versions if isinstance(v, dict)
            ]
            return PackageCandidate(
                title=package_id,
                registry_name=self.registry_name,
                versions=tuple(_newest_first(listed, include_prerelease)),
            )

        async def _fetch() -> list[str]:
            return await self.list_versions(package_id, include_prerelease=include_prerelease)

        return PackageCandidate(
            title=package_id,
            registry_name=self.registry_name,
            fetch_versions=_fetch,
        )


async def _load_service_index(
    source: str, client: httpx.AsyncClient | None = None
) -> dict[str, str]:
    """Fetch a service index and map resource type prefixes to URLs."""
    data = await fetch_json(source, client=client)
    resources = data.get("resources") if isinstance(data, dict) else None
    if not isinstance(resources, list):
        raise RegistryError(f"Could not load NuGet service index from {source}")
    found: dict[str, str] = {}
    for resource in resources:
        if not isinstance(resource, dict):
            continue
        url = resource.get("@id")
        types = resource.get("@type")
        if isinstance(types, str):
            types = [types]
        if not isinstance(url, str) or not isinstance(types, list):
            continue
        for rtype in types:
            base_type = str(rtype).split("/", 1)[0]
            found.setdefault(base_type, url)
    logger.debug("Service index %s exposes %s", source, sorted(found))
    return found


def _newest_first(versions: list[str], include_prerelease: bool) -> list[str]:
    """Reverse the protocol's ascending order and drop unwanted prereleases."""
    kept = [v for v in versions if v and (include_prerelease or not is_prerelease(v))]
    return list(reversed(kept))
