"""Package registries queried for assembly-to-package conversion.

Public API::

    from refswap.registry import PackageCandidate, PackageRegistry, RegistryEndpoint
    from refswap.registry.aggregator import RegistryAggregator
    from refswap.registry.nuget_v3 import NuGetV3Registry
    from refswap.registry.local_feed import LocalFolderRegistry
"""

from __future__ import annotations

from refswap.registry.base import PackageCandidate, PackageRegistry, RegistryEndpoint

__all__ = [
    "PackageCandidate",
    "PackageRegistry",
    "RegistryEndpoint",
]
