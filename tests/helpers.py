"""Shared test helpers: sample project files and an in-memory registry.

``FakeRegistry`` records every search it receives so tests can assert on
the order registries were queried in (and that later ones were not).
"""

from __future__ import annotations

from pathlib import Path

from refswap.exceptions import RegistryError
from refswap.registry.base import (
    DEFAULT_TAKE,
    PackageCandidate,
    PackageRegistry,
    RegistryEndpoint,
)

MSBUILD_NS = "http://schemas.microsoft.com/developer/msbuild/2003"

LEGACY_PROJECT = (
    '<?xml version="1.0" encoding="utf-8"?>\r\n'
    f'<Project ToolsVersion="15.0" DefaultTargets="Build" xmlns="{MSBUILD_NS}">\r\n'
    "  <PropertyGroup>\r\n"
    "    <OutputType>Library</OutputType>\r\n"
    "    <PackagesDir>..\\packages</PackagesDir>\r\n"
    "  </PropertyGroup>\r\n"
    "  <ItemGroup>\r\n"
    '    <Reference Include="Newtonsoft.Json, Version=12.0.0, Culture=neutral">\r\n'
    "      <HintPath>$(PackagesDir)\\Newtonsoft.Json.12.0.3\\lib\\net45\\Newtonsoft.Json.dll</HintPath>\r\n"
    "    </Reference>\r\n"
    '    <Reference Include="System" />\r\n'
    '    <Reference Include="System.Xml" />\r\n'
    "  </ItemGroup>\r\n"
    "  <ItemGroup>\r\n"
    '    <Compile Include="Class1.cs" />\r\n'
    "  </ItemGroup>\r\n"
    "</Project>\r\n"
)

SDK_PROJECT = (
    '<Project Sdk="Microsoft.NET.Sdk">\n'
    "  <PropertyGroup>\n"
    "    <TargetFramework>net48</TargetFramework>\n"
    "  </PropertyGroup>\n"
    "  <ItemGroup>\n"
    '    <PackageReference Include="Serilog" Version="3.1.1" />\n'
    '    <PackageReference Include="Xunit" Version="2.6.0" />\n'
    "  </ItemGroup>\n"
    "  <ItemGroup>\n"
    '    <Reference Include="Dapper">\n'
    "      <HintPath>lib\\Dapper.dll</HintPath>\n"
    "    </Reference>\n"
    '    <Reference Include="Internal.Tools">\n'
    "      <HintPath>lib\\Internal.Tools.dll</HintPath>\n"
    "    </Reference>\n"
    '    <Reference Include="Legacy.Native" HintPath="lib\\Legacy.Native.so" />\n'
    "  </ItemGroup>\n"
    "</Project>\n"
)


def write_project(directory: Path, name: str, content: str) -> Path:
    """Write a project file byte-exactly (no newline translation)."""
    path = directory / name
    path.write_bytes(content.encode("utf-8"))
    return path


class FakeRegistry(PackageRegistry):
    """Registry answering from a dict of package id -> versions."""

    def __init__(
        self,
        name: str,
        packages: dict[str, list[str]] | None = None,
        *,
        fail: bool = False,
    ) -> None:
        super().__init__(RegistryEndpoint(name=name, source=f"https://{name}.test/v3/index.json"))
        self.packages = packages or {}
        self.fail = fail
        self.queries: list[str] = []

    async def search(
        self,
        name: str,
        *,
        include_prerelease: bool = False,
        skip: int = 0,
        take: int = DEFAULT_TAKE,
    ) -> list[PackageCandidate]:
        self.queries.append(name)
        if self.fail:
            raise RegistryError(f"{self.registry_name} is down")
        hits = [pid for pid in self.packages if name.lower() in pid.lower()]
        return [
            PackageCandidate(
                title=pid,
                registry_name=self.registry_name,
                versions=tuple(self.packages[pid]),
            )
            for pid in hits[skip:skip + take]
        ]
