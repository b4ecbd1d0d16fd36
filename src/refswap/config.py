"""Run configuration and NuGet package-source settings.

``RunConfig`` is built once at the start of a run and passed explicitly to
the registry aggregator and the project loader; nothing here is a
process-wide singleton.

Package sources are read from NuGet.Config files the way the NuGet client
does it: every ``NuGet.Config`` from the working directory up to the
filesystem root, then the per-user config. Closer files take precedence,
and a ``<clear />`` element discards sources declared by less specific
files. An explicit config file (``--configfile`` or the
``REFSWAP_NUGET_CONFIG`` environment variable) replaces that lookup.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from xml.etree import ElementTree

from refswap.exceptions import ConfigurationError
from refswap.registry.base import RegistryEndpoint
from refswap.registry.nuget_v3 import NUGET_ORG_V3

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV: str = "REFSWAP_NUGET_CONFIG"

NUGET_CONFIG_NAMES: tuple[str, ...] = ("NuGet.Config", "nuget.config", "NuGet.config")

DEFAULT_ENDPOINT = RegistryEndpoint(name="nuget.org", source=NUGET_ORG_V3, protocol_version="3")

_ENV_VAR_RE = re.compile(r"%([^%]+)%")


# ---------------------------------------------------------------------------
# RunConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RunConfig:
    """Everything a conversion run needs, resolved up front.

    Attributes:
        reference_pattern: Optional regular expression an assembly
            reference's include must match to be converted.
        include_prerelease: Accept prerelease package versions.
        include_without_hint_path: Also convert references that have no
            ``HintPath`` to a ``.dll``.
        global_properties: MSBuild global properties used when evaluating
            project files.
        endpoints: Package sources in search order.
    """

    reference_pattern: re.Pattern[str] | None = None
    include_prerelease: bool = False
    include_without_hint_path: bool = False
    global_properties: Mapping[str, str] = field(default_factory=dict)
    endpoints: tuple[RegistryEndpoint, ...] = (DEFAULT_ENDPOINT,)

    @classmethod
    def create(
        cls,
        *,
        reference_pattern: str | None = None,
        include_prerelease: bool = False,
        include_without_hint_path: bool = False,
        global_properties: Mapping[str, str] | None = None,
        config_file: str | Path | None = None,
        start_dir: Path | None = None,
    ) -> RunConfig:
        """Build a RunConfig, compiling the pattern and loading package sources.

        Raises:
            ConfigurationError: If the pattern is invalid or the package
                source settings cannot be loaded.
        """
        compiled = None
        if reference_pattern and reference_pattern.strip():
            try:
                compiled = re.compile(reference_pattern)
            except re.error as exc:
                raise ConfigurationError(
                    f"Invalid reference pattern {reference_pattern!r}: {exc}"
                ) from exc
        endpoints = load_registry_endpoints(start_dir=start_dir, config_file=config_file)
        return cls(
            reference_pattern=compiled,
            include_prerelease=include_prerelease,
            include_without_hint_path=include_without_hint_path,
            global_properties=dict(global_properties or {}),
            endpoints=tuple(endpoints),
        )


def parse_property_assignments(assignments: Sequence[str]) -> dict[str, str]:
    """Parse ``NAME=VALUE`` strings into a global-properties mapping.

    ``;``-separated assignments in one string are accepted, matching
    MSBuild's ``/p:A=1;B=2`` syntax.

    Raises:
        ConfigurationError: If an assignment has no ``=`` or an empty name.
    """
    properties: dict[str, str] = {}
    for assignment in assignments:
        for part in assignment.split(";"):
            if not part.strip():
                continue
            name, sep, value = part.partition("=")
            if not sep or not name.strip():
                raise ConfigurationError(f"Invalid property assignment: {part!r}")
            properties[name.strip()] = value.strip()
    return properties


# ---------------------------------------------------------------------------
# NuGet.Config lookup
# ---------------------------------------------------------------------------


def user_config_path() -> Path:
    """Return the per-user NuGet.Config location for this platform."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "NuGet" / "NuGet.Config"
    return Path.home() / ".nuget" / "NuGet" / "NuGet.Config"


def find_config_files(start_dir: Path | None = None) -> list[Path]:
    """List NuGet.Config files, most specific first."""
    start = (start_dir or Path.cwd()).resolve()
    found: list[Path] = []
    seen: set[Path] = set()
    for directory in (start, *start.parents):
        for name in NUGET_CONFIG_NAMES:
            candidate = directory / name
            if candidate.is_file():
                resolved = candidate.resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    found.append(candidate)
                break
    user = user_config_path()
    if user.is_file() and user.resolve() not in seen:
        found.append(user)
    return found


def load_registry_endpoints(
    *,
    start_dir: Path | None = None,
    config_file: str | Path | None = None,
) -> list[RegistryEndpoint]:
    """Load the enabled package sources in search order.

    Args:
        start_dir: Directory the config lookup starts from (default: cwd).
        config_file: Explicit NuGet.Config; overrides the lookup and the
            ``REFSWAP_NUGET_CONFIG`` environment variable.

    Returns:
        Endpoints with ``priority`` set to their position. Falls back to
        nuget.org when no source is configured.

    Raises:
        ConfigurationError: If a config file is missing or malformed.
    """
    explicit = config_file or os.environ.get(CONFIG_FILE_ENV)
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise ConfigurationError(f"NuGet config file not found: {path}")
        files = [path]
    else:
        files = find_config_files(start_dir)

    # Least specific first, so closer files override and <clear/> works.
    sources: dict[str, tuple[int, int, RegistryEndpoint]] = {}
    disabled: dict[str, bool] = {}
    for specificity, path in enumerate(reversed(files)):
        settings = _parse_config_file(path)
        if settings.cleared:
            sources.clear()
        for order, endpoint in enumerate(settings.sources):
            sources[endpoint.name.lower()] = (specificity, order, endpoint)
        disabled.update(settings.disabled)

    ordered = sorted(sources.values(), key=lambda s: (-s[0], s[1]))
    endpoints = [
        RegistryEndpoint(e.name, e.source, e.protocol_version, priority)
        for priority, (_, _, e) in enumerate(
            s for s in ordered if not disabled.get(s[2].name.lower(), False)
        )
    ]
    if not endpoints:
        logger.debug("No package sources configured, using %s", DEFAULT_ENDPOINT.source)
        return [DEFAULT_ENDPOINT]
    return endpoints


@dataclass
class _ConfigFileSettings:
    sources: list[RegistryEndpoint] = field(default_factory=list)
    disabled: dict[str, bool] = field(default_factory=dict)
    cleared: bool = False


def _parse_config_file(path: Path) -> _ConfigFileSettings:
    """Read the packageSources sections of one NuGet.Config."""
    try:
        root = ElementTree.parse(path).getroot()
    except ElementTree.ParseError as exc:
        raise ConfigurationError(f"Malformed NuGet config {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read NuGet config {path}: {exc}") from exc

    settings = _ConfigFileSettings()
    sources = root.find("packageSources")
    if sources is not None:
        for element in sources:
            if element.tag == "clear":
                settings.cleared = True
                settings.sources.clear()
            elif element.tag == "add":
                key = element.get("key", "").strip()
                value = element.get("value", "").strip()
                if not key or not value:
                    continue
                settings.sources.append(
                    RegistryEndpoint(
                        name=key,
                        source=_resolve_source(_expand_env(value), path.parent),
                        protocol_version=element.get("protocolVersion", "2").strip() or "2",
                    )
                )
    disabled = root.find("disabledPackageSources")
    if disabled is not None:
        for element in disabled.iter("add"):
            key = element.get("key", "").strip().lower()
            if key:
                settings.disabled[key] = element.get("value", "").strip().lower() == "true"
    return settings


def _expand_env(value: str) -> str:
    """Expand ``%VAR%`` references; unknown variables are left verbatim."""
    return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)


def _resolve_source(value: str, config_dir: Path) -> str:
    if value.lower().startswith(("http://", "https://")):
        return value
    folder = Path(value.replace("\\", os.sep)).expanduser()
    if not folder.is_absolute():
        folder = config_dir / folder
    return str(folder)
