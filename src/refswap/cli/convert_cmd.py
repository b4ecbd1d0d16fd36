"""``refswap convert-assemblies-to-packages`` - Replace DLL references with packages.

Finds ``<Reference>`` items whose ``HintPath`` points at a ``.dll``, looks
the assembly name up in the configured NuGet feeds and rewrites each match
into a ``<PackageReference>`` pinned to the newest version the feed lists.

Usage::

    refswap convert-assemblies-to-packages
    refswap convert-assemblies-to-packages "^Newtonsoft\\." --project App.sln
    refswap convert-assemblies-to-packages --include-prerelease --property Configuration=Release

Exit Codes:
    0 - Run completed (skipped references and failed documents included).
    1 - Configuration could not be loaded or the pattern is invalid.
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from refswap.cli.output import configure_logging, print_conversion_results, reports_to_json
from refswap.config import RunConfig, parse_property_assignments
from refswap.core.converter import convert_projects
from refswap.exceptions import ConfigurationError
from refswap.project.discovery import find_project_paths


@click.command("convert-assemblies-to-packages")
@click.argument("reference_pattern", required=False, default=None)
@click.option(
    "--include-prerelease", is_flag=True, default=False,
    help="Accept prerelease packages and versions.",
)
@click.option(
    "--include-without-hint-path", is_flag=True, default=False,
    help="Also convert references without a HintPath to a .dll.",
)
@click.option(
    "--project", "projects", multiple=True,
    help="Project, solution, directory or glob to process (repeatable, default: cwd).",
)
@click.option(
    "--property", "properties", multiple=True,
    help="MSBuild global property NAME=VALUE used to evaluate projects (repeatable).",
)
@click.option(
    "--configfile", type=click.Path(dir_okay=False), default=None,
    help="NuGet.Config to read package sources from.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def convert_command(
    reference_pattern: str | None,
    include_prerelease: bool,
    include_without_hint_path: bool,
    projects: tuple[str, ...],
    properties: tuple[str, ...],
    configfile: str | None,
    output_format: str,
    verbose: bool,
) -> None:
    """Convert assembly references to NuGet package references.

    REFERENCE_PATTERN is an optional regular expression; only references
    whose include matches it are converted.
    """
    configure_logging(verbose)
    try:
        config = RunConfig.create(
            reference_pattern=reference_pattern,
            include_prerelease=include_prerelease,
            include_without_hint_path=include_without_hint_path,
            global_properties=parse_property_assignments(properties),
            config_file=configfile,
        )
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    paths = find_project_paths(projects)
    reports = asyncio.run(convert_projects(paths, config))

    if output_format == "json":
        click.echo(json.dumps(reports_to_json(reports), indent=2))
    else:
        print_conversion_results(reports)
    sys.exit(0)
