"""refswap CLI - Turn assembly references into NuGet package references.

Entry point for the ``refswap`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    convert-assemblies-to-packages - Rewrite DLL references as packages.

Usage::

    refswap convert-assemblies-to-packages
    refswap convert-assemblies-to-packages "^System\\." --project ./src
"""

from __future__ import annotations

import click

from refswap import __version__
from refswap.cli.convert_cmd import convert_command


@click.group()
@click.version_option(version=__version__)
def cli() -> None:
    """refswap: Convert assembly references to NuGet packages.

    Scans MSBuild project files for references to local DLLs that are
    published on a NuGet feed and replaces them with package references.
    """


# Register all subcommands
cli.add_command(convert_command)
