"""Conversion of assembly references into package references.

The converter ties the matcher, the registry aggregator and the project
document together:

1. ``convert_projects`` builds the registry aggregator once and starts one
   asyncio task per project document.
2. ``process_document`` loads the document, selects the eligible
   references and converts them one after another. The document is saved
   once, after every reference has been processed, and only if something
   changed.
3. ``convert_reference`` looks the derived package name up in the
   registries (first match wins), picks the first version the registry
   lists and swaps the ``<Reference>`` for a ``<PackageReference>``.

A reference is either fully converted or left untouched: when a package
is found but no version is available the reference is kept, so the tool
never writes a ``<PackageReference>`` without a version.

Failures are isolated per document. A document that cannot be loaded or
saved is reported in its ``DocumentReport``; sibling documents are not
affected. Only configuration errors, raised before any task starts,
abort a run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from refswap.config import RunConfig
from refswap.core.matcher import (
    FILE_REFERENCE_TYPE,
    PACKAGE_REFERENCE_TYPE,
    derive_package_name,
    select_eligible,
)
from refswap.core.models import ConversionOutcome, DocumentReport, OutcomeStatus
from refswap.exceptions import ProjectLoadError, RefswapError, RegistryError
from refswap.project.document import Declaration, ProjectDocument
from refswap.registry.aggregator import RegistryAggregator
from refswap.registry.http_client import create_client

logger = logging.getLogger(__name__)

VERSION_METADATA: str = "Version"


async def convert_reference(
    document: ProjectDocument,
    declaration: Declaration,
    aggregator: RegistryAggregator,
    include_prerelease: bool = False,
) -> ConversionOutcome:
    """Replace one assembly reference with a package reference if possible.

    Args:
        document: Document owning *declaration*; mutated in place.
        declaration: An eligible ``<Reference>`` item.
        aggregator: Registries to search, in priority order.
        include_prerelease: Accept prerelease packages and versions.

    Returns:
        The outcome; skipped outcomes leave the document unchanged.
    """
    name = derive_package_name(declaration)
    package = await aggregator.find_package(name, include_prerelease)
    if package is None:
        logger.debug("No package found for %s", name)
        return ConversionOutcome(declaration.evaluated_include, name, OutcomeStatus.SKIPPED_NO_PACKAGE)

    try:
        versions = await package.get_versions()
    except RegistryError as exc:
        logger.warning("Cannot list versions of %s in %s: %s", name, package.registry_name, exc)
        return ConversionOutcome(
            declaration.evaluated_include, name, OutcomeStatus.SKIPPED_REGISTRY_ERROR,
            package_id=package.title, registry_name=package.registry_name,
        )
    if not versions:
        logger.warning(
            "Failed to retrieve any versions for %s. The returned collection is empty.", name
        )
        return ConversionOutcome(
            declaration.evaluated_include, name, OutcomeStatus.SKIPPED_NO_VERSIONS,
            package_id=package.title, registry_name=package.registry_name,
        )

    version = str(versions[0])
    document.add_item(PACKAGE_REFERENCE_TYPE, package.title, [(VERSION_METADATA, version)])
    document.remove_item(declaration)
    logger.info(
        "%s: replaced %s with %s %s", document.path.name, declaration.evaluated_include,
        package.title, version,
    )
    return ConversionOutcome(
        declaration.evaluated_include, name, OutcomeStatus.CONVERTED,
        package_id=package.title, version=version, registry_name=package.registry_name,
    )


async def process_document(
    path: Path,
    config: RunConfig,
    aggregator: RegistryAggregator,
) -> DocumentReport:
    """Convert all eligible references of one project and save it.

    References are processed sequentially; each mutation sees the item
    list left by the previous one. The document is saved once, after the
    last reference, and only when a reference was converted: an unchanged
    project is never rewritten, so a repeated run leaves it byte-identical.

    Load, save and registry failures are recorded in the report instead of
    being raised. A document whose conversion is aborted is not saved.
    """
    report = DocumentReport(path=path)
    try:
        document = await asyncio.to_thread(ProjectDocument.load, path, config.global_properties)
    except ProjectLoadError as exc:
        logger.error("%s", exc)
        report.error = str(exc)
        return report

    references = select_eligible(
        document, config.include_without_hint_path, config.reference_pattern
    )
    logger.debug("%s: %d eligible %s items", path, len(references), FILE_REFERENCE_TYPE)
    try:
        for reference in references:
            report.outcomes.append(
                await convert_reference(document, reference, aggregator, config.include_prerelease)
            )
    except RefswapError as exc:
        logger.error("Conversion of %s aborted: %s", path, exc)
        report.error = f"Conversion of {path} aborted: {exc}"
        return report

    if document.modified:
        try:
            await asyncio.to_thread(document.save)
        except OSError as exc:
            logger.error("Cannot save project %s: %s", path, exc)
            report.error = f"Cannot save project {path}: {exc}"
            return report
        report.saved = True
    return report


async def convert_projects(
    paths: Iterable[Path],
    config: RunConfig,
    aggregator: RegistryAggregator | None = None,
) -> list[DocumentReport]:
    """Process project documents concurrently, one task per document.

    Args:
        paths: Project files to convert.
        config: Run configuration shared read-only by all tasks.
        aggregator: Registries to search; built from ``config.endpoints``
            when omitted, sharing one HTTP client that is closed when the
            run ends.

    Returns:
        One report per path, in input order.
    """
    if aggregator is not None:
        return await _gather_documents(paths, config, aggregator)
    async with create_client() as client:
        aggregator = RegistryAggregator.from_endpoints(config.endpoints, client)
        return await _gather_documents(paths, config, aggregator)


async def _gather_documents(
    paths: Iterable[Path], config: RunConfig, aggregator: RegistryAggregator
) -> list[DocumentReport]:
    tasks = [process_document(Path(p), config, aggregator) for p in paths]
    return list(await asyncio.gather(*tasks))
