"""Selection of assembly references eligible for conversion.

A declaration qualifies when it is a ``<Reference>`` item and either
references without a hint path are allowed or its ``HintPath`` metadata
points at a ``.dll``. An optional regular expression further restricts
the set by the reference's evaluated include.
"""

from __future__ import annotations

import re

from refswap.project.document import Declaration, ProjectDocument

FILE_REFERENCE_TYPE: str = "Reference"
PACKAGE_REFERENCE_TYPE: str = "PackageReference"

HINT_PATH_METADATA: str = "HintPath"
LIBRARY_EXTENSIONS: tuple[str, ...] = (".dll",)


def has_library_hint_path(declaration: Declaration) -> bool:
    """True if the declaration has a ``HintPath`` ending in a library extension."""
    return any(
        name == HINT_PATH_METADATA and value.endswith(LIBRARY_EXTENSIONS)
        for name, value in declaration.direct_metadata.items()
    )


def is_eligible(
    declaration: Declaration,
    include_without_hint_path: bool = False,
    name_pattern: re.Pattern[str] | str | None = None,
) -> bool:
    """Check a single declaration against the matching rules."""
    if declaration.item_type != FILE_REFERENCE_TYPE:
        return False
    if not include_without_hint_path and not has_library_hint_path(declaration):
        return False
    if name_pattern is not None:
        return re.search(name_pattern, declaration.evaluated_include) is not None
    return True


def select_eligible(
    document: ProjectDocument,
    include_without_hint_path: bool = False,
    name_pattern: re.Pattern[str] | str | None = None,
) -> list[Declaration]:
    """Return the document's convertible references in document order.

    Args:
        document: The loaded project.
        include_without_hint_path: Also accept references with no ``.dll``
            hint path (e.g. framework assemblies).
        name_pattern: Regular expression the evaluated include must match.

    Returns:
        Eligible declarations, preserving the project's item order.
    """
    return [
        item for item in document.items
        if is_eligible(item, include_without_hint_path, name_pattern)
    ]


def derive_package_name(declaration: Declaration) -> str:
    """Derive the candidate package id from an assembly reference.

    ``"Newtonsoft.Json, Version=12.0.0.0, Culture=neutral"`` becomes
    ``"Newtonsoft.Json"``; an include without a comma is returned as is.
    """
    include = declaration.evaluated_include
    if "," not in include:
        return include
    return include.split(",", 1)[0]
