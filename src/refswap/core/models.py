"""Result models for assembly-to-package conversion.

Pure data holders with no business logic, safe to import from both the
core engine and the CLI output helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutcomeStatus(Enum):
    """What happened to one assembly reference."""

    CONVERTED = "converted"
    SKIPPED_NO_PACKAGE = "no-package"
    SKIPPED_NO_VERSIONS = "no-versions"
    SKIPPED_REGISTRY_ERROR = "registry-error"


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of converting a single assembly reference.

    Attributes:
        reference: Evaluated include of the original ``<Reference>``.
        package_name: Candidate package id derived from the reference.
        status: Whether the reference was converted or why it was skipped.
        package_id: Exact id of the package that replaced it.
        version: Version written to the new ``<PackageReference>``.
        registry_name: Registry the package was found in.
    """

    reference: str
    package_name: str
    status: OutcomeStatus
    package_id: str = ""
    version: str = ""
    registry_name: str = ""

    @property
    def converted(self) -> bool:
        return self.status is OutcomeStatus.CONVERTED


@dataclass
class DocumentReport:
    """Summary of processing one project document.

    Attributes:
        path: Project file path.
        outcomes: One outcome per eligible reference, in document order.
        error: Load or save failure message, if the document failed.
        saved: Whether the document was written back to disk.
    """

    path: Path
    outcomes: list[ConversionOutcome] = field(default_factory=list)
    error: str | None = None
    saved: bool = False

    @property
    def converted(self) -> list[ConversionOutcome]:
        return [o for o in self.outcomes if o.converted]

    @property
    def skipped(self) -> list[ConversionOutcome]:
        return [o for o in self.outcomes if not o.converted]

    @property
    def failed(self) -> bool:
        return self.error is not None
