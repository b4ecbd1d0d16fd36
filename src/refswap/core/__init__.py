"""Reference matching and conversion engine.

Public API::

    from refswap.core import convert_projects, select_eligible, derive_package_name
"""

from __future__ import annotations

from refswap.core.converter import convert_projects, convert_reference, process_document
from refswap.core.matcher import derive_package_name, is_eligible, select_eligible
from refswap.core.models import ConversionOutcome, DocumentReport, OutcomeStatus

__all__ = [
    "ConversionOutcome",
    "DocumentReport",
    "OutcomeStatus",
    "convert_projects",
    "convert_reference",
    "derive_package_name",
    "is_eligible",
    "process_document",
    "select_eligible",
]
