"""MSBuild project documents: loading, item editing and discovery.

Public API::

    from refswap.project import Declaration, ProjectDocument, find_project_paths
"""

from __future__ import annotations

from refswap.project.discovery import find_project_paths
from refswap.project.document import Declaration, ProjectDocument

__all__ = [
    "Declaration",
    "ProjectDocument",
    "find_project_paths",
]
