"""refswap: Convert MSBuild assembly references into NuGet package references."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
