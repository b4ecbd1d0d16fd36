"""refswap exception hierarchy.

All public exceptions inherit from RefswapError, giving callers a single
base class to catch when they want to handle any refswap-specific failure
without swallowing unrelated errors.
"""


class RefswapError(Exception):
    """Base exception for all refswap errors."""


class ConfigurationError(RefswapError):
    """Raised when registry settings cannot be loaded.

    Covers malformed NuGet.Config files and explicitly requested config
    files that do not exist. Fatal for the whole run.
    """


class ProjectLoadError(RefswapError):
    """Raised when a project document cannot be read or parsed.

    Covers missing paths, unreadable files and malformed XML. Fatal only
    for the document being processed.
    """


class RegistryError(RefswapError):
    """Raised when a package registry cannot be queried.

    Covers unreachable feeds, missing service resources and malformed
    responses. The registry aggregator absorbs it and moves on to the
    next configured registry.
    """
