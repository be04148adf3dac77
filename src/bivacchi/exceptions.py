"""Bivacchi exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class BivacchiError(Exception):
    """Base exception for all bivacchi errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise BivacchiError(
        ...     what="Operation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts."""
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(BivacchiError):
    """Raised for invalid configuration values.

    Example:
        >>> raise ConfigurationError(
        ...     what="Invalid coordinates",
        ...     cause="Latitude 95.0 is outside [-90, 90]",
        ...     fix="Provide a valid WGS84 latitude",
        ... )
    """


class ProviderError(BivacchiError):
    """Raised when an external data source cannot serve a systemic request.

    Per-record enrichment failures never raise; they are reported as
    ``Outcome`` failures. This exception is reserved for failures that
    leave the caller with nothing to work on, such as the initial shelter
    ingestion query.

    Example:
        >>> raise ProviderError(
        ...     what="Shelter query failed",
        ...     cause="HTTP 504 from Overpass",
        ...     fix="The server is overloaded, retry in a few minutes",
        ... )
    """


class DatasetError(BivacchiError):
    """Raised for dataset ownership and format errors.

    Example:
        >>> raise DatasetError(
        ...     what="Dataset writer already claimed",
        ...     cause="Only one component may mutate the dataset",
        ...     fix="Route updates through the orchestrator",
        ... )
    """


class OfflineError(BivacchiError):
    """Raised when the offline cache layer can serve neither network nor cache."""
