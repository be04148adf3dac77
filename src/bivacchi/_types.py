"""Internal shared types for cross-boundary data contracts.

These types define the shapes passed between providers, estimators and
the orchestrator. They are internal (prefixed ``_``); ``Outcome`` and
``FailureReason`` are re-exported from ``bivacchi`` for callers that
inspect pass reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

Record = dict[str, Any]
"""One point of interest as stored upstream (``id``, ``type``, position, ``tags``)."""

TagPatch = dict[str, Any]
"""Derived tags to merge into a record's ``tags`` mapping."""

EpochMillis = int
"""Wall-clock timestamp in milliseconds since the Unix epoch."""


class FailureReason(str, Enum):
    """Tagged reason for a failed lookup or estimate."""

    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    MALFORMED_RESPONSE = "malformed_response"
    NO_COORDINATES = "no_coordinates"
    INCOMPLETE_SAMPLES = "incomplete_samples"
    COMPUTATION_ERROR = "computation_error"

    @property
    def transient(self) -> bool:
        """Whether retrying later can reasonably succeed."""
        return self in _TRANSIENT


_TRANSIENT = frozenset(
    {FailureReason.RATE_LIMITED, FailureReason.TIMEOUT, FailureReason.NETWORK_ERROR}
)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or a tagged failure.

    Args:
        value: Result value when the operation succeeded.
        failure: Failure reason, ``None`` on success.
        detail: Free-form context for logs (status code, exception text).

    Example:
        >>> Outcome.success(1234.0).ok
        True
        >>> Outcome.fail(FailureReason.RATE_LIMITED, "HTTP 429").failure
        <FailureReason.RATE_LIMITED: 'rate_limited'>
    """

    value: T | None = None
    failure: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: T) -> Outcome[T]:
        return cls(value=value)

    @classmethod
    def fail(cls, reason: FailureReason, detail: str = "") -> Outcome[T]:
        return cls(failure=reason, detail=detail)

    def __repr__(self) -> str:
        if self.ok:
            return f"Outcome.success({self.value!r})"
        suffix = f", {self.detail!r}" if self.detail else ""
        return f"Outcome.fail({self.failure.value}{suffix})"  # type: ignore[union-attr]
