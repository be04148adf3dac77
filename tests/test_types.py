"""Tests for the Outcome result type and failure reasons."""

from __future__ import annotations

import pytest

from bivacchi._types import FailureReason, Outcome


@pytest.mark.unit
class TestOutcome:
    """Tests for Outcome construction and inspection."""

    def test_success(self) -> None:
        outcome = Outcome.success(2210.0)
        assert outcome.ok
        assert outcome.value == 2210.0
        assert outcome.failure is None

    def test_success_with_falsy_value_is_ok(self) -> None:
        """Zero elevations and empty patches are still successes."""
        assert Outcome.success(0).ok
        assert Outcome.success({}).ok

    def test_fail(self) -> None:
        outcome: Outcome[float] = Outcome.fail(FailureReason.RATE_LIMITED, "HTTP 429")
        assert not outcome.ok
        assert outcome.value is None
        assert outcome.failure is FailureReason.RATE_LIMITED
        assert outcome.detail == "HTTP 429"

    def test_frozen(self) -> None:
        outcome = Outcome.success(1)
        with pytest.raises(AttributeError):
            outcome.value = 2  # type: ignore[misc]

    def test_repr(self) -> None:
        assert repr(Outcome.success(12)) == "Outcome.success(12)"
        assert repr(Outcome.fail(FailureReason.TIMEOUT)) == "Outcome.fail(timeout)"
        assert (
            repr(Outcome.fail(FailureReason.HTTP_ERROR, "HTTP 500"))
            == "Outcome.fail(http_error, 'HTTP 500')"
        )


@pytest.mark.unit
class TestFailureReason:
    """Tests for FailureReason classification."""

    @pytest.mark.parametrize(
        "reason",
        [FailureReason.RATE_LIMITED, FailureReason.TIMEOUT, FailureReason.NETWORK_ERROR],
    )
    def test_transient(self, reason: FailureReason) -> None:
        assert reason.transient

    @pytest.mark.parametrize(
        "reason",
        [
            FailureReason.HTTP_ERROR,
            FailureReason.MALFORMED_RESPONSE,
            FailureReason.NO_COORDINATES,
            FailureReason.INCOMPLETE_SAMPLES,
            FailureReason.COMPUTATION_ERROR,
        ],
    )
    def test_not_transient(self, reason: FailureReason) -> None:
        assert not reason.transient

    def test_string_values(self) -> None:
        assert FailureReason("no_coordinates") is FailureReason.NO_COORDINATES
