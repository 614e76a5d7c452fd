from __future__ import annotations

from enum import Enum


class InvalidInputError(ValueError):
    """A required SI field is missing, non-finite or physically out of range."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.reason = message


class FailureKind(str, Enum):
    INVALID_INPUT = "invalid input"
    BRACKET_EXHAUSTED = "target time out of bracket"
    BOUNDARY_HIT = "hit bracket bound (no interior root)"
    RESIDUAL_REJECTED = "result rejected by residual check"
    NON_CONVERGENT = "bisection did not converge"
    NON_FINITE_RESULT = "non-finite forward time"

    @property
    def reason(self) -> str:
        return self.value


class SolverError(RuntimeError):
    """Raised by `SolverFailure.raise_for_status` for exception-style callers."""

    def __init__(self, failure):
        super().__init__(f"{failure.kind.reason}: {failure.message}")
        self.failure = failure
        self.kind = failure.kind
        self.diagnostic = failure.diagnostic
