"""
Spark - Domain error taxonomy.

Services raise these; the API layer renders them through a single exception
handler so routes never translate errors by hand.
"""

from __future__ import annotations


class SparkError(Exception):
    """Base class for every failure surfaced to a caller."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(SparkError):
    """Raised for malformed input: bad email, blank message, self-swipe."""

    status_code = 422
    code = "validation_error"


class NotFoundError(SparkError):
    """Raised when a profile, challenge or match does not exist."""

    status_code = 404
    code = "not_found"


class ExpiredError(SparkError):
    """Raised when a one-time code has timed out or was superseded."""

    status_code = 410
    code = "expired"


class AlreadyConsumedError(ExpiredError):
    """Raised when a one-time code is replayed after a successful verify."""

    code = "already_consumed"


class MismatchError(SparkError):
    """Raised when a submitted code does not match the pending challenge."""

    status_code = 401
    code = "code_mismatch"


class ForbiddenError(SparkError):
    """Raised when a sender is not a participant of the match."""

    status_code = 403
    code = "forbidden"


class ConflictError(SparkError):
    """Raised when a critical section could not be entered or a concurrent
    writer won a uniqueness race.  Nothing was written; the caller may retry."""

    status_code = 409
    code = "conflict"
