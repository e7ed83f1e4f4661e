"""Error kinds raised by the mood core.

Every store, aggregation and privacy operation reports failure through this
hierarchy.  The HTTP layer turns ``status_code`` into a response; the CLI
prints ``message`` and exits non-zero.
"""

from __future__ import annotations


class MoodError(Exception):
    """Base class for all caller-visible errors."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = message or (self.__class__.__doc__ or "").strip()


class ValidationError(MoodError):
    """Metric or request input is out of range or malformed."""

    status_code = 400


class InvalidPeriod(ValidationError):
    """Trend period must be daily, weekly or monthly."""


class NoSubjectDetected(MoodError):
    """No face was detected in the frame."""

    status_code = 422


class NotFoundError(MoodError):
    """Requested resource does not exist."""

    status_code = 404


class UserNotFound(NotFoundError):
    """User not found."""


class EntryNotFound(NotFoundError):
    """Mood entry not found."""


class ConflictError(MoodError):
    """Resource already exists."""

    status_code = 409


class FatalConsistencyError(MoodError):
    """Multi-step operation failed part-way; operator attention required."""

    status_code = 500
