"""Scheduling error taxonomy.

Raised by the engine before any mutation (validation, authorization) or by
the atomic check-and-write (conflicts). None of them leaves partial state.
"""


class SchedulingError(Exception):
    """Base class for scheduling failures scoped to one request."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(SchedulingError):
    """Malformed, missing or out-of-range input."""
    pass


class NotFoundError(SchedulingError):
    """Unknown appointment or conversation, or not a mutable target."""
    pass


class ForbiddenError(SchedulingError):
    """Caller may not act on the target."""
    pass


class ConflictError(SchedulingError):
    """Interval overlaps a scheduled appointment for the same doctor."""
    pass
