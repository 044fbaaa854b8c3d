"""
Error taxonomy shared by the engine, the use cases and the API layer.
"""


class OffshoreError(Exception):
    """Base class for all project errors"""


class FetchError(OffshoreError):
    """The record query gateway could not retrieve records."""

    def __init__(self, message: str, *, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class InvariantViolation(OffshoreError, AssertionError):
    """Programmer error: a query or state transition broke a core invariant."""


class ValidationError(OffshoreError, ValueError):
    """Input rejected by a mutation use case."""


class NotFoundError(OffshoreError, LookupError):
    """Referenced record does not exist."""
