"""
Exceptions raised by the job repository.

Store failures are not wrapped: SQLAlchemy's own exceptions reach the
caller unchanged, and ``StoreError`` names their common base.
"""

from sqlalchemy.exc import SQLAlchemyError as StoreError

__all__ = [
    "RepositoryError",
    "NotFoundError",
    "InvalidAggregateError",
    "DecodeError",
    "InvalidTransitionError",
    "StoreError",
]


class RepositoryError(Exception):
    """Base class for errors originating in this package."""
    pass


class NotFoundError(RepositoryError, LookupError):
    """A lookup matched zero rows."""
    pass


class InvalidAggregateError(RepositoryError, ValueError):
    """Grouping key is not one of the allowed aggregate columns."""

    def __init__(self, aggregate):
        self.aggregate = aggregate
        super().__init__(f"invalid aggregate: {aggregate!r}")


class DecodeError(RepositoryError, ValueError):
    """A stored row could not be decoded into a job."""
    pass


class InvalidTransitionError(RepositoryError, ValueError):
    """Requested state change is not a legal job state transition."""
    pass
