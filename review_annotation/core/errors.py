"""
Error taxonomy of the review engine.

Geometry errors are recovered where they happen; store errors propagate
to the caller of the action that triggered them.
"""

from typing import Optional


class ReviewError(Exception):
    """Base class for every error raised by the engine."""


class InvalidGeometry(ReviewError, ValueError):
    """A degenerate shape (dead click, zero area or zero length)."""


class Malformed(ReviewError, ValueError):
    """An annotation payload, or one item of it, could not be decoded."""


class StoreError(ReviewError):
    """A comment store write did not go through."""

    def __init__(self, message: str, op_id: Optional[str] = None):
        super().__init__(message)
        self.op_id = op_id


class Unavailable(StoreError):
    """The real-time store cannot be reached; the caller may retry."""


class NotFound(StoreError, LookupError):
    """The comment targeted by a mutation does not exist."""
