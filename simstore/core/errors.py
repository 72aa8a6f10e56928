"""
Error taxonomy for the similarity store.
Empty result sets are never errors; everything here is surfaced to the caller.
"""

from typing import Optional


class SimStoreError(Exception):
    """Base class for every error raised by simstore."""


class InvalidArgumentError(SimStoreError, ValueError):
    """Raised before any work starts when a caller passes a bad argument."""


class DimensionMismatchError(InvalidArgumentError):
    """A vector's length does not match the store dimension."""

    def __init__(self, expected: int, actual: int, context: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        message = f"Vector dimension {actual} does not match expected dimension {expected}"
        if context:
            message = f"{context}: {message}"
        super().__init__(message)


class NotFoundError(SimStoreError, KeyError):
    """No record exists for the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(key)

    def __str__(self):
        return f"Record not found: {self.key}"


class MalformedEncodingError(SimStoreError, ValueError):
    """An encoded vector or record could not be decoded."""
