"""
Vector index errors.
All core failures are raised to the immediate caller; nothing here is logged and swallowed.
"""

from typing import Optional


class VectorIndexError(Exception):
    """Base exception for vector index operations."""
    pass


class DimensionMismatch(VectorIndexError, ValueError):
    """A vector's length disagrees with the index's established dimensionality."""

    def __init__(self, expected: int, actual: int, context: str = "vector"):
        self.expected = expected
        self.actual = actual
        self.context = context
        super().__init__(
            f"{context} dimension {actual} does not match expected dimension {expected}"
        )


class LoadError(VectorIndexError):
    """Persisted vector file is malformed or incomplete."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)
