"""
Application-level exceptions.

- ValidationError: malformed score input; the only error the ranking engine raises.
- StoreUnavailable / StoreQueryFailure: population store problems; absorbed by the
  ranking engine into the fallback estimator, never surfaced to API clients.
"""

from __future__ import annotations


class LovebrainError(Exception):
    """Base class for all lovebrain errors."""


class ValidationError(LovebrainError, ValueError):
    """Score input is missing a dimension or carries a non-numeric value."""

    def __init__(self, message: str, dimension: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.dimension = dimension


class StoreUnavailable(LovebrainError):
    """No usable connection to the population store."""


class StoreQueryFailure(LovebrainError):
    """A population count query raised or timed out."""

    def __init__(self, message: str, dimension: str | None = None) -> None:
        super().__init__(message)
        self.dimension = dimension
