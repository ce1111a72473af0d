"""Domain error taxonomy.

Services raise these; the HTTP layer maps them to problem+json through
``liveboard.http.error_mapping``. None of them is retried automatically.
"""

from __future__ import annotations

from typing import Any


class LiveboardError(Exception):
    """Base class carrying a human-readable message and optional context."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(LiveboardError, ValueError):
    """A required field is missing or a payload does not fit the step."""


class DuplicateSubmission(LiveboardError):
    """The (case, session, step, student) tuple already has a response."""

    def __init__(self, message: str = "Already submitted for this step", **context: Any) -> None:
        super().__init__(message, **context)


class NotFound(LiveboardError):
    """Unknown case or session id."""


class StaleState(LiveboardError):
    """A session transition lost a compare-and-swap against a newer write."""


class StoreConnectionError(LiveboardError):
    """The backing store could not be reached or answered with a driver error."""


__all__ = [
    "LiveboardError",
    "ValidationError",
    "DuplicateSubmission",
    "NotFound",
    "StaleState",
    "StoreConnectionError",
]
