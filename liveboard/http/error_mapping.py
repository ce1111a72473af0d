"""Central error mapping for domain exceptions.

Single source of truth mapping each ``LiveboardError`` subclass to its
problem+json code, title and HTTP status. Handlers and routes import from
here instead of hardcoding strings or numbers.
"""

from __future__ import annotations

from liveboard.logic.errors import (
    DuplicateSubmission,
    LiveboardError,
    NotFound,
    StaleState,
    StoreConnectionError,
    ValidationError,
)

DOMAIN_ERROR_MAP: dict[type[LiveboardError], dict] = {
    DuplicateSubmission: {"code": "DUPLICATE_SUBMISSION", "title": "Duplicate Submission", "status": 409},
    ValidationError: {"code": "VALIDATION_FAILED", "title": "Validation Failed", "status": 400},
    NotFound: {"code": "NOT_FOUND", "title": "Not Found", "status": 404},
    StaleState: {"code": "STALE_STATE", "title": "Stale State", "status": 409},
    StoreConnectionError: {"code": "STORE_UNAVAILABLE", "title": "Store Unavailable", "status": 503},
}

# Unmapped subclasses fall back to a generic server-side failure
FALLBACK = {"code": "INTERNAL_ERROR", "title": "Internal Server Error", "status": 500}

# If-Match header that cannot be read as a session-state version
INVALID_IF_MATCH = {"code": "PRE_IF_MATCH_INVALID_FORMAT", "title": "Invalid If-Match", "status": 400}


def lookup(exc: LiveboardError) -> dict:
    for cls in type(exc).__mro__:
        entry = DOMAIN_ERROR_MAP.get(cls)  # type: ignore[arg-type]
        if entry is not None:
            return entry
    return FALLBACK


__all__ = ["DOMAIN_ERROR_MAP", "FALLBACK", "INVALID_IF_MATCH", "lookup"]
