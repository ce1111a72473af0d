"""CORS for browser clients of the board API.

Student, board and instructor pages may be served from another origin. They
read ``X-Request-Id`` and the state ``ETag`` they send back as If-Match.
"""

from __future__ import annotations

from typing import Iterable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


EXPOSE_HEADERS: list[str] = ["X-Request-Id", "ETag"]
ALLOW_HEADERS: list[str] = ["Content-Type", "If-Match", "X-Request-Id"]


def apply_cors(app: FastAPI, origins: Iterable[str] = ("*",)) -> None:
    allowed = [o.strip() for o in origins if o and o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed,
        # No credentials with a wildcard origin
        allow_credentials="*" not in allowed,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=ALLOW_HEADERS,
        expose_headers=EXPOSE_HEADERS,
    )


__all__ = ["apply_cors", "EXPOSE_HEADERS", "ALLOW_HEADERS"]
