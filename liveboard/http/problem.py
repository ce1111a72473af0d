"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and the handler callables registered by
``create_app`` so every error leaves the service as
application/problem+json.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from liveboard.http.error_mapping import lookup
from liveboard.logic.errors import LiveboardError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(status: int, title: str, detail: str | None = None, **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"title": title, "status": status}
    if detail:
        body["detail"] = detail
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(body, status_code=status, media_type=PROBLEM_MEDIA_TYPE)


async def handle_domain_error(request: Request, exc: LiveboardError) -> JSONResponse:  # noqa: D401
    entry = lookup(exc)
    if entry["status"] >= 500:
        logger.error("domain_error code=%s path=%s", entry["code"], request.url.path, exc_info=exc)
    else:
        logger.info("domain_error code=%s path=%s detail=%s", entry["code"], request.url.path, exc.message)
    context = {k: v for k, v in exc.context.items() if isinstance(v, (str, int, float, bool))}
    return problem_response(
        entry["status"],
        entry["title"],
        exc.message,
        code=entry["code"],
        **({"context": context} if context else {}),
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {"title": "Error", "status": status, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(detail, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers or None)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    return JSONResponse(
        {
            "title": "Invalid Request",
            "status": 422,
            "detail": "Request validation failed",
            "errors": [
                {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", "")), "type": str(e.get("type", ""))}
                for e in exc.errors()
            ],
        },
        status_code=422,
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse({"title": "Internal Server Error", "status": 500}, status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_domain_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
