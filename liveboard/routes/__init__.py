"""APIRouter registration for the live discussion board."""

from __future__ import annotations

from fastapi import APIRouter

from liveboard.routes.cases import router as cases_router
from liveboard.routes.realtime import router as realtime_router
from liveboard.routes.responses import router as responses_router
from liveboard.routes.sessions import router as sessions_router

api_router = APIRouter()
api_router.include_router(responses_router, tags=["Responses"])
api_router.include_router(cases_router, tags=["Cases"])
api_router.include_router(sessions_router, tags=["Sessions", "Board"])
api_router.include_router(realtime_router, tags=["Realtime"])

__all__ = ["api_router"]
