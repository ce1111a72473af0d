from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from liveboard.config import AppConfig, load_config
from liveboard.db.base import get_engine
from liveboard.db.migrations_runner import apply_migrations
from liveboard.http.problem import (
    handle_domain_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from liveboard.http.request_id import RequestIdMiddleware
from liveboard.logging_setup import configure_logging
from liveboard.logic.errors import LiveboardError
from liveboard.middleware.cors import apply_cors
from liveboard.routes import api_router
from liveboard.sync.hub import SyncHub

logger = logging.getLogger(__name__)


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        try:
            with get_engine().connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def _schema_ready() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT version FROM session_state LIMIT 1"))
            conn.execute(sql_text("SELECT id FROM response LIMIT 1"))
            conn.execute(sql_text("SELECT id FROM case_config LIMIT 1"))
        return True
    except SQLAlchemyError:
        return False


def create_app(config: AppConfig | None = None) -> FastAPI:
    configure_logging()
    config = config or load_config()
    app = FastAPI(title="Live Discussion Board")
    app.state.config = config
    app.state.hub = SyncHub()

    app.add_exception_handler(LiveboardError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(RequestIdMiddleware)
    apply_cors(app, config.http.cors_origins)

    # Migrations run at startup, never at import
    @app.on_event("startup")
    def _apply_migrations() -> None:  # pragma: no cover - exercised via deployment
        engine = get_engine()
        if config.database.auto_apply_migrations:
            applied = apply_migrations(engine)
            logger.info("startup_migrations_applied files=%s", applied)
            return
        if _schema_ready():
            logger.info("DB schema appears ready; skipping migrations at startup")
            return
        logger.info("DB schema missing; applying migrations regardless of AUTO_APPLY_MIGRATIONS")
        apply_migrations(engine)

    @app.on_event("shutdown")
    def _close_sync_hub() -> None:
        app.state.hub.close()

    # Routers
    app.include_router(api_router, prefix="/api/v1")
    # Test-support router (no prefix) exposes '/__test__/*'
    from liveboard.routes.test_support import router as test_support_router

    app.include_router(test_support_router)

    health_check = _health_check()

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return health_check()

    return app


# No module-level app instance; servers call create_app().
