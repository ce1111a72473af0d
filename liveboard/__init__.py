"""FastAPI application package for the classroom live discussion board.

Exposes the application factory. Business logic lives in
`liveboard/logic/`, the client-side sync protocol in `liveboard/sync/` and
route handlers in `liveboard/routes/`.
"""

from __future__ import annotations

from liveboard.main import create_app

__all__ = ["create_app"]
