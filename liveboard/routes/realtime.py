"""WebSocket fan-out of change events for one (case, session) scope.

On connect the server sends a ``snapshot`` message (state and responses)
and then every change event applied to the scope, in apply order, as
``{"type": "change", ...}``. A client that falls too far behind is closed
with code 1013 and is expected to reconnect, which re-bootstraps it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from liveboard.logic.errors import LiveboardError
from liveboard.logic.repository_cases import require_session
from liveboard.models.events import ChangeEvent
from liveboard.models.response import ResponseRecord
from liveboard.models.session_state import SessionState

router = APIRouter()
logger = logging.getLogger(__name__)

CLOSE_UNKNOWN_SCOPE = 4404
CLOSE_TRY_AGAIN = 1013


def snapshot_message(
    state: Optional[SessionState],
    responses: list[ResponseRecord],
    connected: bool,
) -> dict:
    return {
        "type": "snapshot",
        "connected": connected,
        "state": state.model_dump() if state is not None else None,
        "responses": [r.model_dump() for r in responses],
    }


@router.websocket("/realtime/{case_id}/{session_id}")
async def realtime(websocket: WebSocket, case_id: str, session_id: str) -> None:
    try:
        _, sid = await run_in_threadpool(require_session, case_id, session_id)
    except LiveboardError as exc:
        logger.info("ws_rejected case_id=%s session_id=%s reason=%s", case_id, session_id, exc.message)
        await websocket.close(code=CLOSE_UNKNOWN_SCOPE)
        return

    await websocket.accept()
    hub = websocket.app.state.hub
    queue_max = websocket.app.state.config.realtime.ws_queue_max
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Optional[ChangeEvent]] = asyncio.Queue(maxsize=queue_max)

    def offer(event: Optional[ChangeEvent]) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("ws_queue_overflow case_id=%s session_id=%s", case_id, sid)
            # Unblock the pump so it closes the socket
            while not queue.empty():
                queue.get_nowait()
            queue.put_nowait(None)

    def forward(event: ChangeEvent) -> None:
        loop.call_soon_threadsafe(offer, event)

    scope = await run_in_threadpool(hub.acquire, case_id, sid)
    logger.info("ws_connected case_id=%s session_id=%s", case_id, sid)
    try:
        state, responses = await run_in_threadpool(scope.add_listener, forward)
        await websocket.send_json(snapshot_message(state, responses, scope.connected))

        async with anyio.create_task_group() as tg:

            async def pump() -> None:
                while True:
                    event = await queue.get()
                    if event is None:
                        await websocket.close(code=CLOSE_TRY_AGAIN)
                        break
                    await websocket.send_json(event.to_wire())
                tg.cancel_scope.cancel()

            async def drain() -> None:
                try:
                    while True:
                        await websocket.receive_text()
                except WebSocketDisconnect:
                    pass
                tg.cancel_scope.cancel()

            tg.start_soon(pump)
            tg.start_soon(drain)
    finally:
        # Scope locks may be held by a worker resyncing; never block the loop on them
        with anyio.CancelScope(shield=True):
            await run_in_threadpool(scope.remove_listener, forward)
            await run_in_threadpool(hub.release, scope)
        logger.info("ws_disconnected case_id=%s session_id=%s", case_id, sid)


__all__ = ["router", "snapshot_message"]
