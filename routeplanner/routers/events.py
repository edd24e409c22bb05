from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..deps.planner import planner_from

router = APIRouter(prefix="/api/v1", tags=["events"])
logger = logging.getLogger(__name__)


@router.websocket("/events")
async def stream_events(websocket: WebSocket):
    planner = planner_from(websocket)
    api_key = planner.settings.API_KEY
    provided = (websocket.headers.get("X-API-Key") or websocket.query_params.get("api_key") or "").strip()
    if api_key and not (provided and hmac.compare_digest(api_key, provided)):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    queue = planner.events.subscribe()
    try:
        await websocket.accept()
        while True:
            event = await queue.get()
            await websocket.send_json(event.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.debug("Event stream client disconnected")
    finally:
        planner.events.unsubscribe(queue)
