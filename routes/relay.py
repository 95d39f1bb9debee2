"""
WebSocket endpoint for the controller/display relay
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter(tags=["Relay"])
logger = logging.getLogger(__name__)


def _frame_text(message: dict) -> Optional[str]:
    """Text of a received frame; binary frames are read as UTF-8. None when unreadable."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        logger.error(f"Ignoring binary WebSocket frame that is not UTF-8 ({len(data)} bytes)")
        return None


@router.websocket("/ws")
async def relay_endpoint(ws: WebSocket):
    hub = ws.app.state.relay_hub
    await hub.connect(ws)
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket connection closed")
                break

            raw = _frame_text(message)
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.error(f"Error parsing WebSocket message: {raw[:100]!r}")
                continue
            await hub.handle(ws, data)
    except WebSocketDisconnect:
        logger.info("WebSocket connection closed")
    finally:
        hub.disconnect(ws)
