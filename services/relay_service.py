"""
Two-screen relay for SketchCraft installations

Controller screens (where the visitor draws) send navigation and action
messages; every registered display screen receives a mirrored copy.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

CONTROLLER = "controller"
DISPLAY = "display"


class RelayHub:
    """Connection registry for one process; the only state shared across requests."""

    def __init__(self):
        self.controllers: List[WebSocket] = []
        self.displays: List[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        logger.info("New WebSocket connection established")
        await ws.send_json({
            "type": "connection_established",
            "message": "WebSocket connection successful",
        })

    def register(self, ws: WebSocket, role: str):
        audience = self.controllers if role == CONTROLLER else self.displays
        if ws not in audience:
            audience.append(ws)
        logger.info(f"{role.capitalize()} registered. Total {role}s: {len(audience)}")

    def disconnect(self, ws: WebSocket):
        if ws in self.controllers:
            self.controllers.remove(ws)
            logger.info(f"Controller disconnected. Remaining controllers: {len(self.controllers)}")
        if ws in self.displays:
            self.displays.remove(ws)
            logger.info(f"Display disconnected. Remaining displays: {len(self.displays)}")

    async def broadcast_to_displays(self, message: Dict[str, Any]) -> int:
        """Send to every display; displays that fail to receive are dropped. Returns the delivery count."""
        delivered = 0
        for ws in list(self.displays):
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping display after failed send: {e}")
                self.displays.remove(ws)
        return delivered

    def route(self, data: Any) -> Optional[Dict[str, Any]]:
        """Map an inbound controller message to the message mirrored on displays, if any."""
        if not isinstance(data, dict):
            return None
        message_type = data.get("type")
        payload = data.get("payload") or {}
        if message_type == "controller_action":
            return {"type": "sync_action", "action": data.get("action"), "payload": payload}
        if message_type == "page_change":
            return {"type": "sync_page_change", "page": data.get("page"), "payload": payload}
        if message_type == "app_start":
            return {"type": "sync_app_start", "payload": payload}
        return None

    async def handle(self, ws: WebSocket, data: Any):
        message_type = data.get("type") if isinstance(data, dict) else None
        if message_type == "register_controller":
            self.register(ws, CONTROLLER)
            return
        if message_type == "register_display":
            self.register(ws, DISPLAY)
            return

        outbound = self.route(data)
        if outbound is None:
            logger.info(f"Unknown message type: {message_type!r}")
            return
        logger.debug(f"Broadcasting {outbound['type']} to {len(self.displays)} displays")
        await self.broadcast_to_displays(outbound)
