"""
WebSocket endpoint for live alarm notifications.

WS /ws/alarms  — snapshot of current alarms on connect, then every notification
ConnectionManager doubles as a Notifier subscriber
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger("alarmwatch.websocket")

router = APIRouter()


# ---------------------------------------------------------------------------
# Connection Manager
# ---------------------------------------------------------------------------

class ConnectionManager:
    """Manages active WebSocket connections and broadcasts messages."""

    name = "websocket"

    def __init__(self) -> None:
        self.connections: list[WebSocket] = []

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.connections.append(ws)
        logger.info("WS client connected (%d total)", len(self.connections))

    def disconnect(self, ws: WebSocket) -> None:
        if ws in self.connections:
            self.connections.remove(ws)
        logger.info("WS client disconnected (%d remaining)", len(self.connections))

    async def broadcast(self, message: str) -> None:
        dead: list[WebSocket] = []
        for ws in list(self.connections):
            try:
                await ws.send_text(message)
            except Exception:
                dead.append(ws)
        for ws in dead:
            if ws in self.connections:
                self.connections.remove(ws)
        if dead:
            logger.debug("Removed %d dead WS connections", len(dead))

    async def send(self, payload: dict) -> None:
        await self.broadcast(json.dumps(payload, default=str))


manager = ConnectionManager()


# ---------------------------------------------------------------------------
# WebSocket Endpoint
# ---------------------------------------------------------------------------

@router.websocket("/ws/alarms")
async def ws_alarms(websocket: WebSocket) -> None:
    await manager.connect(websocket)
    try:
        service = websocket.app.state.alarm_service
        alarms = await service.get_alarms()
        await websocket.send_json({"type": "snapshot", "data": [asdict(a) for a in alarms]})

        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as exc:
        logger.debug("WS error: %s", exc)
        manager.disconnect(websocket)
