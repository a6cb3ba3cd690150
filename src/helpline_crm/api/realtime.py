"""Real-Time Dashboard WebSocket.

Pushes call and agent events to every open dashboard:
- call_initiated: an agent placed an outbound call
- call_status_update: Twilio reported call progress
- agent_status_change: an agent went online, busy, away or offline

Usage:
    ws://host/ws

Messages are JSON objects ``{"event", "data", "timestamp"}``.
Dashboards may announce themselves with ``{"event": "agent_online",
"data": {"agentId": ...}}`` (or ``agent_busy``); the change is relayed
to every other dashboard. A plain-text ``ping`` is answered with ``pong``.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from helpline_crm.core.logging import get_logger

log = get_logger(__name__)

router = APIRouter()


# Client events relayed to the other dashboards as agent_status_change
CLIENT_AGENT_EVENTS = {
    "agent_online": "online",
    "agent_busy": "busy",
}


# ============================================================================
# Connection Manager
# ============================================================================

class ConnectionManager:
    """Tracks open dashboard sockets and fans events out to them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self._connections.add(websocket)
        log.info("Dashboard connected", total=len(self._connections))

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        self._connections.discard(websocket)
        log.info("Dashboard disconnected", remaining=len(self._connections))

    async def broadcast(
        self,
        event: str,
        data: dict[str, Any],
        *,
        exclude: WebSocket | None = None,
    ) -> None:
        """Send an event to every connection, dropping dead sockets."""
        message = make_message(event, data)

        disconnected = []
        for websocket in list(self._connections):
            if websocket is exclude:
                continue
            try:
                await websocket.send_json(message)
            except Exception:
                disconnected.append(websocket)

        for ws in disconnected:
            self._connections.discard(ws)

    @property
    def connection_count(self) -> int:
        """Number of open dashboard connections."""
        return len(self._connections)


manager = ConnectionManager()


def make_message(event: str, data: dict[str, Any]) -> dict[str, Any]:
    """Wrap an event payload in the dashboard message envelope."""
    return {
        "event": event,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def broadcast_event(event: str, data: dict[str, Any]) -> None:
    """Broadcast an event to all connected dashboards."""
    await manager.broadcast(event, data)


# ============================================================================
# WebSocket Endpoint
# ============================================================================

@router.websocket("/ws")
async def dashboard_socket(websocket: WebSocket):
    """Dashboard event stream."""
    client_id = uuid4().hex[:12]
    await manager.connect(websocket)

    try:
        await websocket.send_json(make_message("connected", {"clientId": client_id}))

        while True:
            raw = await websocket.receive_text()

            if raw == "ping":
                await websocket.send_text("pong")
                continue

            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                log.debug("Ignoring non-JSON dashboard message", client_id=client_id)
                continue

            if not isinstance(message, dict):
                continue

            event = message.get("event")
            data = message.get("data") or {}
            if not isinstance(event, str) or not isinstance(data, dict):
                continue

            status = CLIENT_AGENT_EVENTS.get(event)
            if status is None:
                continue

            await manager.broadcast(
                "agent_status_change",
                {"agentId": data.get("agentId"), "status": status},
                exclude=websocket,
            )

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
