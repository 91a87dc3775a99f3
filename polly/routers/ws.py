"""
WebSocket router: live refresh for poll pages.

A page showing ``/polls/{share_token}`` opens ``/ws/polls/{share_token}`` and
receives ``{"event": "revalidate", "path": ...}`` whenever a vote, edit or
comment changes what it shows.
"""

import logging
from typing import Dict, List

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from polly.services.revalidation import Revalidator, poll_path, revalidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["ws"])

# ==============================================================================
# Connection Manager
# ==============================================================================

class ConnectionManager:
    def __init__(self, source: Revalidator):
        self.source = source
        # Maps a page path to the sockets watching it
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, path: str):
        await websocket.accept()
        if path not in self.active_connections:
            self.active_connections[path] = []
            self.source.subscribe(path, self.notify)
        self.active_connections[path].append(websocket)

    def disconnect(self, websocket: WebSocket, path: str):
        if path in self.active_connections:
            if websocket in self.active_connections[path]:
                self.active_connections[path].remove(websocket)
            if not self.active_connections[path]:
                del self.active_connections[path]
                self.source.unsubscribe(path, self.notify)

    async def broadcast(self, message: dict, path: str):
        for connection in list(self.active_connections.get(path, [])):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                logger.info(f"Dropping closed socket on {path}")
                self.disconnect(connection, path)

    async def notify(self, path: str):
        await self.broadcast({"event": "revalidate", "path": path}, path)


manager = ConnectionManager(revalidator)

# ==============================================================================
# WebSocket Endpoint
# ==============================================================================

@router.websocket("/polls/{share_token}")
async def poll_feed(websocket: WebSocket, share_token: str):
    path = poll_path(share_token)
    await manager.connect(websocket, path)
    try:
        # Keep connection open; clients have nothing to send
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket, path)
