"""
Real-time project rooms over WebSocket.

Clients connect to ``/ws`` and send JSON messages with a ``type``:
``join_project`` puts the socket in a project's room, ``leave_project``
takes it out, and anything else is relayed to the other members of the
sender's room. REST mutations are pushed to rooms as ``*_updated`` events.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from planhaus.utils.logger import get_logger

logger = get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])

# Resource URL segment -> (event type, payload key)
UPDATE_EVENTS = {
    'tasks': ('task_updated', 'task'),
    'guests': ('guest_updated', 'guest'),
    'budget': ('budget_updated', 'budgetItem'),
    'vendors': ('vendor_updated', 'vendor'),
    'projects': ('project_updated', 'project'),
}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConnectionHub:
    def __init__(self):
        self.rooms: Dict[str, Dict[WebSocket, Any]] = {}

    def join(self, websocket: WebSocket, project_id: str, user_id: Any = None):
        self.leave(websocket)
        self.rooms.setdefault(str(project_id), {})[websocket] = user_id
        logger.info(f"WebSocket joined project: {project_id}")

    def leave(self, websocket: WebSocket) -> Optional[str]:
        """Remove the socket from its room; returns the room it was in."""
        for project_id, members in list(self.rooms.items()):
            if websocket in members:
                del members[websocket]
                if not members:
                    del self.rooms[project_id]
                logger.info(f"WebSocket left project: {project_id}")
                return project_id
        return None

    def room_of(self, websocket: WebSocket) -> Optional[str]:
        for project_id, members in self.rooms.items():
            if websocket in members:
                return project_id
        return None

    def user_of(self, websocket: WebSocket) -> Any:
        project_id = self.room_of(websocket)
        return self.rooms[project_id][websocket] if project_id else None

    def connection_count(self, project_id: str) -> int:
        return len(self.rooms.get(str(project_id), {}))

    async def broadcast(self, project_id: str, message: dict, exclude: Optional[WebSocket] = None) -> int:
        """Send ``message`` to every socket in the room except ``exclude``."""
        sent = 0
        for websocket in list(self.rooms.get(str(project_id), {})):
            if websocket is exclude:
                continue
            try:
                await websocket.send_text(json.dumps(message))
                sent += 1
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.warning(f"Dropping dead WebSocket in project {project_id}: {e}")
                self.leave(websocket)
        return sent

    async def notify_update(self, resource: str, project_id: str, item: dict, action: str, user_id: Any):
        event_type, payload_key = UPDATE_EVENTS[resource]
        await self.broadcast(project_id, {
            "type": event_type,
            payload_key: item,
            "action": action,
            "userId": user_id,
            "timestamp": _timestamp(),
        })

    async def handle_message(self, websocket: WebSocket, message: dict):
        message_type = message.get("type")
        if message_type == "join_project":
            project_id = message.get("projectId")
            if project_id is None:
                await websocket.send_text(json.dumps({"type": "error", "error": "projectId is required"}))
                return
            self.join(websocket, project_id, message.get("userId"))
            await self.broadcast(str(project_id), {
                "type": "user_joined",
                "userId": message.get("userId"),
                "timestamp": _timestamp(),
            }, exclude=websocket)
        elif message_type == "leave_project":
            user_id = self.user_of(websocket)
            project_id = self.leave(websocket)
            if project_id is not None:
                await self.broadcast(project_id, {
                    "type": "user_left",
                    "userId": user_id,
                    "timestamp": _timestamp(),
                })
        else:
            project_id = message.get("projectId") or self.room_of(websocket)
            if project_id is None:
                logger.debug(f"Ignoring {message_type} message from a socket outside any project")
                return
            await self.broadcast(str(project_id), message, exclude=websocket)


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket for real-time updates"""
    hub: ConnectionHub = websocket.app.state.hub
    await websocket.accept()
    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except ValueError:
                logger.error("Error parsing WebSocket message")
                await websocket.send_text(json.dumps({"type": "error", "error": "Invalid JSON"}))
                continue
            if not isinstance(message, dict):
                await websocket.send_text(json.dumps({"type": "error", "error": "Expected a JSON object"}))
                continue
            await hub.handle_message(websocket, message)
    except WebSocketDisconnect:
        hub.leave(websocket)
