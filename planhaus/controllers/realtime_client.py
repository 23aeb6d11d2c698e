"""
Reconnecting WebSocket client for project presence and live updates.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import websockets

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)


class RealtimeClient:
    """
    JSON message client for the ``/ws`` endpoint.

    After a dropped connection it reconnects with a linear backoff
    (``reconnect_delay * attempt``) and gives up after ``max_attempts``
    consecutive failures. A successful connection resets the counter and
    re-joins the last joined project.
    """

    def __init__(self, url: str, max_attempts: int = Config.WS_MAX_RECONNECT_ATTEMPTS,
                 reconnect_delay: float = Config.WS_RECONNECT_DELAY_SECONDS,
                 connect: Callable = None, sleep: Callable = None):
        self.url = url
        self.max_attempts = max_attempts
        self.reconnect_delay = reconnect_delay
        self.reconnect_attempts = 0
        self._connect = connect or websockets.connect
        self._sleep = sleep or asyncio.sleep
        self._listeners: Dict[str, List[Callable[[dict], Any]]] = {}
        self._ws = None
        self._closing = False
        self._joined: Optional[Dict[str, Any]] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def on(self, message_type: str, listener: Callable[[dict], Any]):
        self._listeners.setdefault(message_type, []).append(listener)

    def off(self, message_type: str, listener: Callable[[dict], Any]):
        listeners = self._listeners.get(message_type, [])
        if listener in listeners:
            listeners.remove(listener)

    async def run(self):
        """Connect and dispatch messages until disconnected or out of attempts."""
        while not self._closing:
            try:
                async with self._connect(self.url) as ws:
                    self._ws = ws
                    self.reconnect_attempts = 0
                    logger.info(f"WebSocket connected to {self.url}")
                    if self._joined:
                        await ws.send(json.dumps(self._joined))
                    async for raw in ws:
                        self._handle_message(raw)
                logger.warning("WebSocket connection closed")
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as e:
                logger.error(f"WebSocket connection error: {e}")
            finally:
                self._ws = None

            if self._closing:
                break
            if self.reconnect_attempts >= self.max_attempts:
                logger.error("Max reconnection attempts reached")
                break
            self.reconnect_attempts += 1
            logger.info(f"Attempting reconnect {self.reconnect_attempts}/{self.max_attempts}")
            await self._sleep(self.reconnect_delay * self.reconnect_attempts)

    def _handle_message(self, raw):
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Error parsing message: {e}")
            return
        if not isinstance(message, dict):
            return
        for listener in list(self._listeners.get(message.get('type'), [])):
            try:
                listener(message)
            except Exception as e:
                logger.error(f"Listener for {message.get('type')} failed: {e}", exc_info=True)

    async def send(self, message: Dict[str, Any]) -> bool:
        if self._ws is None:
            logger.warning("WebSocket is not connected")
            return False
        await self._ws.send(json.dumps(message))
        return True

    async def join_project(self, user_id: Any, project_id: Any) -> bool:
        self._joined = {'type': 'join_project', 'userId': user_id, 'projectId': project_id}
        return await self.send(self._joined)

    async def leave_project(self) -> bool:
        self._joined = None
        return await self.send({'type': 'leave_project'})

    async def disconnect(self):
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
