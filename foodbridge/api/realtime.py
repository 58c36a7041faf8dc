"""
WebSocket push channel.

Each authenticated user may hold several open sockets (one per browser tab);
a push goes to all of them. Delivery is best effort: a socket that fails to
send is dropped and the message is simply not seen live.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """In-process registry of live sockets by user id."""

    def __init__(self):
        self._connections: Dict[UUID, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, user_id: UUID, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections[user_id].add(websocket)
        logger.info(f"🔌 User {user_id} connected ({len(self._connections[user_id])} open)")

    async def disconnect(self, user_id: UUID, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._connections.get(user_id)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._connections[user_id]
        logger.info(f"User {user_id} disconnected")

    def is_connected(self, user_id: UUID) -> bool:
        return bool(self._connections.get(user_id))

    async def deliver(self, user_id: UUID, message: Dict[str, Any]) -> bool:
        """Send ``message`` to every socket the user has open."""
        async with self._lock:
            sockets = list(self._connections.get(user_id, ()))
        if not sockets:
            return False

        delivered = False
        for websocket in sockets:
            try:
                await websocket.send_json(message)
                delivered = True
            except Exception as e:
                logger.warning(f"Dropping socket for user {user_id}: {e}")
                await self.disconnect(user_id, websocket)
        return delivered

    async def close_all(self) -> None:
        async with self._lock:
            sockets = [(uid, ws) for uid, group in self._connections.items() for ws in group]
            self._connections.clear()
        for user_id, websocket in sockets:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Socket for user {user_id} already closed: {e}")


__all__ = ["ConnectionManager"]
