# bizhub/websocket/connection_manager.py

from typing import Any, Dict, List, Set

from fastapi import WebSocket
from loguru import logger


class ConnectionManager:
    """
    Tracks WebSocket connections per user so events can be pushed to one
    user (every open tab) or broadcast to everyone.
    """

    def __init__(self, name: str):
        self.name = name
        self.active_connections: Dict[str, Set[WebSocket]] = {}

    async def connect(self, user_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"[{self.name}] client {user_id} connected ({self.connection_count()} open sockets)")

    def disconnect(self, user_id: str, websocket: WebSocket):
        sockets = self.active_connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            self.active_connections.pop(user_id, None)
        logger.info(f"[{self.name}] client {user_id} disconnected")

    def is_online(self, user_id: str) -> bool:
        return bool(self.active_connections.get(user_id))

    def online_users(self) -> List[str]:
        return list(self.active_connections.keys())

    def connection_count(self) -> int:
        return sum(len(s) for s in self.active_connections.values())

    async def send_personal_message(self, user_id: str, message: Dict[str, Any]) -> bool:
        """Sends to every socket of a user. Returns False when the user is offline."""
        sockets = list(self.active_connections.get(user_id, ()))
        if not sockets:
            return False
        for websocket in sockets:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"[{self.name}] error sending to {user_id}: {e}")
                self.disconnect(user_id, websocket)
        return True

    async def broadcast(self, message: Dict[str, Any]):
        failed = []
        for user_id, sockets in list(self.active_connections.items()):
            for websocket in list(sockets):
                try:
                    await websocket.send_json(message)
                except Exception as e:
                    logger.error(f"[{self.name}] broadcast to {user_id} failed: {e}")
                    failed.append((user_id, websocket))
        for user_id, websocket in failed:
            self.disconnect(user_id, websocket)


notification_manager = ConnectionManager("notifications")
chat_manager = ConnectionManager("chat")
