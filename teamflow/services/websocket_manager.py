from fastapi import WebSocket
from typing import Dict, Set
import json
import logging
from datetime import datetime

logger = logging.getLogger(__name__)

class WebSocketManager:
    def __init__(self):
        # Active connections by user_id; one user may have several tabs open
        self.active_connections: Dict[int, Set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        """Register an accepted WebSocket for a user"""
        # websocket.accept() is called in the endpoint, not here
        if user_id not in self.active_connections:
            self.active_connections[user_id] = set()

        self.active_connections[user_id].add(websocket)
        logger.info(f"User {user_id} connected. Total connections: {len(self.active_connections[user_id])}")

        await self.send_personal_message(
            {
                "type": "connection",
                "message": "Connected to notification service",
                "timestamp": datetime.now().isoformat()
            },
            websocket
        )

    def disconnect(self, websocket: WebSocket, user_id: int):
        """Forget a WebSocket for a user"""
        if user_id in self.active_connections:
            self.active_connections[user_id].discard(websocket)

            if not self.active_connections[user_id]:
                del self.active_connections[user_id]

            logger.info(f"User {user_id} disconnected. Remaining connections: {len(self.active_connections.get(user_id, set()))}")

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send a message to one connection; raises if the socket is gone"""
        await websocket.send_text(json.dumps(message, default=str))

    async def send_notification_to_user(self, user_id: int, notification: dict) -> bool:
        """Push a notification to every connection of a user.

        Returns True if at least one connection received it.
        """
        if user_id not in self.active_connections:
            logger.info(f"User {user_id} not connected, notification stays in the inbox")
            return False

        message = {
            "type": "notification",
            "data": notification,
            "timestamp": datetime.now().isoformat()
        }

        delivered = False
        disconnected_websockets = set()
        for websocket in list(self.active_connections[user_id]):
            try:
                await self.send_personal_message(message, websocket)
                delivered = True
            except Exception as e:
                logger.error(f"Error sending notification to user {user_id}: {e}")
                disconnected_websockets.add(websocket)

        for websocket in disconnected_websockets:
            self.disconnect(websocket, user_id)

        return delivered

    async def broadcast_to_all(self, message: dict):
        """Broadcast a message to all connected users, e.g. board refresh hints"""
        message_data = {
            "type": "broadcast",
            "data": message,
            "timestamp": datetime.now().isoformat()
        }

        disconnected_websockets = set()

        for user_id, connections in list(self.active_connections.items()):
            for websocket in list(connections):
                try:
                    await self.send_personal_message(message_data, websocket)
                except Exception as e:
                    logger.error(f"Error broadcasting to user {user_id}: {e}")
                    disconnected_websockets.add((websocket, user_id))

        for websocket, user_id in disconnected_websockets:
            self.disconnect(websocket, user_id)

    def get_total_connections(self) -> int:
        return sum(len(connections) for connections in self.active_connections.values())

# Global instance
websocket_manager = WebSocketManager()
