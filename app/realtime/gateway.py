# app/realtime/gateway.py
# ===========================
# Push channel: user id -> live WebSocket, named JSON events
# ===========================
from typing import Any, Dict, List, Optional
import logging
import uuid

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

logger = logging.getLogger(__name__)

UserKey = str


def _key(user_id) -> UserKey:
    return str(user_id)


class PresenceRegistry:
    """
    Where a user's live connection can be reached.

    The in-memory implementation below covers a single process; a deployment
    with several workers plugs in a registry backed by a shared store.
    """

    async def register(self, user_id, websocket: WebSocket) -> Optional[WebSocket]:
        raise NotImplementedError

    async def unregister(self, user_id, websocket: WebSocket) -> bool:
        raise NotImplementedError

    async def lookup(self, user_id) -> Optional[WebSocket]:
        raise NotImplementedError

    async def count(self) -> int:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryPresenceRegistry(PresenceRegistry):
    def __init__(self):
        self.active_connections: Dict[UserKey, WebSocket] = {}

    async def register(self, user_id, websocket: WebSocket) -> Optional[WebSocket]:
        """Index the socket by user id and return the connection it replaced, if any."""
        key = _key(user_id)
        previous = self.active_connections.get(key)
        self.active_connections[key] = websocket
        return previous if previous is not websocket else None

    async def unregister(self, user_id, websocket: WebSocket) -> bool:
        key = _key(user_id)
        # A newer connection may already have replaced this one
        if self.active_connections.get(key) is websocket:
            del self.active_connections[key]
            return True
        return False

    async def lookup(self, user_id) -> Optional[WebSocket]:
        return self.active_connections.get(_key(user_id))

    async def count(self) -> int:
        return len(self.active_connections)

    def clear(self) -> None:
        self.active_connections.clear()


class RealtimeGateway:
    def __init__(self, registry: Optional[PresenceRegistry] = None):
        self.registry = registry or InMemoryPresenceRegistry()

    async def connect(self, user_id, websocket: WebSocket) -> None:
        previous = await self.registry.register(user_id, websocket)
        if previous is not None:
            logger.info(f"User {user_id} reconnected, closing the previous socket")
            await self._close_quietly(previous)
        logger.info(f"User {user_id} connected ({await self.registry.count()} online)")

    async def disconnect(self, user_id, websocket: WebSocket) -> None:
        if await self.registry.unregister(user_id, websocket):
            logger.info(f"User {user_id} disconnected")

    async def is_user_connected(self, user_id) -> bool:
        return await self.registry.lookup(user_id) is not None

    async def connected_count(self) -> int:
        return await self.registry.count()

    async def emit(self, user_id, event: str, payload: Any) -> bool:
        """Send a named event if the user is online. Returns whether it was sent."""
        websocket = await self.registry.lookup(user_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json({"event": event, "data": payload})
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.warning(f"Push '{event}' to user {user_id} failed: {e}")
            await self.registry.unregister(user_id, websocket)
            return False
        return True

    async def _close_quietly(self, websocket: WebSocket) -> None:
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            await websocket.close(code=4000, reason="Superseded by a newer connection")
        except (RuntimeError, OSError, WebSocketDisconnect) as e:
            logger.debug(f"Closing superseded socket failed: {e}")

    # ===========================
    # TYPED PUSHES
    # ===========================
    async def send_connected(self, user_id: uuid.UUID) -> bool:
        return await self.emit(user_id, "connected", {"message": "Connected", "userId": str(user_id)})

    async def send_notifications(self, user_id, notifications: List[dict]) -> bool:
        return await self.emit(user_id, "notifications", notifications)

    async def send_notification(self, user_id, notification: dict) -> bool:
        return await self.emit(user_id, "notification", notification)

    async def send_message(self, user_id, message: dict) -> bool:
        return await self.emit(user_id, "message", message)

    async def send_event_update(self, user_id, payload: dict) -> bool:
        return await self.emit(user_id, "event_update", payload)

    async def send_friend_update(self, user_id, payload: dict) -> bool:
        return await self.emit(user_id, "friend_update", payload)

    async def send_chat_message(self, user_id, message: dict) -> bool:
        return await self.emit(user_id, "chat_message", message)


gateway = RealtimeGateway()
