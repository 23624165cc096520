import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.auth.dependencies import get_user_from_token
from app.db.session import AsyncSessionLocal
from app.notifications.services import NotificationService, serialize_notification
from app.realtime.gateway import gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def _extract_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Push channel for a signed-in user.

    The session is only held for the handshake: authentication and the
    notification replay. Everything after that is pushed by the services.
    """
    async with AsyncSessionLocal() as db:
        user = await get_user_from_token(db, _extract_token(websocket, token))
        if user is None or user.is_blocked or not user.is_active:
            logger.warning("WebSocket handshake rejected: invalid token or inactive account")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()
        user_id = user.id
        await gateway.connect(user_id, websocket)
        await gateway.send_connected(user_id)

        recent = await NotificationService(db).latest(user_id)
        if recent:
            await gateway.send_notifications(user_id, [serialize_notification(n) for n in recent])

    try:
        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await gateway.emit(user_id, "pong", {"message": "pong"})
    except WebSocketDisconnect:
        await gateway.disconnect(user_id, websocket)
