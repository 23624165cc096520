import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from app.realtime.gateway import RealtimeGateway


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.closed_with = None
        self.fail = fail
        self.client_state = WebSocketState.CONNECTED

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = None):
        self.closed_with = code
        self.client_state = WebSocketState.DISCONNECTED


def test_handshake_sends_connected_and_replays_notifications(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    client.post("/api/friends/requests", json={"receiverId": alice.id}, headers=bob.headers)

    with client.websocket_connect(f"/ws?token={alice.token}") as ws:
        connected = ws.receive_json()
        assert connected["event"] == "connected"
        assert connected["data"]["userId"] == alice.id

        replay = ws.receive_json()
        assert replay["event"] == "notifications"
        assert [n["type"] for n in replay["data"]] == ["friend_request_received"]


def test_live_pushes_arrive_in_order(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")

    with client.websocket_connect("/ws", headers=alice.headers) as ws:
        assert ws.receive_json()["event"] == "connected"

        client.post("/api/friends/requests", json={"receiverId": alice.id}, headers=bob.headers)
        notification = ws.receive_json()
        update = ws.receive_json()

    assert notification["event"] == "notification"
    assert notification["data"]["type"] == "friend_request_received"
    assert update == {"event": "friend_update", "data": {"type": "request_received", "userId": bob.id}}


def test_chat_messages_are_pushed(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")

    with client.websocket_connect(f"/ws?token={bob.token}") as ws:
        ws.receive_json()
        client.post(f"/api/chats/direct/{bob.id}/messages", json={"content": "yo"}, headers=alice.headers)
        events = [ws.receive_json() for _ in range(2)]

    assert [e["event"] for e in events] == ["notification", "chat_message"]
    assert events[1]["data"]["content"] == "yo"


def test_invalid_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=not-a-token"):
            pass
    assert exc_info.value.code == 1008


def test_ping_pong(client, register_user):
    alice = register_user("Alice")
    with client.websocket_connect(f"/ws?token={alice.token}") as ws:
        ws.receive_json()
        ws.send_text("ping")
        assert ws.receive_json() == {"event": "pong", "data": {"message": "pong"}}


def test_emit_to_offline_user_is_dropped():
    gateway = RealtimeGateway()
    assert asyncio.run(gateway.emit("nobody", "notification", {})) is False


def test_reconnect_replaces_previous_socket():
    gateway = RealtimeGateway()
    old, new = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await gateway.connect("u1", old)
        await gateway.connect("u1", new)
        sent = await gateway.send_event_update("u1", {"type": "x"})
        # The stale socket's disconnect must not evict the new one
        await gateway.disconnect("u1", old)
        return sent, await gateway.is_user_connected("u1")

    sent, still_online = asyncio.run(scenario())
    assert sent is True
    assert still_online is True
    assert old.closed_with == 4000
    assert new.sent == [{"event": "event_update", "data": {"type": "x"}}]


def test_failed_send_unregisters_socket():
    gateway = RealtimeGateway()
    broken = FakeWebSocket(fail=True)

    async def scenario():
        await gateway.connect("u1", broken)
        sent = await gateway.send_message("u1", {"content": "hi"})
        return sent, await gateway.connected_count()

    assert asyncio.run(scenario()) == (False, 0)
