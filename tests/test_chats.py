import asyncio

from app.chats.signals import MessageSignal

EPOCH = "2000-01-01T00:00:00Z"


def send_direct(client, sender, receiver, content):
    response = client.post(f"/api/chats/direct/{receiver.id}/messages", json={"content": content}, headers=sender.headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_direct_messages_share_one_chat(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")

    first = send_direct(client, alice, bob, "Hello")
    second = send_direct(client, bob, alice, "Hi there")
    assert first["chatId"] == second["chatId"]

    opened = client.post(f"/api/chats/direct/{alice.id}", headers=bob.headers).json()
    assert opened["id"] == first["chatId"]
    assert {p["userId"] for p in opened["participants"]} == {alice.id, bob.id}

    chats = client.get("/api/chats", headers=alice.headers).json()
    assert len(chats) == 1
    assert chats[0]["lastMessage"]["content"] == "Hi there"


def test_unread_count_resets_after_reading(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    chat_id = send_direct(client, alice, bob, "one")["chatId"]
    send_direct(client, alice, bob, "two")

    assert client.get(f"/api/chats/{chat_id}/unread-count", headers=bob.headers).json()["count"] == 2
    assert client.get(f"/api/chats/{chat_id}/unread-count", headers=alice.headers).json()["count"] == 0

    messages = client.get(f"/api/chats/{chat_id}/messages", headers=bob.headers).json()
    assert [m["content"] for m in messages] == ["one", "two"]
    assert client.get(f"/api/chats/{chat_id}/unread-count", headers=bob.headers).json()["count"] == 0


def test_deleted_message_content_is_hidden_everywhere(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    message = send_direct(client, alice, bob, "oops")

    deleted = client.delete(f"/api/chats/messages/{message['id']}", headers=alice.headers)
    assert deleted.status_code == 200
    assert deleted.json()["isDeleted"] is True
    assert deleted.json()["content"] == ""

    listed = client.get(f"/api/chats/{message['chatId']}/messages", headers=bob.headers).json()
    assert [(m["isDeleted"], m["content"]) for m in listed] == [(True, "")]

    single = client.get(f"/api/chats/messages/{message['id']}", headers=bob.headers).json()
    assert single["content"] == ""

    polled = client.get(
        f"/api/chats/{message['chatId']}/messages/poll",
        params={"after": EPOCH, "timeout": 0},
        headers=bob.headers,
    ).json()
    assert [m["content"] for m in polled] == [""]


def test_only_author_can_edit_or_delete(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    message = send_direct(client, alice, bob, "draft")

    assert client.patch(f"/api/chats/messages/{message['id']}", json={"content": "x"}, headers=bob.headers).status_code == 403
    assert client.delete(f"/api/chats/messages/{message['id']}", headers=bob.headers).status_code == 403

    edited = client.patch(f"/api/chats/messages/{message['id']}", json={"content": "final"}, headers=alice.headers)
    assert edited.json()["content"] == "final"
    assert edited.json()["isEdited"] is True

    client.delete(f"/api/chats/messages/{message['id']}", headers=alice.headers)
    again = client.patch(f"/api/chats/messages/{message['id']}", json={"content": "back"}, headers=alice.headers)
    assert again.status_code == 400


def test_outsider_cannot_read_chat(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    eve = register_user("Eve")
    message = send_direct(client, alice, bob, "private")

    assert client.get(f"/api/chats/{message['chatId']}/messages", headers=eve.headers).status_code == 403
    assert client.get(f"/api/chats/messages/{message['id']}", headers=eve.headers).status_code == 403


def test_poll_returns_empty_list_on_timeout(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    message = send_direct(client, alice, bob, "ping")

    response = client.get(
        f"/api/chats/{message['chatId']}/messages/poll",
        params={"after": message["createdAt"], "timeout": 0},
        headers=bob.headers,
    )
    assert response.status_code == 200
    assert response.json() == []


def test_poll_returns_messages_after_cursor(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    first = send_direct(client, alice, bob, "first")
    send_direct(client, alice, bob, "second")

    response = client.get(
        f"/api/chats/{first['chatId']}/messages/poll",
        params={"after": first["createdAt"], "timeout": 1000},
        headers=bob.headers,
    )
    assert [m["content"] for m in response.json()] == ["second"]
    assert client.get(f"/api/chats/{first['chatId']}/unread-count", headers=bob.headers).json()["count"] == 0


def test_reply_must_belong_to_same_chat(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    carol = register_user("Carol")
    with_bob = send_direct(client, alice, bob, "to bob")
    with_carol = send_direct(client, alice, carol, "to carol")

    bad = client.post(
        f"/api/chats/{with_bob['chatId']}/messages",
        json={"content": "re", "replyToMessageId": with_carol["id"]},
        headers=alice.headers,
    )
    assert bad.status_code == 400

    good = client.post(
        f"/api/chats/{with_bob['chatId']}/messages",
        json={"content": "re", "replyToMessageId": with_bob["id"]},
        headers=bob.headers,
    )
    assert good.status_code == 201
    assert good.json()["replyToMessageId"] == with_bob["id"]


def test_group_chat_and_leaving(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    carol = register_user("Carol")

    chat = client.post("/api/chats", json={"participantIds": [bob.id, carol.id]}, headers=alice.headers).json()
    assert len(chat["participants"]) == 3

    assert client.delete(f"/api/chats/{chat['id']}/participants/{bob.id}", headers=alice.headers).status_code == 403
    assert client.delete(f"/api/chats/{chat['id']}/participants/{bob.id}", headers=bob.headers).status_code == 200
    assert client.get(f"/api/chats/{chat['id']}", headers=bob.headers).status_code == 403


def test_group_shrunk_to_two_is_not_the_direct_chat(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    carol = register_user("Carol")
    dave = register_user("Dave")

    group = client.post("/api/chats", json={"participantIds": [bob.id, carol.id]}, headers=alice.headers).json()
    assert group["isDirect"] is False
    client.delete(f"/api/chats/{group['id']}/participants/{carol.id}", headers=carol.headers)

    direct = client.post(f"/api/chats/direct/{bob.id}", headers=alice.headers).json()
    assert direct["id"] != group["id"]
    assert direct["isDirect"] is True
    assert send_direct(client, bob, alice, "just us")["chatId"] == direct["id"]

    # The two-member group still accepts new people, the direct chat never does
    added = client.post(f"/api/chats/{group['id']}/participants", json={"userId": dave.id}, headers=alice.headers)
    assert added.status_code == 200
    assert len(added.json()["participants"]) == 3
    refused = client.post(f"/api/chats/{direct['id']}/participants", json={"userId": dave.id}, headers=alice.headers)
    assert refused.status_code == 400


def test_reopening_direct_chat_brings_back_a_user_who_left(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    chat_id = send_direct(client, alice, bob, "hi")["chatId"]

    client.delete(f"/api/chats/{chat_id}/participants/{bob.id}", headers=bob.headers)
    assert client.get(f"/api/chats/{chat_id}", headers=bob.headers).status_code == 403

    assert send_direct(client, alice, bob, "still there?")["chatId"] == chat_id
    assert client.get(f"/api/chats/{chat_id}", headers=bob.headers).status_code == 200


def test_messages_notify_recipients(client, register_user):
    alice = register_user("Alice")
    bob = register_user("Bob")
    send_direct(client, alice, bob, "Are you coming?")

    notifications = client.get("/api/notifications", headers=bob.headers).json()
    assert notifications[0]["type"] == "message_received"
    assert notifications[0]["message"] == "Are you coming?"


def test_signal_wakes_subscribed_reader():
    signal = MessageSignal()

    async def scenario():
        async with signal.subscribe("chat-1") as wake:
            assert signal.waiting("chat-1") == 1
            assert signal.publish("chat-1") == 1
            await asyncio.wait_for(wake.wait(), timeout=1)
        assert signal.waiting("chat-1") == 0
        assert signal.publish("chat-1") == 0

    asyncio.run(scenario())
