import app.participation.services as participation_services
from app.notifications.services import NotificationService
from app.realtime.gateway import gateway


def apply(client, user, event_id, **flags):
    response = client.post(f"/api/participation/events/{event_id}/applications", json=flags, headers=user.headers)
    assert response.status_code == 201, response.text
    return response.json()


def invite(client, creator, event_id, user):
    response = client.post(f"/api/participation/events/{event_id}/invitations/{user.id}", headers=creator.headers)
    assert response.status_code == 201, response.text
    return response.json()


def participant_count(client, viewer, event_id):
    return client.get(f"/api/events/{event_id}", headers=viewer.headers).json()["participantCount"]


def test_accepting_at_capacity_fails_and_keeps_request_pending(client, register_user, create_event):
    creator = register_user("Clara")
    member = register_user("Mark")
    dave = register_user("Dave")
    event = create_event(creator, maxParticipants=1)
    assert participant_count(client, creator, event["id"]) == 0

    invitation = invite(client, creator, event["id"], member)
    assert client.post(f"/api/participation/requests/{invitation['id']}/accept", headers=member.headers).status_code == 200
    assert participant_count(client, creator, event["id"]) == 1

    application = apply(client, dave, event["id"])
    response = client.post(f"/api/participation/requests/{application['id']}/accept", headers=creator.headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Event has reached the maximum number of participants"

    pending = client.get(f"/api/participation/events/{event['id']}/received", headers=creator.headers).json()
    assert [(r["userId"], r["status"]) for r in pending] == [(dave.id, "pending")]
    assert participant_count(client, creator, event["id"]) == 1
    assert client.get(f"/api/events/{event['id']}", headers=creator.headers).json()["isFull"] is True


def test_accepting_below_capacity_adds_participant_and_removes_request(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    event = create_event(creator, maxParticipants=1)

    application = apply(client, dave, event["id"], canBringMoney=True, itemsCanBring=["tea"])
    assert application["type"] == "application"
    assert application["itemsCanBring"] == ["tea"]

    # A single seat is still available to the first applicant
    response = client.post(f"/api/participation/requests/{application['id']}/accept", headers=creator.headers)
    assert response.status_code == 200
    assert participant_count(client, creator, event["id"]) == 1
    assert client.get(f"/api/participation/events/{event['id']}/received", headers=creator.headers).json() == []

    notifications = client.get("/api/notifications", headers=dave.headers).json()
    assert notifications[0]["type"] == "event_request_accepted"


def test_acceptance_joins_event_chat_with_system_message(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    event = create_event(creator)
    chat = client.post("/api/chats", json={"type": "event", "eventId": event["id"]}, headers=creator.headers).json()

    application = apply(client, dave, event["id"])
    client.post(f"/api/participation/requests/{application['id']}/accept", headers=creator.headers)

    messages = client.get(f"/api/chats/{chat['id']}/messages", headers=dave.headers)
    assert messages.status_code == 200
    system = [m for m in messages.json() if m["isSystem"]]
    assert [m["content"] for m in system] == ["Dave joined the event"]


def test_only_the_right_party_can_respond(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    erin = register_user("Erin")
    event = create_event(creator)

    application = apply(client, dave, event["id"])
    # An application is answered by the creator, not the applicant
    assert client.post(f"/api/participation/requests/{application['id']}/accept", headers=dave.headers).status_code == 403

    invitation = invite(client, creator, event["id"], erin)
    # An invitation is answered by the invited user, not the creator
    assert client.post(f"/api/participation/requests/{invitation['id']}/accept", headers=creator.headers).status_code == 403
    assert client.post(f"/api/participation/requests/{invitation['id']}/reject", headers=erin.headers).status_code == 200

    creator_notifications = [n["type"] for n in client.get("/api/notifications", headers=creator.headers).json()]
    assert "event_request_rejected" in creator_notifications


def test_send_validation(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    event = create_event(creator)

    own = client.post(f"/api/participation/events/{event['id']}/applications", json={}, headers=creator.headers)
    assert own.status_code == 400

    self_invite = client.post(f"/api/participation/events/{event['id']}/invitations/{creator.id}", headers=creator.headers)
    assert self_invite.status_code == 400

    not_creator = client.post(f"/api/participation/events/{event['id']}/invitations/{creator.id}", headers=dave.headers)
    assert not_creator.status_code == 403

    apply(client, dave, event["id"])
    duplicate = client.post(f"/api/participation/events/{event['id']}/applications", json={}, headers=dave.headers)
    assert duplicate.status_code == 409
    invite_duplicate = client.post(
        f"/api/participation/events/{event['id']}/invitations/{dave.id}", headers=creator.headers
    )
    assert invite_duplicate.status_code == 409


def test_requirement_flags_are_derived_from_profile(client, register_user, create_event):
    creator = register_user("Clara")
    young = register_user("Yana", birthDate="2015-05-05", gender="female")
    event = create_event(creator, minAge=18, preferredGender="female")

    application = apply(client, young, event["id"])
    assert application["ageMatches"] is False
    assert application["genderMatches"] is True
    assert application["meetsRequirements"] is False


def test_cancel_rules(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    erin = register_user("Erin")
    event = create_event(creator)

    application = apply(client, dave, event["id"])
    assert client.delete(f"/api/participation/requests/{application['id']}", headers=creator.headers).status_code == 403
    assert client.delete(f"/api/participation/requests/{application['id']}", headers=dave.headers).status_code == 200

    invite(client, creator, event["id"], erin)
    assert client.delete(f"/api/participation/events/{event['id']}/users/{erin.id}", headers=erin.headers).status_code == 403
    assert client.delete(f"/api/participation/events/{event['id']}/users/{erin.id}", headers=creator.headers).status_code == 200
    assert client.get("/api/participation/my/invitations", headers=erin.headers).json() == []


def test_my_requests_and_invitable_friends(client, register_user, create_event, befriend):
    creator = register_user("Clara")
    dave = register_user("Dave")
    erin = register_user("Erin")
    befriend(creator, dave)
    befriend(creator, erin)
    event = create_event(creator)

    invite(client, creator, event["id"], erin)
    invitable = client.get(f"/api/participation/events/{event['id']}/invitable-friends", headers=creator.headers)
    assert [u["id"] for u in invitable.json()] == [dave.id]

    mine = client.get("/api/participation/my/invitations", headers=erin.headers).json()
    assert [r["eventId"] for r in mine] == [event["id"]]
    assert client.get(f"/api/participation/events/{event['id']}/sent", headers=dave.headers).status_code == 403


def test_failing_side_effects_do_not_undo_acceptance(client, register_user, create_event, monkeypatch, caplog):
    creator = register_user("Clara")
    dave = register_user("Dave")
    event = create_event(creator)
    chat = client.post("/api/chats", json={"type": "event", "eventId": event["id"]}, headers=creator.headers).json()
    application = apply(client, dave, event["id"])

    async def failing(*args, **kwargs):
        raise RuntimeError("downstream unavailable")

    monkeypatch.setattr(participation_services, "join_event_chat", failing)
    monkeypatch.setattr(NotificationService, "create", failing)
    monkeypatch.setattr(gateway, "send_event_update", failing)

    response = client.post(f"/api/participation/requests/{application['id']}/accept", headers=creator.headers)
    assert response.status_code == 200

    # The committed membership survives every failed follow-up
    assert participant_count(client, creator, event["id"]) == 1
    assert client.get(f"/api/participation/events/{event['id']}/received", headers=creator.headers).json() == []
    assert client.get(f"/api/chats/{chat['id']}", headers=dave.headers).status_code == 403
    assert client.get("/api/notifications", headers=dave.headers).json() == []

    failed = [r.getMessage() for r in caplog.records if r.name == "app.common.side_effects"]
    assert "Side effect 'event chat join' failed" in failed
    assert "Side effect 'notification event_request_accepted' failed" in failed
    assert "Side effect 'event update push' failed" in failed


def test_single_seat_is_freed_when_participant_leaves(client, register_user, create_event):
    creator = register_user("Clara")
    dave = register_user("Dave")
    erin = register_user("Erin")
    event = create_event(creator, maxParticipants=1)

    first = apply(client, dave, event["id"])
    second = apply(client, erin, event["id"])
    assert client.post(f"/api/participation/requests/{first['id']}/accept", headers=creator.headers).status_code == 200
    assert client.post(f"/api/participation/requests/{second['id']}/accept", headers=creator.headers).status_code == 400

    assert client.post(f"/api/events/{event['id']}/leave", headers=dave.headers).status_code == 200
    assert client.post(f"/api/participation/requests/{second['id']}/accept", headers=creator.headers).status_code == 200

    participants = client.get(f"/api/events/{event['id']}/participants", headers=creator.headers).json()
    assert [p["id"] for p in participants] == [erin.id]
