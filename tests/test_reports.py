def file_report(client, reporter, reported, type="spam", **extra):
    return client.post(
        "/api/reports",
        json={"reportedUserId": reported.id, "type": type, **extra},
        headers=reporter.headers,
    )


def test_file_report_starts_pending(client, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")

    response = file_report(client, rita, sam, type="harassment", description="Rude messages")
    assert response.status_code == 201
    body = response.json()
    assert (body["reporterId"], body["reportedUserId"]) == (rita.id, sam.id)
    assert (body["type"], body["status"]) == ("harassment", "pending")
    assert body["reviewedBy"] is None
    assert body["reportedUser"]["firstName"] == "Sam"


def test_report_validation(client, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")

    assert file_report(client, rita, rita).status_code == 400
    assert file_report(client, rita, sam, type="boring").status_code == 422

    missing = client.post(
        "/api/reports",
        json={"reportedUserId": "00000000-0000-0000-0000-0000000000ff", "type": "spam"},
        headers=rita.headers,
    )
    assert missing.status_code == 404

    assert file_report(client, rita, sam).status_code == 201
    duplicate = file_report(client, rita, sam, type="scam")
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "You have already reported this user"


def test_my_reports_lists_only_own(client, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")
    tom = register_user("Tom")
    file_report(client, rita, sam)
    file_report(client, rita, tom)
    file_report(client, sam, tom)

    mine = client.get("/api/reports/my-reports", headers=rita.headers).json()
    assert sorted(r["reportedUserId"] for r in mine) == sorted([sam.id, tom.id])


def test_moderation_routes_require_permissions(client, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")
    report = file_report(client, rita, sam).json()

    assert client.get("/api/reports", headers=rita.headers).status_code == 403
    assert client.get(f"/api/reports/{report['id']}", headers=rita.headers).status_code == 403
    assert client.patch(f"/api/reports/{report['id']}", json={"status": "resolved"}, headers=rita.headers).status_code == 403
    assert client.delete(f"/api/reports/{report['id']}", headers=rita.headers).status_code == 403


def test_admin_lists_with_filters_and_pages(client, admin, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")
    tom = register_user("Tom")
    file_report(client, rita, sam)
    file_report(client, tom, sam)
    resolved = file_report(client, rita, tom).json()
    client.patch(f"/api/reports/{resolved['id']}", json={"status": "resolved"}, headers=admin.headers)

    everything = client.get("/api/reports", headers=admin.headers).json()
    assert (everything["total"], everything["page"], everything["pageSize"], everything["totalPages"]) == (3, 1, 15, 1)

    pending = client.get("/api/reports", params={"status": "pending"}, headers=admin.headers).json()
    assert pending["total"] == 2
    assert {r["reportedUserId"] for r in pending["data"]} == {sam.id}

    by_email = client.get("/api/reports", params={"email": tom.email}, headers=admin.headers).json()
    assert [r["id"] for r in by_email["data"]] == [resolved["id"]]

    unknown = client.get("/api/reports", params={"email": "nobody@example.com"}, headers=admin.headers).json()
    assert unknown == {"data": [], "total": 0, "page": 1, "pageSize": 15, "totalPages": 0}

    second_page = client.get("/api/reports", params={"page": 2, "pageSize": 2}, headers=admin.headers).json()
    assert len(second_page["data"]) == 1
    assert second_page["totalPages"] == 2


def test_review_sets_reviewer_and_notes(client, admin, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")
    report = file_report(client, rita, sam).json()

    notes_only = client.patch(f"/api/reports/{report['id']}", json={"adminNotes": "Looking"}, headers=admin.headers)
    assert notes_only.status_code == 200
    assert notes_only.json()["adminNotes"] == "Looking"
    assert notes_only.json()["reviewedBy"] is None

    reviewed = client.patch(f"/api/reports/{report['id']}", json={"status": "rejected"}, headers=admin.headers).json()
    assert reviewed["status"] == "rejected"
    assert reviewed["reviewedBy"] == admin.id
    assert reviewed["reviewedAt"] is not None
    assert reviewed["adminNotes"] == "Looking"

    # A closed report no longer blocks a new one
    assert file_report(client, rita, sam).status_code == 201


def test_delete_report(client, admin, register_user):
    rita = register_user("Rita")
    sam = register_user("Sam")
    report = file_report(client, rita, sam).json()

    assert client.delete(f"/api/reports/{report['id']}", headers=admin.headers).status_code == 204
    assert client.get(f"/api/reports/{report['id']}", headers=admin.headers).status_code == 404
    assert client.delete(f"/api/reports/{report['id']}", headers=admin.headers).status_code == 404
