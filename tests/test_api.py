from fastapi.testclient import TestClient


def _create(client: TestClient, headers: dict, entity: str, data: dict) -> dict:
    response = client.post(f"/api/{entity}", json=data, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["item"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "contacts" in client.get("/").json()["entities"]


def test_login(client: TestClient, agent_headers: dict) -> None:
    response = client.post("/api/auth/login", json={"email": "agent@a.example.com", "password": "password123"})
    assert response.status_code == 200
    assert response.json()["tokens"]["access_token"]

    response = client.post("/api/auth/login", json={"email": "agent@a.example.com", "password": "wrong-pass"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_routes_require_a_valid_token(client: TestClient) -> None:
    assert client.get("/api/contacts").status_code in (401, 403)
    response = client.get("/api/contacts", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_profile(client: TestClient, agent_headers: dict) -> None:
    user = client.get("/api/auth/profile", headers=agent_headers).json()["user"]
    assert user["email"] == "agent@a.example.com"
    assert user["company_id"] == "company-a"


def test_only_admins_create_users(client: TestClient, admin_headers: dict, agent_headers: dict) -> None:
    body = {"email": "new@a.example.com", "password": "password123", "full_name": "New Agent"}
    assert client.post("/api/auth/users", json=body, headers=agent_headers).status_code == 403

    response = client.post("/api/auth/users", json=body, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["user"]["company_id"] == "company-a"
    assert client.post("/api/auth/users", json=body, headers=admin_headers).status_code == 400


def test_crud_round_trip(client: TestClient, agent_headers: dict) -> None:
    contact = _create(client, agent_headers, "contacts", {"name": "Rami", "email": "rami@example.com", "company_id": "company-b"})
    assert contact["company_id"] == "company-a"
    assert contact["createdAt"] is not None

    fetched = client.get(f"/api/contacts/{contact['id']}", headers=agent_headers).json()["item"]
    assert fetched["email"] == "rami@example.com"

    updated = client.put(f"/api/contacts/{contact['id']}", json={"name": "Rami K."}, headers=agent_headers)
    assert updated.json()["item"]["name"] == "Rami K."

    listing = client.get("/api/contacts", headers=agent_headers).json()
    assert [item["id"] for item in listing["items"]] == [contact["id"]]
    assert listing["pagination"]["total_items"] == 1


def test_unknown_entity(client: TestClient, agent_headers: dict) -> None:
    assert client.get("/api/spaceships", headers=agent_headers).status_code == 404


def test_other_company_cannot_see_or_touch_records(client: TestClient, agent_headers: dict,
                                                    other_company_headers: dict) -> None:
    lead = _create(client, agent_headers, "leads", {"name": "Private"})
    url = f"/api/leads/{lead['id']}"

    assert client.get(url, headers=other_company_headers).status_code == 404
    assert client.put(url, json={"name": "Stolen"}, headers=other_company_headers).status_code == 404
    assert client.delete(url, headers=other_company_headers).status_code == 404
    assert client.get("/api/leads", headers=other_company_headers).json()["items"] == []
    assert client.get(url, headers=agent_headers).json()["item"]["name"] == "Private"


def test_company_id_cannot_be_reassigned(client: TestClient, agent_headers: dict) -> None:
    deal = _create(client, agent_headers, "deals", {"Amount": 10})
    response = client.put(f"/api/deals/{deal['id']}", json={"company_id": "company-b"}, headers=agent_headers)
    assert response.status_code == 400


def test_soft_delete_and_restore(client: TestClient, agent_headers: dict) -> None:
    prop = _create(client, agent_headers, "properties", {"title": "Loft"})

    response = client.delete(f"/api/properties/{prop['id']}", headers=agent_headers)
    assert response.json() == {"success": True, "id": prop["id"], "hard": False}
    assert client.get("/api/properties", headers=agent_headers).json()["items"] == []
    with_deleted = client.get("/api/properties?include_deleted=true", headers=agent_headers).json()
    assert with_deleted["items"][0]["isDeleted"] is True

    restored = client.post(f"/api/properties/{prop['id']}/restore", headers=agent_headers)
    assert restored.json()["item"]["isDeleted"] is False
    assert len(client.get("/api/properties", headers=agent_headers).json()["items"]) == 1


def test_hard_delete_is_admin_only(client: TestClient, admin_headers: dict, agent_headers: dict) -> None:
    contact = _create(client, agent_headers, "contacts", {"name": "Temp"})
    url = f"/api/contacts/{contact['id']}?hard=true"

    assert client.delete(url, headers=agent_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).json()["hard"] is True
    assert client.get(f"/api/contacts/{contact['id']}", headers=admin_headers).status_code == 404


def test_status_updates_are_validated(client: TestClient, agent_headers: dict) -> None:
    deal = _create(client, agent_headers, "deals", {"Amount": 100})
    url = f"/api/deals/{deal['id']}/status"

    assert client.put(url, json={"status": "Won"}, headers=agent_headers).status_code == 400
    response = client.put(url, json={"status": "Gain"}, headers=agent_headers)
    assert response.status_code == 200
    assert response.json()["item"]["Status"] == "Gain"

    listing = client.get("/api/deals?status=Gain", headers=agent_headers).json()
    assert listing["pagination"]["total_items"] == 1


def test_pagination_query_params(client: TestClient, agent_headers: dict) -> None:
    for rank in range(5):
        _create(client, agent_headers, "properties", {"title": f"P{rank}", "price": rank})

    page = client.get("/api/properties?page=2&page_size=2&sort=price", headers=agent_headers).json()
    assert [item["price"] for item in page["items"]] == [2, 3]
    assert page["pagination"] == {"page": 2, "page_size": 2, "total_items": 5, "total_pages": 3}


def test_batch_is_scoped_and_atomic(client: TestClient, agent_headers: dict, other_company_headers: dict) -> None:
    response = client.post("/api/contacts/batch", json={"operations": [
        {"type": "create", "data": {"name": "One"}},
        {"type": "create", "data": {"name": "Two"}},
    ]}, headers=agent_headers)
    assert response.json() == {"success": True, "count": 2}

    theirs = _create(client, other_company_headers, "contacts", {"name": "Theirs"})
    response = client.post("/api/contacts/batch", json={"operations": [
        {"type": "create", "data": {"name": "Three"}},
        {"type": "update", "id": theirs["id"], "data": {"name": "Hijacked"}},
    ]}, headers=agent_headers)
    assert response.status_code == 404
    assert client.get("/api/contacts", headers=agent_headers).json()["pagination"]["total_items"] == 2


def test_invoice_payments(client: TestClient, agent_headers: dict) -> None:
    invoice = _create(client, agent_headers, "invoices", {"amount": 250, "title": "Fee"})
    assert invoice["Status"] == "Pending"

    response = client.post(f"/api/invoices/{invoice['id']}/payments", json={"amount": 250, "method": "Cash"},
                           headers=agent_headers)
    assert response.json()["item"]["Status"] == "Paid"
    response = client.post(f"/api/invoices/{invoice['id']}/payments", json={"amount": -1}, headers=agent_headers)
    assert response.status_code == 400


def test_lead_import_and_conversion(client: TestClient, agent_headers: dict) -> None:
    response = client.post("/api/leads/import", json={"rows": [{"name": "Ok"}, {"email": "no-name@example.com"}]},
                           headers=agent_headers)
    result = response.json()
    assert (result["success_count"], result["error_count"]) == (1, 1)

    lead_id = result["created_ids"][0]
    response = client.post(f"/api/leads/{lead_id}/convert", headers=agent_headers)
    assert response.status_code == 201
    assert response.json()["contact"]["company_id"] == "company-a"
    assert client.get(f"/api/leads/{lead_id}", headers=agent_headers).json()["item"]["status"] == "Gain"


def test_notes(client: TestClient, agent_headers: dict) -> None:
    contact = _create(client, agent_headers, "contacts", {"name": "Noted"})
    response = client.post(f"/api/contacts/{contact['id']}/notes", json={"text": "Prefers email"}, headers=agent_headers)
    assert response.json()["item"]["Notes"][0]["note"] == "Prefers email"
    assert client.post(f"/api/contacts/{contact['id']}/notes", json={"text": " "}, headers=agent_headers).status_code == 400


def test_meeting_workflows(client: TestClient, agent_headers: dict) -> None:
    body = {
        "meeting": {"title": "Weekly sync", "startTime": "2026-06-01T10:00:00+00:00", "endTime": "2026-06-01T11:00:00+00:00"},
        "recurrenceType": "Weekly",
        "count": 3,
    }
    response = client.post("/api/meetings/recurring", json=body, headers=agent_headers)
    assert response.status_code == 201
    meeting_id = response.json()["ids"][0]

    response = client.post(f"/api/meetings/{meeting_id}/attendees", json={"id": "u9", "name": "Guest"}, headers=agent_headers)
    assert [a["id"] for a in response.json()["item"]["attendees"]] == ["u9"]
    response = client.delete(f"/api/meetings/{meeting_id}/attendees/u9", headers=agent_headers)
    assert response.json()["item"]["attendees"] == []

    response = client.post(f"/api/meetings/{meeting_id}/cancel", json={"reason": "Holiday"}, headers=agent_headers)
    assert response.json()["item"]["status"] == "Cancelled"
    assert client.get("/api/meetings", headers=agent_headers).json()["pagination"]["total_items"] == 3


def test_meeting_create_validates_times(client: TestClient, agent_headers: dict) -> None:
    response = client.post("/api/meetings", json={"title": "Bad", "startTime": "2026-06-01T10:00:00+00:00",
                                                  "endTime": "2026-06-01T09:00:00+00:00"}, headers=agent_headers)
    assert response.status_code == 400


def test_complete_recurring_todo(client: TestClient, agent_headers: dict) -> None:
    todo = _create(client, agent_headers, "todos", {"title": "Daily call", "dueDate": "2026-06-01T09:00:00+00:00",
                                                    "recurrenceType": "Daily"})
    response = client.post(f"/api/todos/{todo['id']}/complete", headers=agent_headers)
    assert response.json()["item"]["status"] == "Completed"

    items = client.get("/api/todos", headers=agent_headers).json()["items"]
    following = [item for item in items if item["id"] != todo["id"]]
    assert following[0]["dueDate"].startswith("2026-06-02T09:00:00")


def test_bulk_application_status(client: TestClient, agent_headers: dict, other_company_headers: dict) -> None:
    ours = _create(client, agent_headers, "applications", {"firstname": "A", "lastname": "B", "Job": "Agent"})
    theirs = _create(client, other_company_headers, "applications", {"firstname": "C", "lastname": "D", "Job": "Agent"})

    response = client.post("/api/applications/bulk-status", json={"ids": [ours["id"]], "status": "Hired"},
                           headers=agent_headers)
    assert response.json() == {"success": True, "updated": 1}

    response = client.post("/api/applications/bulk-status", json={"ids": [ours["id"], theirs["id"]], "status": "Rejected"},
                           headers=agent_headers)
    assert response.status_code == 404
    assert client.get(f"/api/applications/{ours['id']}", headers=agent_headers).json()["item"]["Status"] == "Hired"


def test_history_is_recorded_and_read_only(client: TestClient, agent_headers: dict) -> None:
    contact = _create(client, agent_headers, "contacts", {"name": "Tracked"})
    client.put(f"/api/contacts/{contact['id']}", json={"name": "Tracked 2"}, headers=agent_headers)

    feed = client.get("/api/history/feed?entity_types=Contact", headers=agent_headers).json()["items"]
    assert {entry["action"] for entry in feed} == {"Created", "Updated"}
    assert all(entry["entityId"] == contact["id"] for entry in feed)

    assert client.post("/api/history", json={"action": "Created"}, headers=agent_headers).status_code == 405
    assert client.delete(f"/api/history/{feed[0]['id']}", headers=agent_headers).status_code == 405


def test_dashboard_is_cached_until_a_write(client: TestClient, agent_headers: dict) -> None:
    _create(client, agent_headers, "contacts", {"name": "One"})
    first = client.get("/api/analytics/dashboard", headers=agent_headers).json()
    assert first["dashboard"]["counts"]["contacts"] == 1

    _create(client, agent_headers, "contacts", {"name": "Two"})
    second = client.get("/api/analytics/dashboard", headers=agent_headers).json()
    assert second["dashboard"]["counts"]["contacts"] == 2


def test_status_update_cannot_move_record_to_another_company(client: TestClient, agent_headers: dict,
                                                             other_company_headers: dict) -> None:
    contact = _create(client, agent_headers, "contacts", {"name": "Anchored"})
    url = f"/api/contacts/{contact['id']}"

    response = client.put(f"{url}/status", json={"status": "Contacted", "extra": {"company_id": "company-b"}},
                          headers=agent_headers)
    assert response.status_code == 400
    assert client.get(url, headers=other_company_headers).status_code == 404
    item = client.get(url, headers=agent_headers).json()["item"]
    assert (item["company_id"], item["status"]) == ("company-a", "Pending")


def test_mistyped_field_does_not_break_reads(client: TestClient, agent_headers: dict) -> None:
    lead = _create(client, agent_headers, "leads", {"name": "Loose", "Budget": 100})

    response = client.put(f"/api/leads/{lead['id']}", json={"Budget": "about 2M"}, headers=agent_headers)
    assert response.status_code == 200
    assert response.json()["item"]["Budget"] == 0

    listing = client.get("/api/leads", headers=agent_headers)
    assert listing.status_code == 200
    assert [item["name"] for item in listing.json()["items"]] == ["Loose"]


def test_unavailable_store_answers_503(client: TestClient, api, agent_headers: dict, monkeypatch) -> None:
    from google.api_core import exceptions as gcp_exceptions

    def unavailable(*args, **kwargs):
        raise gcp_exceptions.ServiceUnavailable("firestore down")

    monkeypatch.setattr(api.SERVICES["contacts"], "get_paginated", unavailable)
    response = client.get("/api/contacts", headers=agent_headers)

    assert response.status_code == 503
    assert response.headers["access-control-allow-origin"] == "*"
