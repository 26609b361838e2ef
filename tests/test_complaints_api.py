from __future__ import annotations

import pytest
from sqlalchemy.orm.exc import StaleDataError

from utils.complaint_lifecycle import REFERENCE_PATTERN
from utils.complaint_store import SqlComplaintStore


def _submit(client, complaint_fields) -> dict:
    response = client.post("/api/complaints", json=complaint_fields)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_public_submission_returns_reference(client, complaint_fields) -> None:
    body = _submit(client, complaint_fields)
    assert body["success"] is True
    assert body["status"] == "pending"
    assert body["emailSent"] is True
    assert REFERENCE_PATTERN.match(body["reference"])


def test_submission_validation_errors(client, complaint_fields) -> None:
    complaint_fields["complaint"] = "short"
    response = client.post("/api/complaints", json=complaint_fields)
    body = response.get_json()
    assert response.status_code == 400
    assert body["error"] == "ValidationFailed"
    assert "Complaint must be between 10 and 2000 characters" in body["errors"]


def test_submission_with_non_json_body(client) -> None:
    response = client.post("/api/complaints", data="not json", content_type="text/plain")
    assert response.status_code == 400


def test_staff_routes_require_token(client) -> None:
    for method, path in (("get", "/api/complaints"), ("get", "/api/complaints/stats"), ("patch", "/api/complaints/x/status")):
        response = getattr(client, method)(path, json={})
        assert response.status_code == 401
        assert response.get_json()["success"] is False


def test_list_and_filter(client, auth_headers, complaint_fields) -> None:
    _submit(client, complaint_fields)
    _submit(client, dict(complaint_fields, name="Bob Stone", email="bob@example.com", category="General"))

    everything = client.get("/api/complaints", headers=auth_headers).get_json()
    assert everything["total"] == 2

    cctv = client.get("/api/complaints?category=CCTV", headers=auth_headers).get_json()
    assert [c["name"] for c in cctv["complaints"]] == ["Jane Doe"]

    search = client.get("/api/complaints?q=bob", headers=auth_headers).get_json()
    assert [c["email"] for c in search["complaints"]] == ["bob@example.com"]

    paged = client.get("/api/complaints?per_page=1&page=2", headers=auth_headers).get_json()
    assert paged["page"] == 2 and len(paged["complaints"]) == 1

    bad = client.get("/api/complaints?status=archived", headers=auth_headers)
    assert bad.status_code == 400


def test_status_transition_endpoint(client, auth_headers, make_complaint) -> None:
    complaint = make_complaint(status="pending")

    illegal = client.patch(f"/api/complaints/{complaint.id}/status", json={"status": "resolved"}, headers=auth_headers)
    assert illegal.status_code == 409
    assert illegal.get_json()["current"] == "pending"
    assert illegal.get_json()["requested"] == "resolved"

    ok = client.patch(f"/api/complaints/{complaint.id}/status", json={"status": "in-progress"}, headers=auth_headers)
    assert ok.status_code == 200
    assert ok.get_json()["complaint"]["status"] == "in-progress"

    resolved = client.patch(
        f"/api/complaints/{complaint.id}/status",
        json={"status": "resolved", "resolution": "Firmware updated"},
        headers=auth_headers,
    ).get_json()["complaint"]
    assert resolved["resolution"] == "Firmware updated"
    assert resolved["resolved_at"] is not None


def test_assignment_is_admin_only(client, auth_headers, employee_headers, make_complaint, employee) -> None:
    complaint = make_complaint(status="pending")
    payload = {"employeeId": employee.id}

    denied = client.put(f"/api/complaints/{complaint.id}/assign", json=payload, headers=employee_headers)
    assert denied.status_code == 403

    body = client.put(f"/api/complaints/{complaint.id}/assign", json=payload, headers=auth_headers).get_json()
    assert body["complaint"]["status"] == "in-progress"
    assert body["complaint"]["assigned_to"]["id"] == employee.id

    missing = client.put(f"/api/complaints/{complaint.id}/assign", json={"employeeId": "nope"}, headers=auth_headers)
    assert missing.status_code == 404


def test_notes_and_public_tracking(client, auth_headers, employee_headers, complaint_fields) -> None:
    reference = _submit(client, complaint_fields)["reference"]
    complaint_id = client.get(f"/api/complaints?q={reference}", headers=auth_headers).get_json()["complaints"][0]["id"]

    internal = client.post(f"/api/complaints/{complaint_id}/notes", json={"note": "Customer is a VIP"}, headers=auth_headers)
    assert internal.status_code == 201
    public = client.post(
        f"/api/complaints/{complaint_id}/notes",
        json={"note": "Engineer visit scheduled", "isPublic": True},
        headers=employee_headers,
    )
    assert public.status_code == 201
    assert len(public.get_json()["complaint"]["notes"]) == 2

    tracked = client.get(f"/api/complaints/track/{reference}").get_json()["complaint"]
    assert [n["note"] for n in tracked["notes"]] == ["Engineer visit scheduled"]
    assert "email" not in tracked

    empty = client.post(f"/api/complaints/{complaint_id}/notes", json={"note": ""}, headers=auth_headers)
    assert empty.status_code == 400


def test_detail_stats_and_customer_history(client, auth_headers, complaint_fields) -> None:
    reference = _submit(client, complaint_fields)["reference"]
    listing = client.get("/api/complaints", headers=auth_headers).get_json()["complaints"]
    complaint_id = listing[0]["id"]

    detail = client.get(f"/api/complaints/{complaint_id}", headers=auth_headers).get_json()["complaint"]
    assert detail["reference"] == reference
    assert detail["is_overdue"] is False
    assert detail["emails_sent"][0]["type"] == "confirmation"

    stats = client.get("/api/complaints/stats", headers=auth_headers).get_json()["stats"]
    assert stats["total"] == 1 and stats["pending"] == 1

    history = client.get("/api/complaints/customer/JANE@example.com", headers=auth_headers).get_json()["complaints"]
    assert [c["reference"] for c in history] == [reference]


def test_unknown_complaint_and_reference(client, auth_headers) -> None:
    assert client.get("/api/complaints/missing", headers=auth_headers).status_code == 404
    assert client.get("/api/complaints/track/CMP-1-123").status_code == 404


def test_json_responses_carry_security_headers(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.get_json()["database"] == "ok"


@pytest.mark.parametrize("payload", [{"status": 5}, {"status": ["resolved"]}, {}])
def test_status_must_be_a_string(client, auth_headers, make_complaint, payload) -> None:
    complaint = make_complaint(status="pending")
    response = client.patch(f"/api/complaints/{complaint.id}/status", json=payload, headers=auth_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "ValidationFailed"
    assert "status" in response.get_json()["fields"]


def test_stale_update_maps_to_conflict(client, auth_headers, make_complaint, monkeypatch) -> None:
    complaint = make_complaint(status="pending")

    def stale_save(self, entity):
        def _run():
            raise StaleDataError("UPDATE statement on table 'complaints' expected to update 1 row(s); 0 were matched.")

        return self._guard("save", _run)

    monkeypatch.setattr(SqlComplaintStore, "save", stale_save)
    response = client.patch(f"/api/complaints/{complaint.id}/status", json={"status": "closed"}, headers=auth_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "ConcurrentUpdateConflict"
    assert response.get_json()["success"] is False
