from __future__ import annotations

import pytest

from models import Employee, User

NEW_EMPLOYEE = {
    "name": "Priya Nair",
    "department": "Installations",
    "designation": "Engineer",
    "username": "priya",
    "password": "Install@2024",
    "email": "Priya@Example.com",
    "phone": "5559876543",
    "dob": "14/07/1992",
    "address": "4 Harbour Road",
}


def test_departments_create_list_and_duplicate(client, auth_headers) -> None:
    for name in ("Sales", "Billing"):
        assert client.post("/api/departments", json={"name": name}, headers=auth_headers).status_code == 201

    duplicate = client.post("/api/departments", json={"name": "Sales"}, headers=auth_headers)
    assert duplicate.status_code == 400

    names = [d["name"] for d in client.get("/api/departments", headers=auth_headers).get_json()["departments"]]
    assert names == ["Billing", "Sales"]


def test_employee_creation_provisions_login(client, auth_headers) -> None:
    response = client.post("/api/employees", json=NEW_EMPLOYEE, headers=auth_headers)
    assert response.status_code == 201
    created = response.get_json()["employee"]
    assert created["email"] == "priya@example.com"
    assert created["department"] == "Installations"

    user = User.query.filter_by(username="priya").one()
    assert user.role_name == "employee"
    assert user.password_hash != NEW_EMPLOYEE["password"]

    login = client.post("/auth/login", json={"username": "priya", "password": NEW_EMPLOYEE["password"]})
    assert login.status_code == 200


def test_employee_validation_and_uniqueness(client, auth_headers, employee) -> None:
    taken = dict(NEW_EMPLOYEE, username="sam")
    assert client.post("/api/employees", json=taken, headers=auth_headers).status_code == 400

    bad_dob = dict(NEW_EMPLOYEE, dob="1992-07-14")
    response = client.post("/api/employees", json=bad_dob, headers=auth_headers)
    assert response.status_code == 400
    assert "dob" in response.get_json()["fields"]


def test_employee_writes_are_admin_only(client, employee_headers) -> None:
    assert client.post("/api/employees", json=NEW_EMPLOYEE, headers=employee_headers).status_code == 403


def test_employee_read_and_partial_update(client, auth_headers, employee) -> None:
    listing = client.get("/api/employees", headers=auth_headers).get_json()["employees"]
    assert [e["username"] for e in listing] == ["sam"]

    updated = client.put(
        f"/api/employees/{employee.id}", json={"designation": "Senior Technician"}, headers=auth_headers
    ).get_json()["employee"]
    assert updated["designation"] == "Senior Technician"
    assert updated["phone"] == "5551234567"

    assert client.get("/api/employees/unknown", headers=auth_headers).status_code == 404


def test_tasks_lifecycle_and_visibility(client, auth_headers, employee_headers, employee) -> None:
    created = client.post(
        "/api/tasks",
        json={"title": "Replace DVR", "priority": "Hard", "assigned_to": employee.id, "end_date": "2024-04-01"},
        headers=auth_headers,
    )
    assert created.status_code == 201
    task = created.get_json()["task"]
    assert task["assigned_to"] == "sam"
    assert task["status"] == "Pending"

    client.post(
        "/api/tasks",
        json={"title": "Quarterly audit", "assigned_to": "someone-else", "end_date": "15/04/2024"},
        headers=auth_headers,
    )

    assert len(client.get("/api/tasks", headers=auth_headers).get_json()["tasks"]) == 2
    mine = client.get("/api/tasks", headers=employee_headers).get_json()["tasks"]
    assert [t["title"] for t in mine] == ["Replace DVR"]

    updated = client.put(f"/api/tasks/{task['id']}", json={"status": "Completed"}, headers=employee_headers)
    assert updated.get_json()["task"]["status"] == "Completed"

    assert client.delete(f"/api/tasks/{task['id']}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/tasks/{task['id']}", headers=auth_headers).status_code == 404


def test_task_validation(client, auth_headers) -> None:
    response = client.post(
        "/api/tasks",
        json={"title": "Bad", "priority": "Urgent", "assigned_to": "sam", "end_date": "2024-04-01"},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert "priority" in response.get_json()["fields"]
    assert client.post("/api/tasks", json={"title": "No date", "assigned_to": "sam"}, headers=auth_headers).status_code == 400


def test_employee_model_links_user(employee) -> None:
    assert Employee.query.one().user.username == "sam"


@pytest.mark.parametrize("password", ["alllowercase1", "NoDigitsHere", "Sh0rt"])
def test_employee_password_policy(client, auth_headers, password) -> None:
    response = client.post("/api/employees", json=dict(NEW_EMPLOYEE, password=password), headers=auth_headers)
    assert response.status_code == 400
    assert "password" in response.get_json()["fields"]
    assert User.query.filter_by(username="priya").first() is None


def test_employee_email_change_cannot_take_an_account_email(client, auth_headers, employee) -> None:
    response = client.put(f"/api/employees/{employee.id}", json={"email": "admin@example.com"}, headers=auth_headers)
    assert response.status_code == 400
    assert "email" in response.get_json()["fields"]

    moved = client.put(f"/api/employees/{employee.id}", json={"email": "sam.carter@example.com"}, headers=auth_headers)
    assert moved.get_json()["employee"]["email"] == "sam.carter@example.com"
    assert employee.user.email == "sam.carter@example.com"
