from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from flask import g

from app import create_app
from extensions import db
from models import Complaint, Department, Employee, Role, User
from utils.complaint_lifecycle import ComplaintLifecycle, generate_reference
from utils.complaint_store import SqlComplaintStore
from utils.email_service import NotificationResult

ADMIN_PASSWORD = "Admin@Password123"
STAFF_PASSWORD = "Staff@Pass123"


class FakeNotifier:
    """Records every send; ``fail`` or ``error`` switch the outcome."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict]] = []
        self.plain: list[tuple[str, str, str]] = []
        self.fail = False
        self.error: Exception | None = None

    def _result(self) -> NotificationResult:
        if self.error is not None:
            raise self.error
        if self.fail:
            return NotificationResult(success=False, error_message="SMTP connection refused")
        return NotificationResult(success=True, message_id=f"<msg-{len(self.sent) + len(self.plain)}@test>")

    def send(self, kind: str, snapshot: dict) -> NotificationResult:
        self.sent.append((kind, dict(snapshot)))
        return self._result()

    def send_plain(self, to: str, subject: str, body: str) -> NotificationResult:
        self.plain.append((to, subject, body))
        return self._result()

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


class Clock:
    """Controllable clock that ticks one millisecond per reading."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(milliseconds=1)
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def app(notifier):
    app = create_app("testing", notifier=notifier)

    @app.before_request
    def _forget_cached_user() -> None:
        # Requests reuse the fixture's app context, so g still holds the previous caller.
        g.pop("_login_user", None)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2024, 3, 1, 9, 0, 0))


@pytest.fixture
def store(app) -> SqlComplaintStore:
    return SqlComplaintStore(db.session)


@pytest.fixture
def lifecycle(store, notifier, clock) -> ComplaintLifecycle:
    return ComplaintLifecycle(store, notifier, clock=clock)


@pytest.fixture
def complaint_fields() -> dict:
    return {
        "name": "Jane Doe",
        "email": "Jane@Example.com",
        "category": "CCTV",
        "complaint": "Camera 3 offline since Monday",
    }


@pytest.fixture
def admin_user(app) -> User:
    return User.query.filter_by(username="admin").one()


@pytest.fixture
def make_employee(app):
    def _make(username: str = "sam", name: str = "Sam Carter", department: str = "Field Support") -> Employee:
        email = f"{username}@example.com"
        user = User(username=username, email=email, role=Role.get_or_create("Employee"))
        user.set_password(STAFF_PASSWORD)
        dept = Department.query.filter_by(name=department).first() or Department(name=department)
        employee = Employee(
            user=user,
            department=dept,
            name=name,
            designation="Technician",
            username=username,
            email=email,
            phone="5551234567",
            dob="01/02/1990",
            address="12 Main Street",
        )
        db.session.add_all([user, employee])
        db.session.commit()
        return employee

    return _make


@pytest.fixture
def employee(make_employee) -> Employee:
    return make_employee()


@pytest.fixture
def make_complaint(app, clock):
    """Insert a complaint directly in a given state and age."""

    def _make(status: str = "pending", priority: str = "medium", age_days: float = 0, **fields) -> Complaint:
        created = clock.now - timedelta(days=age_days)
        complaint = Complaint(
            name=fields.pop("name", "Jane Doe"),
            email=fields.pop("email", "jane@example.com"),
            category=fields.pop("category", "General"),
            complaint=fields.pop("complaint", "The gate sensor keeps beeping"),
            reference=generate_reference(created + timedelta(microseconds=len(Complaint.query.all()) * 1000)),
            status=status,
            priority=priority,
            created_at=created,
            updated_at=created,
            **fields,
        )
        db.session.add(complaint)
        db.session.commit()
        return complaint

    return _make


def _login(client, username: str, password: str) -> dict:
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.get_json()
    return {"Authorization": f"Bearer {response.get_json()['token']}"}


@pytest.fixture
def auth_headers(client, admin_user) -> dict:
    return _login(client, "admin", ADMIN_PASSWORD)


@pytest.fixture
def employee_headers(client, employee) -> dict:
    return _login(client, "sam", STAFF_PASSWORD)
