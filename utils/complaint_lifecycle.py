"""Complaint lifecycle engine: intake, reference numbers, status workflow, assignment, notes, and statistics.

The engine owns every rule that governs a complaint once it exists. Storage and
email delivery are collaborators handed to the constructor:

* ``store`` exposes ``find``/``find_one``/``count``/``save`` plus
  ``reference_exists``, ``get_employee`` and ``get_user``
  (see ``utils.complaint_store.SqlComplaintStore``).
* ``notifier`` exposes ``send(kind, snapshot) -> NotificationResult`` and must
  not raise for ordinary delivery failures
  (see ``utils.email_service.SmtpNotifier``).

Timestamps and derived values (age, overdue) are computed by the explicit
helpers below rather than by ORM hooks, so every stamp happens at a known
point in the workflow.
"""
from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from flask import current_app

from extensions import db
from models import (
    COMPLAINT_STATUSES,
    Complaint,
    ComplaintEmail,
    ComplaintNote,
    ComplaintStatusHistory,
    utcnow,
)
from utils.email_service import NotificationResult
from utils.validators import ComplaintIntakeForm, NoteForm, ResolutionForm, bind_form, form_error_messages

REFERENCE_PREFIX = "CMP"
REFERENCE_MAX_ATTEMPTS = 5
REFERENCE_PATTERN = re.compile(r"^CMP-\d+-\d{3}$")

STATUS_TRANSITIONS: Dict[str, tuple[str, ...]] = {
    "pending": ("in-progress", "closed"),
    "in-progress": ("resolved", "pending", "closed"),
    "resolved": ("closed",),
    "closed": (),
}

OPEN_STATUSES: tuple[str, ...] = ("pending", "in-progress")
URGENT_PRIORITIES: tuple[str, ...] = ("high", "critical")
OVERDUE_DAYS_URGENT = 3
OVERDUE_DAYS_DEFAULT = 7


class ComplaintWorkflowError(Exception):
    """Base class for failures reported to callers of the lifecycle engine."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": type(self).__name__, "message": self.message}


class ValidationFailed(ComplaintWorkflowError):
    status_code = 400

    def __init__(self, errors: List[str], fields: Optional[Dict[str, List[str]]] = None) -> None:
        self.errors = list(errors)
        self.fields = dict(fields or {})
        super().__init__("; ".join(self.errors) or "Validation failed")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({"errors": self.errors, "fields": self.fields})
        return payload


class InvalidStatusTransition(ComplaintWorkflowError):
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change status from {current} to {requested}")

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update({"current": self.current, "requested": self.requested})
        return payload


class ReferenceGenerationExhausted(ComplaintWorkflowError):
    status_code = 503


class NotFound(ComplaintWorkflowError):
    status_code = 404

    def __init__(self, entity: str, identifier=None) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")


class ConcurrentUpdateConflict(ComplaintWorkflowError):
    status_code = 409


class InfrastructureError(ComplaintWorkflowError):
    status_code = 500

    def to_dict(self) -> dict:
        return {"success": False, "error": type(self).__name__, "message": "Internal server error"}


def generate_reference(now: Optional[datetime] = None) -> str:
    """Return a ``CMP-<epoch-millis>-<3 digits>`` candidate; uniqueness is checked by the caller."""
    moment = now or utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    millis = int(moment.timestamp() * 1000)
    return f"{REFERENCE_PREFIX}-{millis}-{secrets.randbelow(1000):03d}"


def is_valid_transition(current: str, requested: str) -> bool:
    return requested in STATUS_TRANSITIONS.get(current, ())


def age_in_days(complaint: Complaint, now: Optional[datetime] = None) -> int:
    if complaint.created_at is None:
        return 0
    delta = (now or utcnow()) - complaint.created_at
    return max(delta.days, 0)


def is_overdue(complaint: Complaint, now: Optional[datetime] = None) -> bool:
    if complaint.status not in OPEN_STATUSES:
        return False
    limit = OVERDUE_DAYS_URGENT if complaint.priority in URGENT_PRIORITIES else OVERDUE_DAYS_DEFAULT
    return age_in_days(complaint, now) > limit


def touch(complaint: Complaint, now: datetime) -> None:
    complaint.updated_at = now


def complaint_summary(complaint: Complaint, now: Optional[datetime] = None) -> dict:
    return {
        "id": complaint.id,
        "reference": complaint.reference,
        "name": complaint.name,
        "category": complaint.category,
        "status": complaint.status,
        "priority": complaint.priority,
        "age_in_days": age_in_days(complaint, now),
        "is_overdue": is_overdue(complaint, now),
        "created_at": complaint.created_at.isoformat() if complaint.created_at else None,
    }


@dataclass(frozen=True)
class SubmissionResult:
    reference: str
    status: str
    email_sent: bool
    complaint: Complaint

    def to_dict(self) -> dict:
        return {"reference": self.reference, "status": self.status, "emailSent": self.email_sent}


class ComplaintLifecycle:
    def __init__(
        self,
        store,
        notifier,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        recent_limit: int = 5,
        notify_on_resolution: bool = True,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utcnow
        self.recent_limit = recent_limit
        self.notify_on_resolution = notify_on_resolution

    # -- references -----------------------------------------------------

    def allocate_reference(self) -> str:
        for attempt in range(1, REFERENCE_MAX_ATTEMPTS + 1):
            candidate = generate_reference(self.clock())
            if not self.store.reference_exists(candidate):
                return candidate
            self.logger.warning("Complaint reference collision", extra={"reference": candidate, "attempt": attempt})
        raise ReferenceGenerationExhausted(
            f"Could not allocate a unique complaint reference after {REFERENCE_MAX_ATTEMPTS} attempts"
        )

    # -- lookups --------------------------------------------------------

    def get_complaint(self, complaint_id) -> Complaint:
        complaint = self.store.find_one({"id": str(complaint_id)}) if complaint_id else None
        if complaint is None:
            raise NotFound("Complaint", complaint_id)
        return complaint

    def get_by_reference(self, reference: str) -> Complaint:
        normalized = (reference or "").strip().upper()
        complaint = self.store.find_one({"reference": normalized}) if normalized else None
        if complaint is None:
            raise NotFound("Complaint", reference)
        return complaint

    def find_by_customer(self, email: str) -> List[Complaint]:
        return self.store.find({"email": (email or "").strip().lower()})

    def list_complaints(
        self,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        assigned_email: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        filters: Dict[str, object] = {}
        if status:
            status = status.strip().lower()
            if status not in COMPLAINT_STATUSES:
                raise ValidationFailed(
                    [f"Invalid status. Must be one of: {', '.join(COMPLAINT_STATUSES)}"],
                    {"status": ["Invalid status"]},
                )
            filters["status"] = status
        if assigned_to:
            filters["assigned_to"] = str(assigned_to)
        if assigned_email:
            employee_ids = [employee.id for employee in self.store.employees_by_email(assigned_email)]
            if not employee_ids:
                return {"items": [], "total": 0, "page": page, "per_page": per_page}
            filters["assigned_to"] = employee_ids
        if category:
            filters["category"] = category
        if priority:
            filters["priority"] = priority.strip().lower()
        if search:
            filters["search"] = search.strip()

        page = max(int(page or 1), 1)
        per_page = max(1, min(int(per_page or 20), 100))
        total = self.store.count(filters)
        items = self.store.find(filters, limit=per_page, offset=(page - 1) * per_page)
        return {"items": items, "total": total, "page": page, "per_page": per_page}

    # -- submission -----------------------------------------------------

    def validate_submission(self, fields: Mapping) -> dict:
        form = bind_form(ComplaintIntakeForm, fields)
        if form.errors:
            raise ValidationFailed(*form_error_messages(form))
        return form.data

    def submit_complaint(self, fields: Mapping) -> SubmissionResult:
        data = self.validate_submission(fields)
        reference = self.allocate_reference()
        now = self.clock()
        complaint = Complaint(
            name=data["name"],
            email=data["email"],
            contact=data.get("contact") or None,
            company=data.get("company") or None,
            category=data["category"],
            complaint=data["complaint"],
            priority=data.get("priority") or "medium",
            reference=reference,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        complaint.status_history.append(
            ComplaintStatusHistory(
                previous_status=None,
                new_status="pending",
                remarks="Complaint submitted by customer",
                changed_at=now,
            )
        )
        self.store.save(complaint)
        self.logger.info(
            "Complaint submitted",
            extra={"complaint_id": complaint.id, "reference": reference, "category": complaint.category},
        )

        email_sent = self._notify(complaint, "confirmation")
        return SubmissionResult(reference=reference, status=complaint.status, email_sent=email_sent, complaint=complaint)

    # -- status workflow ------------------------------------------------

    def _apply_status(self, complaint: Complaint, new_status: str, now: datetime, actor_id=None, remarks: Optional[str] = None) -> None:
        complaint.status_history.append(
            ComplaintStatusHistory(
                previous_status=complaint.status,
                new_status=new_status,
                remarks=remarks,
                changed_by=str(actor_id) if actor_id else None,
                changed_at=now,
            )
        )
        complaint.status = new_status
        touch(complaint, now)

    def transition_status(self, complaint_id, new_status: str, resolution: Optional[str] = None, actor_id=None) -> Complaint:
        if not isinstance(new_status, str) or not new_status.strip():
            raise ValidationFailed(["Status is required"], {"status": ["Status must be a non-empty string"]})
        complaint = self.get_complaint(complaint_id)
        requested = new_status.strip().lower()
        current = complaint.status
        if not is_valid_transition(current, requested):
            raise InvalidStatusTransition(current, requested)

        if resolution is not None:
            form = bind_form(ResolutionForm, {"resolution": resolution})
            if form.errors:
                raise ValidationFailed(*form_error_messages(form))
            resolution = form.resolution.data

        now = self.clock()
        remarks = resolution[:500] if requested == "resolved" and resolution else None
        self._apply_status(complaint, requested, now, actor_id, remarks=remarks)
        if requested == "resolved":
            if resolution:
                complaint.resolution = resolution
            if complaint.resolved_at is None:
                complaint.resolved_at = now
        self.store.save(complaint)
        self.logger.info(
            "Complaint status changed",
            extra={"complaint_id": complaint.id, "from": current, "to": requested, "actor": actor_id},
        )

        if requested == "resolved" and self.notify_on_resolution:
            self._notify(complaint, "resolution")
        return complaint

    # -- assignment and notes -------------------------------------------

    def assign_complaint(self, complaint_id, employee_id, actor_id=None) -> Complaint:
        if not employee_id:
            raise ValidationFailed(["Employee ID is required"], {"employeeId": ["Employee ID is required"]})
        complaint = self.get_complaint(complaint_id)
        employee = self.store.get_employee(employee_id)
        if employee is None:
            raise NotFound("Employee", employee_id)

        now = self.clock()
        complaint.assignee = employee
        # Reassignment keeps the original assignment timestamp.
        if complaint.assigned_at is None:
            complaint.assigned_at = now
        if complaint.status == "pending":
            self._apply_status(complaint, "in-progress", now, actor_id, remarks=f"Assigned to {employee.name}")
        touch(complaint, now)
        self.store.save(complaint)
        self.logger.info(
            "Complaint assigned",
            extra={"complaint_id": complaint.id, "employee_id": employee.id, "actor": actor_id},
        )
        return complaint

    def add_note(self, complaint_id, text: str, author_id, is_public: bool = False) -> Complaint:
        form = bind_form(NoteForm, {"note": text})
        if form.errors:
            raise ValidationFailed(*form_error_messages(form))
        complaint = self.get_complaint(complaint_id)
        if not author_id or self.store.get_user(author_id) is None:
            raise NotFound("Author", author_id)

        now = self.clock()
        complaint.notes.append(
            ComplaintNote(note=form.note.data, author_id=str(author_id), is_public=bool(is_public), added_at=now)
        )
        touch(complaint, now)
        self.store.save(complaint)
        self.logger.info(
            "Complaint note added",
            extra={"complaint_id": complaint.id, "author": author_id, "is_public": bool(is_public)},
        )
        return complaint

    # -- email tracking -------------------------------------------------

    def track_email(self, complaint: Complaint, email_type: str, result: NotificationResult) -> ComplaintEmail:
        now = self.clock()
        record = ComplaintEmail(
            email_type=email_type,
            status="sent" if result.success else "failed",
            message_id=result.message_id,
            error_message=result.error_message,
            sent_at=now,
        )
        complaint.emails.append(record)
        if email_type == "confirmation" and result.success:
            complaint.confirmation_email_sent = True
        touch(complaint, now)
        return record

    def _notify(self, complaint: Complaint, email_type: str) -> bool:
        try:
            result = self.notifier.send(email_type, complaint.snapshot())
        except Exception as exc:
            self.logger.exception(
                "Notification sender raised",
                extra={"complaint_id": complaint.id, "email_type": email_type},
            )
            result = NotificationResult(success=False, error_message=str(exc) or type(exc).__name__)

        try:
            self.track_email(complaint, email_type, result)
            self.store.save(complaint)
        except (InfrastructureError, ConcurrentUpdateConflict):
            self.logger.warning(
                "Email tracking record not saved",
                extra={"complaint_id": complaint.id, "email_type": email_type, "delivered": result.success},
            )
        return result.success

    # -- statistics -----------------------------------------------------

    def get_statistics(self) -> dict:
        total = self.store.count()
        pending = self.store.count({"status": "pending"})
        in_progress = self.store.count({"status": "in-progress"})
        resolved = self.store.count({"status": "resolved"})

        now = self.clock()
        overdue = sum(1 for complaint in self.store.find({"status": OPEN_STATUSES}) if is_overdue(complaint, now))
        recent = self.store.find(limit=self.recent_limit)
        return {
            "total": total,
            "pending": pending,
            "inProgress": in_progress,
            "resolved": resolved,
            "closed": total - pending - in_progress - resolved,
            "overdue": overdue,
            "recent": [complaint_summary(complaint, now) for complaint in recent],
        }


def build_lifecycle() -> ComplaintLifecycle:
    """Wire the engine to the app's database session and notifier."""
    from utils.complaint_store import SqlComplaintStore  # Local import to avoid circular dependency

    return ComplaintLifecycle(
        store=SqlComplaintStore(db.session, logger=current_app.logger),
        notifier=current_app.extensions["crm_notifier"],
        logger=current_app.logger,
        recent_limit=int(current_app.config.get("RECENT_COMPLAINTS_LIMIT", 5)),
        notify_on_resolution=bool(current_app.config.get("NOTIFY_ON_RESOLUTION", True)),
    )
