"""Core data models for accounts, staff directory, tasks, and the complaint lifecycle."""
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


def generate_uuid() -> str:
	return str(uuid.uuid4())


def utcnow() -> datetime:
	"""Naive UTC timestamp, matching how DateTime columns are stored."""
	return datetime.now(timezone.utc).replace(tzinfo=None)


COMPLAINT_CATEGORIES: tuple[str, ...] = (
	"CCTV",
	"Home Automation",
	"Motion Works",
	"General",
)

COMPLAINT_STATUSES: tuple[str, ...] = (
	"pending",
	"in-progress",
	"resolved",
	"closed",
)

COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"low",
	"medium",
	"high",
	"critical",
)

EMAIL_TYPES: tuple[str, ...] = (
	"confirmation",
	"update",
	"resolution",
)

EMAIL_DELIVERY_STATUSES: tuple[str, ...] = (
	"sent",
	"delivered",
	"failed",
)

TASK_PRIORITIES: tuple[str, ...] = (
	"Low",
	"Medium",
	"Hard",
	"Critical",
)

TASK_STATUSES: tuple[str, ...] = (
	"Pending",
	"In Progress",
	"Completed",
)


class Role(db.Model):
	__tablename__ = "roles"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(50), unique=True, nullable=False, index=True)
	description = db.Column(db.String(255), nullable=True)

	users = db.relationship("User", back_populates="role", lazy="dynamic")

	@staticmethod
	def get_or_create(name: str, description: str = ""):
		role = Role.query.filter_by(name=name).first()
		if role:
			return role
		role = Role(name=name, description=description)
		db.session.add(role)
		db.session.flush()
		return role


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	username = db.Column(db.String(150), unique=True, nullable=False, index=True)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	password_hash = db.Column(db.String(255), nullable=False)
	role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	last_login_at = db.Column(db.DateTime, nullable=True)

	role = db.relationship("Role", back_populates="users")
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")
	employee = db.relationship("Employee", back_populates="user", uselist=False)

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return check_password_hash(self.password_hash, password)

	@property
	def role_name(self) -> str:
		return (self.role.name if self.role else "employee").lower()

	@property
	def is_admin(self) -> bool:
		return self.role_name == "admin"

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"username": self.username,
			"email": self.email,
			"role": self.role_name,
		}


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class Department(db.Model):
	__tablename__ = "departments"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(255), unique=True, nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

	employees = db.relationship("Employee", back_populates="department", lazy="dynamic")

	def to_dict(self) -> dict:
		return {"id": self.id, "name": self.name, "created_at": self.created_at.isoformat()}


class Employee(db.Model):
	__tablename__ = "employees"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True, unique=True)
	department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True)
	name = db.Column(db.String(255), nullable=False)
	designation = db.Column(db.String(255), nullable=False)
	username = db.Column(db.String(150), unique=True, nullable=False, index=True)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	phone = db.Column(db.String(50), nullable=False)
	dob = db.Column(db.String(20), nullable=False)  # dd/mm/yyyy, kept as entered
	address = db.Column(db.Text, nullable=False)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

	user = db.relationship("User", back_populates="employee")
	department = db.relationship("Department", back_populates="employees")
	assigned_complaints = db.relationship("Complaint", back_populates="assignee", lazy="dynamic")

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"department": self.department.name if self.department else None,
			"designation": self.designation,
			"username": self.username,
			"email": self.email,
			"phone": self.phone,
			"dob": self.dob,
			"address": self.address,
		}


class Task(db.Model):
	__tablename__ = "tasks"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=True)
	priority = db.Column(db.String(20), nullable=False, default="Low")
	status = db.Column(db.String(20), nullable=False, default="Pending", index=True)
	assigned_to = db.Column(db.String(150), nullable=False, index=True)  # employee username
	end_date = db.Column(db.Date, nullable=False)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint("priority IN ('Low','Medium','Hard','Critical')", name="ck_task_priority_valid"),
		db.CheckConstraint("status IN ('Pending','In Progress','Completed')", name="ck_task_status_valid"),
	)

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"title": self.title,
			"description": self.description,
			"priority": self.priority,
			"status": self.status,
			"assigned_to": self.assigned_to,
			"end_date": self.end_date.isoformat() if self.end_date else None,
			"created_at": self.created_at.isoformat(),
			"updated_at": self.updated_at.isoformat(),
		}


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	name = db.Column(db.String(100), nullable=False)
	email = db.Column(db.String(255), nullable=False, index=True)
	contact = db.Column(db.String(15), nullable=True)
	company = db.Column(db.String(200), nullable=True)
	category = db.Column(db.String(30), nullable=False, default="General")
	complaint = db.Column(db.Text, nullable=False)
	reference = db.Column(db.String(40), nullable=False, unique=True, index=True)
	status = db.Column(db.String(20), nullable=False, default="pending", index=True)
	priority = db.Column(db.String(20), nullable=False, default="medium")
	assigned_to = db.Column(db.String(36), db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
	assigned_at = db.Column(db.DateTime, nullable=True)
	resolution = db.Column(db.String(1000), nullable=True)
	resolved_at = db.Column(db.DateTime, nullable=True)
	confirmation_email_sent = db.Column(db.Boolean, nullable=False, default=False)
	created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
	updated_at = db.Column(db.DateTime, default=utcnow, nullable=False)
	version_id = db.Column(db.Integer, nullable=False)

	__mapper_args__ = {"version_id_col": version_id}

	__table_args__ = (
		db.CheckConstraint(
			"category IN ('CCTV','Home Automation','Motion Works','General')",
			name="ck_complaint_category_valid",
		),
		db.CheckConstraint(
			"status IN ('pending','in-progress','resolved','closed')",
			name="ck_complaint_status_valid",
		),
		db.CheckConstraint(
			"priority IN ('low','medium','high','critical')",
			name="ck_complaint_priority_valid",
		),
		db.Index("ix_complaints_email_created", "email", "created_at"),
		db.Index("ix_complaints_category_status", "category", "status"),
		db.Index("ix_complaints_assignee_status", "assigned_to", "status"),
	)

	assignee = db.relationship("Employee", back_populates="assigned_complaints")
	notes = db.relationship(
		"ComplaintNote",
		back_populates="complaint",
		order_by="ComplaintNote.id",
		cascade="all, delete-orphan",
	)
	emails = db.relationship(
		"ComplaintEmail",
		back_populates="complaint",
		order_by="ComplaintEmail.id",
		cascade="all, delete-orphan",
	)
	status_history = db.relationship(
		"ComplaintStatusHistory",
		back_populates="complaint",
		order_by="ComplaintStatusHistory.id",
		cascade="all, delete-orphan",
	)

	def snapshot(self) -> dict:
		"""Customer-facing fields handed to the notification sender."""
		return {
			"reference": self.reference,
			"name": self.name,
			"email": self.email,
			"contact": self.contact,
			"company": self.company,
			"category": self.category,
			"complaint": self.complaint,
			"status": self.status,
			"resolution": self.resolution,
			"created_at": self.created_at,
		}

	def public_payload(self) -> dict:
		return {
			"reference": self.reference,
			"category": self.category,
			"status": self.status,
			"resolution": self.resolution if self.status in ("resolved", "closed") else None,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
			"notes": [note.to_dict() for note in self.notes if note.is_public],
		}

	def to_dict(self) -> dict:
		return {
			"id": self.id,
			"name": self.name,
			"email": self.email,
			"contact": self.contact,
			"company": self.company,
			"category": self.category,
			"complaint": self.complaint,
			"reference": self.reference,
			"status": self.status,
			"priority": self.priority,
			"assigned_to": (
				{"id": self.assignee.id, "name": self.assignee.name, "email": self.assignee.email}
				if self.assignee
				else None
			),
			"assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
			"resolution": self.resolution,
			"resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
			"confirmation_email_sent": self.confirmation_email_sent,
			"notes": [note.to_dict() for note in self.notes],
			"emails_sent": [email.to_dict() for email in self.emails],
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}


class ComplaintNote(db.Model):
	__tablename__ = "complaint_notes"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	note = db.Column(db.String(500), nullable=False)
	author_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	is_public = db.Column(db.Boolean, nullable=False, default=False)
	added_at = db.Column(db.DateTime, default=utcnow, nullable=False)

	complaint = db.relationship("Complaint", back_populates="notes")
	author = db.relationship("User")

	def to_dict(self) -> dict:
		return {
			"note": self.note,
			"added_by": self.author_id,
			"added_at": self.added_at.isoformat() if self.added_at else None,
			"is_public": self.is_public,
		}


class ComplaintEmail(db.Model):
	__tablename__ = "complaint_emails"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	email_type = db.Column(db.String(20), nullable=False)
	status = db.Column(db.String(20), nullable=False, default="sent")
	message_id = db.Column(db.String(255), nullable=True)
	error_message = db.Column(db.Text, nullable=True)
	sent_at = db.Column(db.DateTime, default=utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint("email_type IN ('confirmation','update','resolution')", name="ck_complaint_email_type"),
		db.CheckConstraint("status IN ('sent','delivered','failed')", name="ck_complaint_email_status"),
	)

	complaint = db.relationship("Complaint", back_populates="emails")

	def to_dict(self) -> dict:
		return {
			"type": self.email_type,
			"status": self.status,
			"message_id": self.message_id,
			"error_message": self.error_message,
			"sent_at": self.sent_at.isoformat() if self.sent_at else None,
		}


class ComplaintStatusHistory(db.Model):
	__tablename__ = "complaint_status_history"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	previous_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=False, index=True)
	remarks = db.Column(db.String(500), nullable=True)
	changed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	changed_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

	complaint = db.relationship("Complaint", back_populates="status_history")
	actor = db.relationship("User")
