"""WTForms definitions used to validate JSON payloads for complaints, staff, and tasks."""
from typing import Mapping

from werkzeug.datastructures import MultiDict
from wtforms import DateField, Form, PasswordField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Email, Length, Optional, Regexp, ValidationError

from models import COMPLAINT_CATEGORIES, COMPLAINT_PRIORITIES, TASK_PRIORITIES, TASK_STATUSES
from utils.security import password_meets_policy


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower(value):
    return value.lower() if isinstance(value, str) else value


class ComplaintIntakeForm(Form):
    name = StringField(
        "Name",
        filters=[_strip],
        validators=[
            DataRequired(message="Customer name is required"),
            Length(min=2, max=100, message="Name must be between 2 and 100 characters"),
        ],
    )
    email = StringField(
        "Email",
        filters=[_strip, _lower],
        validators=[
            DataRequired(message="Email is required"),
            Email(message="Please enter a valid email address"),
            Length(max=255),
        ],
    )
    contact = StringField(
        "Contact",
        filters=[_strip],
        validators=[
            Optional(),
            Regexp(r"^[\d\s\-\+\(\)]{10,15}$", message="Contact number must be 10-15 characters"),
        ],
    )
    company = StringField(
        "Company",
        filters=[_strip],
        validators=[Optional(), Length(max=200, message="Company name cannot exceed 200 characters")],
    )
    category = StringField(
        "Category",
        filters=[_strip],
        validators=[
            DataRequired(message="Category is required"),
            AnyOf(COMPLAINT_CATEGORIES, message="Category must be one of: CCTV, Home Automation, Motion Works, or General"),
        ],
    )
    complaint = TextAreaField(
        "Complaint",
        filters=[_strip],
        validators=[
            DataRequired(message="Complaint description is required"),
            Length(min=10, max=2000, message="Complaint must be between 10 and 2000 characters"),
        ],
    )
    priority = StringField(
        "Priority",
        filters=[_strip, _lower],
        validators=[Optional(), AnyOf(COMPLAINT_PRIORITIES, message="Priority must be one of: low, medium, high, critical")],
    )


class NoteForm(Form):
    note = TextAreaField(
        "Note",
        filters=[_strip],
        validators=[
            DataRequired(message="Note text is required"),
            Length(max=500, message="Note cannot exceed 500 characters"),
        ],
    )


class ResolutionForm(Form):
    resolution = TextAreaField(
        "Resolution",
        filters=[_strip],
        validators=[Optional(), Length(max=1000, message="Resolution cannot exceed 1000 characters")],
    )


class DepartmentForm(Form):
    name = StringField(
        "Department",
        filters=[_strip],
        validators=[DataRequired(message="Department name is required"), Length(max=255)],
    )


class EmployeeForm(Form):
    name = StringField("Name", filters=[_strip], validators=[DataRequired(), Length(max=255)])
    department = StringField("Department", filters=[_strip], validators=[DataRequired(), Length(max=255)])
    designation = StringField("Designation", filters=[_strip], validators=[DataRequired(), Length(max=255)])
    username = StringField("Username", filters=[_strip], validators=[DataRequired(), Length(min=3, max=150)])
    password = PasswordField("Password", validators=[DataRequired(), Length(min=8, max=128)])
    email = StringField("Email", filters=[_strip, _lower], validators=[DataRequired(), Email(), Length(max=255)])
    phone = StringField("Phone", filters=[_strip], validators=[DataRequired(), Length(max=50)])
    dob = StringField(
        "Date of birth",
        filters=[_strip],
        validators=[DataRequired(), Regexp(r"^\d{2}/\d{2}/\d{4}$", message="Date of birth must be dd/mm/yyyy")],
    )
    address = TextAreaField("Address", filters=[_strip], validators=[DataRequired()])

    def validate_password(self, field):
        ok, reason = password_meets_policy(field.data or "")
        if not ok:
            raise ValidationError(reason)


class EmployeeUpdateForm(Form):
    name = StringField("Name", filters=[_strip], validators=[Optional(), Length(max=255)])
    department = StringField("Department", filters=[_strip], validators=[Optional(), Length(max=255)])
    designation = StringField("Designation", filters=[_strip], validators=[Optional(), Length(max=255)])
    email = StringField("Email", filters=[_strip, _lower], validators=[Optional(), Email(), Length(max=255)])
    phone = StringField("Phone", filters=[_strip], validators=[Optional(), Length(max=50)])
    address = TextAreaField("Address", filters=[_strip], validators=[Optional()])


class TaskForm(Form):
    title = StringField("Title", filters=[_strip], validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", filters=[_strip], validators=[Optional()])
    priority = StringField("Priority", filters=[_strip], validators=[Optional(), AnyOf(TASK_PRIORITIES)])
    status = StringField("Status", filters=[_strip], validators=[Optional(), AnyOf(TASK_STATUSES)])
    assigned_to = StringField("Assigned to", filters=[_strip], validators=[DataRequired(), Length(max=150)])
    end_date = DateField("End date", format=["%Y-%m-%d", "%d/%m/%Y"], validators=[DataRequired()])


class TaskUpdateForm(Form):
    title = StringField("Title", filters=[_strip], validators=[Optional(), Length(max=255)])
    description = TextAreaField("Description", filters=[_strip], validators=[Optional()])
    priority = StringField("Priority", filters=[_strip], validators=[Optional(), AnyOf(TASK_PRIORITIES)])
    status = StringField("Status", filters=[_strip], validators=[Optional(), AnyOf(TASK_STATUSES)])
    assigned_to = StringField("Assigned to", filters=[_strip], validators=[Optional(), Length(max=150)])
    end_date = DateField("End date", format=["%Y-%m-%d", "%d/%m/%Y"], validators=[Optional()])


class LoginForm(Form):
    username = StringField("Username", filters=[_strip], validators=[Optional(), Length(max=150)])
    email = StringField("Email", filters=[_strip, _lower], validators=[Optional(), Length(max=255)])
    password = PasswordField("Password", validators=[DataRequired(message="Password is required")])


class EmailForm(Form):
    to = StringField("To", filters=[_strip], validators=[DataRequired(), Email(message="Invalid email address provided")])
    subject = StringField("Subject", filters=[_strip], validators=[DataRequired(), Length(max=255)])
    body = TextAreaField("Body", validators=[DataRequired()])


class ConfirmationEmailForm(Form):
    to = StringField("To", filters=[_strip], validators=[DataRequired(), Email(message="Invalid email address provided")])
    name = StringField("Name", filters=[_strip], validators=[DataRequired()])
    reference = StringField("Reference", filters=[_strip], validators=[DataRequired()])
    contact = StringField("Contact", filters=[_strip], validators=[Optional()])
    company = StringField("Company", filters=[_strip], validators=[Optional()])
    category = StringField("Category", filters=[_strip], validators=[Optional()])
    complaint = TextAreaField("Complaint", filters=[_strip], validators=[Optional()])


def payload_to_formdata(payload: Mapping | None) -> MultiDict:
    """Turn a decoded JSON object into the form data WTForms expects."""
    items = []
    for key, value in (payload or {}).items():
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, bool):
            value = "y" if value else ""
        items.append((key, str(value)))
    return MultiDict(items)


def bind_form(form_cls, payload: Mapping | None):
    form = form_cls(formdata=payload_to_formdata(payload))
    form.validate()
    return form


def form_error_messages(form) -> tuple[list[str], dict[str, list[str]]]:
    fields = {name: list(errors) for name, errors in form.errors.items()}
    messages = [message for errors in fields.values() for message in errors]
    return messages, fields


def json_body(request) -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}
