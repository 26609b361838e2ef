"""Ad hoc customer email endpoints used by support staff."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from utils.complaint_lifecycle import ValidationFailed
from utils.validators import ConfirmationEmailForm, EmailForm, bind_form, form_error_messages, json_body

email_bp = Blueprint("email", __name__)


def _delivery_response(result, success_message: str):
    if not result.success:
        return jsonify({"success": False, "message": result.error_message or "Failed to send email"}), 500
    return jsonify({"success": True, "message": success_message, "messageId": result.message_id})


@email_bp.route("/send-email", methods=["POST"])
@login_required
def send_email():
    form = bind_form(EmailForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))
    notifier = current_app.extensions["crm_notifier"]
    result = notifier.send_plain(form.to.data, form.subject.data, form.body.data)
    return _delivery_response(result, "Email sent successfully")


@email_bp.route("/send-confirmation", methods=["POST"])
@login_required
def send_confirmation():
    form = bind_form(ConfirmationEmailForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))
    snapshot = {
        "reference": form.reference.data,
        "name": form.name.data,
        "email": form.to.data,
        "contact": form.contact.data or None,
        "company": form.company.data or None,
        "category": form.category.data or "General",
        "complaint": form.complaint.data or "",
        "status": "pending",
        "resolution": None,
        "created_at": None,
    }
    result = current_app.extensions["crm_notifier"].send("confirmation", snapshot)
    return _delivery_response(result, "Confirmation email sent successfully")
