"""Complaint intake, tracking, and staff workflow API."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from utils.complaint_lifecycle import build_lifecycle, complaint_summary
from utils.decorators import admin_required
from utils.validators import json_body

complaints_bp = Blueprint("complaints", __name__)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


@complaints_bp.route("", methods=["POST"])
def submit_complaint():
    result = build_lifecycle().submit_complaint(json_body(request))
    payload = {"success": True, "message": "Complaint submitted successfully"}
    payload.update(result.to_dict())
    return jsonify(payload), 201


@complaints_bp.route("", methods=["GET"])
@login_required
def list_complaints():
    args = request.args
    default_per_page = int(current_app.config.get("COMPLAINTS_PER_PAGE", 20))
    page = build_lifecycle().list_complaints(
        status=args.get("status"),
        assigned_to=args.get("assignedTo"),
        assigned_email=args.get("assignedEmail"),
        category=args.get("category"),
        priority=args.get("priority"),
        search=args.get("q"),
        page=args.get("page", 1, type=int),
        per_page=args.get("per_page", default_per_page, type=int),
    )
    return jsonify(
        {
            "success": True,
            "complaints": [complaint.to_dict() for complaint in page["items"]],
            "total": page["total"],
            "page": page["page"],
            "per_page": page["per_page"],
        }
    )


@complaints_bp.route("/stats", methods=["GET"])
@login_required
def complaint_statistics():
    return jsonify({"success": True, "stats": build_lifecycle().get_statistics()})


@complaints_bp.route("/track/<string:reference>", methods=["GET"])
def track_complaint(reference):
    complaint = build_lifecycle().get_by_reference(reference)
    return jsonify({"success": True, "complaint": complaint.public_payload()})


@complaints_bp.route("/customer/<string:email>", methods=["GET"])
@login_required
def customer_complaints(email):
    complaints = build_lifecycle().find_by_customer(email)
    return jsonify({"success": True, "complaints": [complaint_summary(c) for c in complaints]})


@complaints_bp.route("/<string:complaint_id>", methods=["GET"])
@login_required
def complaint_detail(complaint_id):
    complaint = build_lifecycle().get_complaint(complaint_id)
    payload = complaint.to_dict()
    payload.update({k: v for k, v in complaint_summary(complaint).items() if k in ("age_in_days", "is_overdue")})
    return jsonify({"success": True, "complaint": payload})


@complaints_bp.route("/<string:complaint_id>/status", methods=["PATCH"])
@login_required
def update_status(complaint_id):
    body = json_body(request)
    complaint = build_lifecycle().transition_status(
        complaint_id,
        body.get("status"),
        resolution=body.get("resolution"),
        actor_id=current_user.id,
    )
    return jsonify(
        {"success": True, "message": f"Complaint status updated to {complaint.status}", "complaint": complaint.to_dict()}
    )


@complaints_bp.route("/<string:complaint_id>/assign", methods=["PUT"])
@admin_required
def assign_complaint(complaint_id):
    body = json_body(request)
    complaint = build_lifecycle().assign_complaint(complaint_id, body.get("employeeId"), actor_id=current_user.id)
    return jsonify({"success": True, "message": "Complaint assigned successfully", "complaint": complaint.to_dict()})


@complaints_bp.route("/<string:complaint_id>/notes", methods=["POST"])
@login_required
def add_note(complaint_id):
    body = json_body(request)
    complaint = build_lifecycle().add_note(
        complaint_id,
        body.get("note"),
        author_id=current_user.id,
        is_public=_as_bool(body.get("isPublic", False)),
    )
    return jsonify({"success": True, "message": "Note added successfully", "complaint": complaint.to_dict()}), 201
