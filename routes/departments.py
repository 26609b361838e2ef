"""Department directory API."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from extensions import db
from models import Department
from utils.complaint_lifecycle import ValidationFailed
from utils.decorators import admin_required
from utils.validators import DepartmentForm, bind_form, form_error_messages, json_body

departments_bp = Blueprint("departments", __name__)


@departments_bp.route("", methods=["POST"])
@admin_required
def create_department():
    form = bind_form(DepartmentForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))
    if Department.query.filter_by(name=form.name.data).first():
        raise ValidationFailed(["Department already exists"], {"name": ["Department already exists"]})

    department = Department(name=form.name.data)
    db.session.add(department)
    db.session.commit()
    current_app.logger.info("Department created", extra={"department_id": department.id, "department": department.name})
    return jsonify({"success": True, "message": "Department added", "department": department.to_dict()}), 201


@departments_bp.route("", methods=["GET"])
@login_required
def list_departments():
    departments = Department.query.order_by(Department.name.asc()).all()
    return jsonify({"success": True, "departments": [d.to_dict() for d in departments]})
