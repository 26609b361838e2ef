"""Employee directory API; every employee gets a login with the Employee role."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required
from sqlalchemy import or_

from extensions import db
from models import Department, Employee, Role, User
from utils.complaint_lifecycle import NotFound, ValidationFailed
from utils.decorators import admin_required
from utils.validators import EmployeeForm, EmployeeUpdateForm, bind_form, form_error_messages, json_body

employees_bp = Blueprint("employees", __name__)


def _department_named(name: str) -> Department:
    department = Department.query.filter_by(name=name).first()
    if department is None:
        department = Department(name=name)
        db.session.add(department)
    return department


def _employee_or_404(employee_id: str) -> Employee:
    employee = db.session.get(Employee, str(employee_id))
    if employee is None:
        raise NotFound("Employee", employee_id)
    return employee


@employees_bp.route("", methods=["POST"])
@admin_required
def create_employee():
    form = bind_form(EmployeeForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))

    username, email = form.username.data, form.email.data
    taken = (
        Employee.query.filter(or_(Employee.username == username, Employee.email == email)).first()
        or User.query.filter(or_(User.username == username, User.email == email)).first()
    )
    if taken:
        raise ValidationFailed(["Username or email already exists"], {"username": ["Username or email already exists"]})

    user = User(username=username, email=email, role=Role.get_or_create("Employee", description="Support staff"))
    user.set_password(form.password.data)
    employee = Employee(
        user=user,
        department=_department_named(form.department.data),
        name=form.name.data,
        designation=form.designation.data,
        username=username,
        email=email,
        phone=form.phone.data,
        dob=form.dob.data,
        address=form.address.data,
    )
    db.session.add_all([user, employee])
    db.session.commit()
    current_app.logger.info("Employee created", extra={"employee_id": employee.id, "username": username})
    return jsonify({"success": True, "message": "Employee added successfully", "employee": employee.to_dict()}), 201


@employees_bp.route("", methods=["GET"])
@login_required
def list_employees():
    employees = Employee.query.order_by(Employee.name.asc()).all()
    return jsonify({"success": True, "employees": [e.to_dict() for e in employees]})


@employees_bp.route("/<string:employee_id>", methods=["GET"])
@login_required
def employee_detail(employee_id):
    return jsonify({"success": True, "employee": _employee_or_404(employee_id).to_dict()})


@employees_bp.route("/<string:employee_id>", methods=["PUT"])
@admin_required
def update_employee(employee_id):
    employee = _employee_or_404(employee_id)
    form = bind_form(EmployeeUpdateForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))

    if form.email.data and form.email.data != employee.email:
        clash = Employee.query.filter(Employee.email == form.email.data, Employee.id != employee.id).first() or (
            User.query.filter(User.email == form.email.data, User.id != employee.user_id).first()
        )
        if clash:
            raise ValidationFailed(["Email already exists"], {"email": ["Email already exists"]})
        employee.email = form.email.data
        if employee.user is not None:
            employee.user.email = form.email.data
    for field in ("name", "designation", "phone", "address"):
        value = getattr(form, field).data
        if value:
            setattr(employee, field, value)
    if form.department.data:
        employee.department = _department_named(form.department.data)

    db.session.commit()
    current_app.logger.info("Employee updated", extra={"employee_id": employee.id})
    return jsonify({"success": True, "message": "Employee updated successfully", "employee": employee.to_dict()})
