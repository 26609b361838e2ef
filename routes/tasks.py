"""Staff task board API."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from extensions import db
from models import Employee, Task
from utils.complaint_lifecycle import NotFound, ValidationFailed
from utils.validators import TaskForm, TaskUpdateForm, bind_form, form_error_messages, json_body

tasks_bp = Blueprint("tasks", __name__)


def _assignee_username(value: str) -> str:
    """Accept either an employee id or a username; tasks store the username."""
    employee = db.session.get(Employee, value)
    return employee.username if employee is not None else value


def _task_or_404(task_id: str) -> Task:
    task = db.session.get(Task, str(task_id))
    if task is None:
        raise NotFound("Task", task_id)
    return task


@tasks_bp.route("", methods=["POST"])
@login_required
def create_task():
    form = bind_form(TaskForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))

    task = Task(
        title=form.title.data,
        description=form.description.data or None,
        priority=form.priority.data or "Low",
        status=form.status.data or "Pending",
        assigned_to=_assignee_username(form.assigned_to.data),
        end_date=form.end_date.data,
    )
    db.session.add(task)
    db.session.commit()
    current_app.logger.info(
        "Task created", extra={"task_id": task.id, "assigned_to": task.assigned_to, "by": current_user.username}
    )
    return jsonify({"success": True, "task": task.to_dict()}), 201


@tasks_bp.route("", methods=["GET"])
@login_required
def list_tasks():
    query = Task.query
    status = request.args.get("status")
    if status:
        query = query.filter(Task.status == status)
    if not current_user.is_admin:
        query = query.filter(Task.assigned_to == current_user.username)
    elif request.args.get("assignedTo"):
        query = query.filter(Task.assigned_to == request.args["assignedTo"])
    tasks = query.order_by(Task.end_date.asc()).all()
    return jsonify({"success": True, "tasks": [t.to_dict() for t in tasks]})


@tasks_bp.route("/<string:task_id>", methods=["PUT"])
@login_required
def update_task(task_id):
    task = _task_or_404(task_id)
    form = bind_form(TaskUpdateForm, json_body(request))
    if form.errors:
        raise ValidationFailed(*form_error_messages(form))

    for field in ("title", "description", "priority", "status", "end_date"):
        value = getattr(form, field).data
        if value:
            setattr(task, field, value)
    if form.assigned_to.data:
        task.assigned_to = _assignee_username(form.assigned_to.data)

    db.session.commit()
    current_app.logger.info("Task updated", extra={"task_id": task.id, "by": current_user.username})
    return jsonify({"success": True, "task": task.to_dict()})


@tasks_bp.route("/<string:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    task = _task_or_404(task_id)
    db.session.delete(task)
    db.session.commit()
    current_app.logger.info("Task deleted", extra={"task_id": task_id, "by": current_user.username})
    return jsonify({"success": True, "message": "Task deleted"})
