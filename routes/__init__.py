"""Blueprint registration and service health endpoint."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import utcnow
from .auth import auth_bp
from .complaints import complaints_bp
from .departments import departments_bp
from .email import email_bp
from .employees import employees_bp
from .tasks import tasks_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        db.session.rollback()
        database = "unavailable"
    status = 200 if database == "ok" else 503
    return jsonify({"status": "ok" if status == 200 else "degraded", "database": database, "time": utcnow().isoformat()}), status


BLUEPRINTS = (
    (main_bp, None),
    (auth_bp, "/auth"),
    (complaints_bp, "/api/complaints"),
    (departments_bp, "/api/departments"),
    (employees_bp, "/api/employees"),
    (tasks_bp, "/api/tasks"),
    (email_bp, "/api/email"),
)


__all__ = ["main_bp", "auth_bp", "complaints_bp", "departments_bp", "employees_bp", "tasks_bp", "email_bp", "BLUEPRINTS"]
