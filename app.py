"""Flask application factory for the CRM complaint-handling service."""
import json
import os
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy.engine.url import make_url
from werkzeug.exceptions import HTTPException

from extensions import db, migrate, login_manager
from utils.complaint_lifecycle import ComplaintWorkflowError, InfrastructureError
from utils.email_service import SmtpNotifier
from utils.logger import init_logging
from utils.security import TokenError, apply_security_headers, bearer_token, decode_access_token


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ComplaintWorkflowError)
    def workflow_error(error):
        if isinstance(error, InfrastructureError):
            app.logger.error("Infrastructure failure", exc_info=error, extra={"path": request.path})
        else:
            app.logger.info(
                "Request rejected",
                extra={"path": request.path, "error": type(error).__name__, "detail": error.message},
            )
        return jsonify(error.to_dict()), error.status_code

    def _http_error(error: HTTPException, message: str):
        app.logger.warning(
            f"{error.code} {error.name}", extra={"path": request.path, "method": request.method}
        )
        return jsonify({"success": False, "error": error.name, "message": message}), error.code

    @app.errorhandler(401)
    def unauthorized(error):
        return _http_error(error, "Authentication required")

    @app.errorhandler(403)
    def forbidden(error):
        return _http_error(error, "Access denied")

    @app.errorhandler(404)
    def not_found_error(error):
        return _http_error(error, "Resource not found")

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _http_error(error, "Method not allowed")

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"success": False, "error": "Internal Server Error", "message": "Internal server error"}), 500


def ensure_default_roles_and_admin(app: Flask) -> None:
    """Ensure baseline roles exist and a default admin can log in without registering."""
    from models import Role, User  # Local import to avoid circular dependency

    admin_role = Role.get_or_create("Admin", description="CRM administrator with full privileges")
    Role.get_or_create("Employee", description="Support staff handling complaints and tasks")
    db.session.commit()

    admin_username = (app.config.get("DEFAULT_ADMIN_USERNAME") or "").strip()
    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_username or not admin_email or not admin_password:
        return

    admin_user = User.query.filter((User.username == admin_username) | (User.email == admin_email)).first()
    if admin_user:
        if admin_user.role != admin_role or not admin_user.is_active:
            admin_user.role = admin_role
            admin_user.is_active = True
            db.session.commit()
        return

    admin_user = User(username=admin_username, email=admin_email, role=admin_role, is_active=True)
    admin_user.set_password(admin_password)
    db.session.add(admin_user)
    db.session.commit()
    app.logger.info("Default admin account created", extra={"username": admin_username})


def ensure_database_directory(database_uri: str) -> None:
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database:
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def create_app(config_name: Optional[str] = None, notifier=None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    ensure_database_directory(app.config["SQLALCHEMY_DATABASE_URI"])

    # Optional instance-specific overrides
    if not app.testing:
        app.config.from_pyfile("config.py", silent=True)
    os.makedirs(app.instance_path, exist_ok=True)

    logger = init_logging(app)
    app.logger = logger

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @login_manager.request_loader
    def load_user_from_request(req):
        from models import User  # Local import to avoid circular dependency

        token = bearer_token(req.headers)
        if not token:
            return None
        try:
            claims = decode_access_token(token)
        except TokenError as exc:
            app.logger.info("Rejected bearer token", extra={"reason": str(exc), "path": req.path})
            return None
        return db.session.get(User, str(claims.get("sub")))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "Unauthorized", "message": "Authentication required"}), 401

    app.extensions["crm_notifier"] = notifier or SmtpNotifier.from_config(app.config, logger=logger)

    from routes import BLUEPRINTS

    for blueprint, prefix in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=prefix)

    @app.cli.command("complaints-stats")
    def complaints_stats():
        """Print complaint counts by status, overdue count, and the most recent complaints."""
        from utils.complaint_lifecycle import build_lifecycle

        click.echo(json.dumps(build_lifecycle().get_statistics(), indent=2))

    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response)

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_roles_and_admin(app)

    return app
