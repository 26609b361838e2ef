"""Authentication blueprint issuing bearer tokens for the staff API."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy import func

from extensions import db
from models import User, utcnow
from utils.decorators import record_audit
from utils.security import TokenError, bearer_token, decode_access_token, issue_access_token
from utils.validators import LoginForm, bind_form, form_error_messages, json_body

auth_bp = Blueprint("auth", __name__)


def _find_login_user(username: str | None, email: str | None) -> User | None:
    if email:
        return User.query.filter(func.lower(User.email) == email.lower()).first()
    if username:
        return User.query.filter(
            (User.username == username) | (func.lower(User.email) == username.lower())
        ).first()
    return None


@auth_bp.route("/login", methods=["POST"])
def login():
    form = bind_form(LoginForm, json_body(request))
    if form.errors or not (form.username.data or form.email.data):
        messages, fields = form_error_messages(form)
        if not (form.username.data or form.email.data):
            messages.insert(0, "Username or email is required")
        return jsonify({"success": False, "message": "; ".join(messages), "errors": messages, "fields": fields}), 400

    user = _find_login_user(form.username.data, form.email.data)
    if not user or not user.check_password(form.password.data):
        current_app.logger.warning(
            "Failed login attempt",
            extra={"username": form.username.data or form.email.data, "ip": request.remote_addr},
        )
        record_audit("LOGIN_FAILED", user, context=form.username.data or form.email.data)
        db.session.commit()
        return jsonify({"success": False, "message": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"success": False, "message": "Account is inactive. Please contact support."}), 403

    user.last_login_at = utcnow()
    record_audit("LOGIN", user)
    db.session.commit()
    current_app.logger.info("User logged in", extra={"user_id": user.id, "role": user.role_name})

    return jsonify(
        {
            "success": True,
            "message": "Login successful",
            "token": issue_access_token(user),
            "role": user.role_name,
            "user": user.to_dict(),
        }
    )


@auth_bp.route("/verify-token", methods=["POST"])
def verify_token():
    token = bearer_token(request.headers) or json_body(request).get("token")
    try:
        claims = decode_access_token(token)
    except TokenError as exc:
        return jsonify({"success": False, "valid": False, "message": str(exc)}), 401

    user = db.session.get(User, str(claims.get("sub")))
    if user is None or not user.is_active:
        return jsonify({"success": False, "valid": False, "message": "User no longer exists"}), 401
    return jsonify({"success": True, "valid": True, "user": user.to_dict()})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    payload = current_user.to_dict()
    if current_user.employee is not None:
        payload["employee"] = current_user.employee.to_dict()
    return jsonify({"success": True, "user": payload})
