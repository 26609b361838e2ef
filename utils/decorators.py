"""Authorization decorators for bearer-token protected API routes."""
from functools import wraps

from flask import abort, current_app, request
from flask_login import current_user, login_required

from extensions import db
from models import AuditLog


def record_audit(action: str, user=None, context: str | None = None) -> None:
    """Stage an audit row on the session; the caller commits."""
    db.session.add(
        AuditLog(
            user_id=user.id if user is not None else None,
            action_type=action,
            ip_address=request.remote_addr,
            user_agent=(request.headers.get("User-Agent") or "unknown")[:255],
            context_entity=(context or request.path)[:120],
        )
    )


def roles_required(*roles):
    allowed = {r.lower() for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role_name.lower() in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Forbidden role access attempt",
                extra={"user_id": current_user.id, "role": current_user.role_name, "path": request.path},
            )
            record_audit("UNAUTHORIZED_ACCESS", current_user)
            db.session.commit()
            abort(403)

        return wrapped

    return decorator


admin_required = roles_required("Admin")
