"""Security helpers for bearer tokens, password policy, and response headers."""
from datetime import datetime, timedelta, timezone
from typing import Mapping

import jwt
from flask import current_app


class TokenError(Exception):
    """Raised when a bearer token is missing, malformed, or expired."""


def issue_access_token(user) -> str:
    now = datetime.now(timezone.utc)
    ttl = int(current_app.config.get("JWT_EXPIRES_MINUTES", 60))
    payload = {
        "sub": str(user.id),
        "username": user.username or user.email,
        "email": user.email or "",
        "role": user.role_name,
        "iat": now,
        "exp": now + timedelta(minutes=ttl),
    }
    return jwt.encode(
        payload,
        current_app.config["JWT_SECRET_KEY"],
        algorithm=current_app.config.get("JWT_ALGORITHM", "HS256"),
    )


def decode_access_token(token: str) -> dict:
    if not token:
        raise TokenError("No token provided")
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc


def bearer_token(headers: Mapping) -> str | None:
    auth_header = headers.get("Authorization") or ""
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def apply_security_headers(response):
    """Baseline hardening headers for a JSON API."""
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("Cache-Control", "no-store")
    return response


def password_meets_policy(password: str) -> tuple[bool, str | None]:
    if len(password) < 8:
        return False, "Password must be at least 8 characters long."
    if not any(c.isdigit() for c in password):
        return False, "Include at least one digit."
    if password.lower() == password or password.upper() == password:
        return False, "Use a mix of upper and lower case characters."
    return True, None
