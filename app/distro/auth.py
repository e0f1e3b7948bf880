from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from app.distro.audit import record_event
from app.distro.db import db_session
from app.distro.models import Role, User
from app.distro.rbac import require_login
from app.distro.security import ensure_csrf_token
from app.distro.seed import SELF_SERVICE_ROLES
from app.distro.utils import api_error, clean_str, current_user, isoformat, json_payload

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 6


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "isActive": user.is_active,
        "createdAt": isoformat(user.created_at),
    }


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/storage/", "/health", "/healthz", "/api/health")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def _start_session(user: User) -> str:
    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    return ensure_csrf_token()


@bp.post("/signup")
def signup():
    payload = json_payload()
    email = (clean_str(payload.get("email")) or "").lower()
    password = payload.get("password") or ""
    name = clean_str(payload.get("name"))
    role_key = (clean_str(payload.get("role")) or "").lower()

    if not email or not password or not name or not role_key:
        return api_error("All fields are required")
    if role_key not in SELF_SERVICE_ROLES:
        return api_error("Invalid role")
    if len(password) < _MIN_PASSWORD_LENGTH:
        return api_error(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters")

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        return api_error("User already exists", 409)

    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        current_app.logger.error("Signup failed: role %r not seeded (run scripts/init_db.py)", role_key)
        return api_error("Signup is not available right now", 500)

    user = User(email=email, password_hash=generate_password_hash(password), name=name, is_active=True)
    user.roles.append(role)
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=str(user.id), metadata={"role": role_key})
    s.commit()

    csrf = _start_session(user)
    return jsonify({"user": serialize_user(user), "csrfToken": csrf, "message": "Account created successfully"}), 201


@bp.post("/login")
def login():
    payload = json_payload()
    email = (clean_str(payload.get("email")) or "").lower()
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if not email or not password:
        return api_error("Email and password are required")

    if _check_rate_limit(ip):
        return api_error("Too many login attempts. Please wait 5 minutes.", 429)

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        return api_error("Invalid credentials", 401)

    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    csrf = _start_session(user)
    return jsonify({"user": serialize_user(user), "csrfToken": csrf})


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"message": "Logged out successfully"})


@bp.get("/me")
@require_login
def me():
    return jsonify({"user": serialize_user(current_user())})


@bp.get("/csrf")
def csrf():
    return jsonify({"csrfToken": ensure_csrf_token()})
