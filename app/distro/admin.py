from __future__ import annotations

from datetime import date, datetime, time, timedelta

from flask import Blueprint, current_app, jsonify, request

from app.distro.audit import record_event
from app.distro.auth import serialize_user
from app.distro.db import db_session
from app.distro.models import AuditEvent, Role, User
from app.distro.rbac import require_permission
from app.distro.utils import api_error, clean_str, current_user, get_or_404, isoformat, json_payload, parse_date

bp = Blueprint("admin", __name__)

ASSIGNABLE_ROLES = ("artist", "label", "admin")


# ---------- Users ----------
@bp.get("/users")
@require_permission("users.manage")
def users_list():
    s = db_session()
    users = s.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"users": [serialize_user(u) for u in users]})


@bp.patch("/users/<int:user_id>/role")
@require_permission("users.manage")
def user_role_update(user_id: int):
    s = db_session()
    actor = current_user()
    user = get_or_404(s, User, user_id)

    role_key = (clean_str(json_payload().get("role")) or "").lower()
    if role_key not in ASSIGNABLE_ROLES:
        return api_error("Invalid role")
    if user.id == actor.id:
        return api_error("You cannot change your own role.")

    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        return api_error(f"Role {role_key!r} is not set up", 500)

    before = [r.key for r in user.roles]
    user.roles.clear()
    user.roles.append(role)
    user.updated_at = datetime.utcnow()

    record_event(
        s,
        actor=actor,
        action="user.role_change",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": [role_key]},
    )
    s.commit()
    current_app.logger.info("User %s role set to %s by %s", user.id, role_key, actor.id)
    return jsonify({"user": serialize_user(user), "message": "User role updated successfully"})


@bp.delete("/users/<int:user_id>")
@require_permission("users.manage")
def user_delete(user_id: int):
    s = db_session()
    actor = current_user()
    user = get_or_404(s, User, user_id)
    if user.id == actor.id:
        return api_error("You cannot delete your own account.")

    record_event(
        s,
        actor=actor,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"email": user.email},
    )
    s.delete(user)
    s.commit()
    return jsonify({"message": "User deleted successfully"})


# ---------- Audit ----------
@bp.get("/audit")
@require_permission("users.manage")
def audit_list():
    """
    Last 200 audit events, optionally filtered by:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    try:
        date_from: date | None = parse_date(request.args.get("date_from"))
        date_to: date | None = parse_date(request.args.get("date_to"))
    except ValueError:
        return api_error("date_from and date_to must be YYYY-MM-DD")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return jsonify(
        {
            "events": [
                {
                    "id": e.id,
                    "createdAt": isoformat(e.created_at),
                    "requestId": e.request_id,
                    "actorUserId": e.actor_user_id,
                    "actorUserEmail": e.actor_user_email,
                    "action": e.action,
                    "entityType": e.entity_type,
                    "entityId": e.entity_id,
                    "reason": e.reason,
                    "metadata": e.metadata_json,
                }
                for e in events
            ]
        }
    )
