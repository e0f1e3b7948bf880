from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify

from app.distro.db import db_session
from app.distro.modules.label_publisher.models import CustomLabelRequest, UserLabel, UserPublisher
from app.distro.modules.label_publisher.service import (
    LabelError,
    add_user_label,
    add_user_publisher,
    approve_custom_label,
    effective_label,
    effective_publisher,
    global_defaults,
    missing_profile_fields,
    reject_custom_label,
    request_custom_label,
    serialize_custom_label_request,
    serialize_profile,
    serialize_user_label,
    serialize_user_publisher,
    update_global_defaults,
    update_profile,
)
from app.distro.modules.metadata.routes import serialize_lookup
from app.distro.rbac import require_login, require_permission
from app.distro.utils import api_error, clean_str, current_user, get_or_404, json_payload

bp = Blueprint("label_publisher", __name__)
custom_labels_bp = Blueprint("custom_labels", __name__)
profile_bp = Blueprint("profile", __name__)
admin_bp = Blueprint("label_publisher_admin", __name__)


def _own_row_or_404(s, model, row_id: int):
    row = get_or_404(s, model, row_id)
    if row.user_id != current_user().id:
        abort(404)
    return row


# ---------- Label / publisher settings ----------
@bp.get("/global-defaults")
@require_login
def get_global_defaults():
    return jsonify(global_defaults(db_session()))


@bp.get("/user-labels")
@require_login
def user_labels():
    s = db_session()
    rows = s.query(UserLabel).filter(UserLabel.user_id == current_user().id).order_by(UserLabel.label_name.asc()).all()
    return jsonify([serialize_user_label(r) for r in rows])


@bp.post("/user-labels")
@require_login
def user_labels_create():
    s = db_session()
    try:
        row = add_user_label(s, current_user(), json_payload().get("labelName"))
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    return jsonify(serialize_user_label(row)), 201


@bp.delete("/user-labels/<int:row_id>")
@require_login
def user_labels_delete(row_id: int):
    s = db_session()
    s.delete(_own_row_or_404(s, UserLabel, row_id))
    s.commit()
    return jsonify({"message": "Label deleted successfully"})


@bp.get("/user-publishers")
@require_login
def user_publishers():
    s = db_session()
    rows = (
        s.query(UserPublisher)
        .filter(UserPublisher.user_id == current_user().id)
        .order_by(UserPublisher.publisher_name.asc())
        .all()
    )
    return jsonify([serialize_user_publisher(r) for r in rows])


@bp.post("/user-publishers")
@require_login
def user_publishers_create():
    s = db_session()
    try:
        row = add_user_publisher(s, current_user(), json_payload().get("publisherName"))
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    return jsonify(serialize_user_publisher(row)), 201


@bp.delete("/user-publishers/<int:row_id>")
@require_login
def user_publishers_delete(row_id: int):
    s = db_session()
    s.delete(_own_row_or_404(s, UserPublisher, row_id))
    s.commit()
    return jsonify({"message": "Publisher deleted successfully"})


@bp.get("/user-preferences")
@require_login
def user_preferences():
    u = current_user()
    return jsonify({"customLabel": u.custom_label, "customPublisher": u.custom_publisher})


@bp.put("/user-preferences")
@require_login
def user_preferences_update():
    s = db_session()
    u = current_user()
    payload = json_payload()
    u.custom_label = clean_str(payload.get("customLabel"))
    u.custom_publisher = clean_str(payload.get("customPublisher"))
    s.add(u)
    s.commit()
    return jsonify({"customLabel": u.custom_label, "customPublisher": u.custom_publisher})


# ---------- Custom label requests ----------
@custom_labels_bp.get("")
@require_login
def custom_labels_list():
    s = db_session()
    u = current_user()
    q = s.query(CustomLabelRequest)
    if not u.is_admin:
        q = q.filter(CustomLabelRequest.user_id == u.id)
    rows = q.order_by(CustomLabelRequest.created_at.desc(), CustomLabelRequest.id.desc()).all()
    return jsonify([serialize_custom_label_request(r) for r in rows])


@custom_labels_bp.post("")
@require_login
def custom_labels_create():
    s = db_session()
    u = current_user()
    try:
        req = request_custom_label(s, u, json_payload().get("name"))
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    current_app.logger.info("Custom label %r requested by user %s", req.name, u.id)
    return jsonify(serialize_custom_label_request(req)), 201


@custom_labels_bp.patch("/<int:req_id>/approve")
@require_permission("metadata.manage")
def custom_labels_approve(req_id: int):
    s = db_session()
    req = get_or_404(s, CustomLabelRequest, req_id)
    try:
        label = approve_custom_label(s, req, current_user())
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    return jsonify({"request": serialize_custom_label_request(req), "label": serialize_lookup(label)})


@custom_labels_bp.patch("/<int:req_id>/reject")
@require_permission("metadata.manage")
def custom_labels_reject(req_id: int):
    s = db_session()
    req = get_or_404(s, CustomLabelRequest, req_id)
    try:
        reject_custom_label(s, req, current_user(), json_payload().get("adminNotes"))
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    return jsonify(serialize_custom_label_request(req))


# ---------- Profile ----------
@profile_bp.get("")
@require_login
def profile_get():
    return jsonify(serialize_profile(current_user()))


@profile_bp.put("")
@require_login
def profile_update():
    s = db_session()
    u = current_user()
    try:
        update_profile(s, u, json_payload())
    except LabelError as e:
        return api_error(str(e), e.status)
    s.add(u)
    s.commit()
    return jsonify(serialize_profile(u))


@profile_bp.get("/completeness")
@require_login
def profile_completeness():
    missing = missing_profile_fields(current_user())
    return jsonify(
        {
            "isComplete": not missing,
            "missingFields": missing,
            "message": "Profile is complete" if not missing else f"Please complete your profile: {', '.join(missing)}",
        }
    )


@profile_bp.get("/label")
@require_login
def profile_label():
    label, is_custom = effective_label(db_session(), current_user())
    return jsonify({"label": label, "isCustom": is_custom})


@profile_bp.get("/publisher")
@require_login
def profile_publisher():
    publisher, is_custom = effective_publisher(db_session(), current_user())
    return jsonify({"publisher": publisher, "isCustom": is_custom})


# ---------- Admin ----------
@admin_bp.put("/settings/global-defaults")
@require_permission("metadata.manage")
def global_defaults_update():
    s = db_session()
    try:
        defaults = update_global_defaults(s, current_user(), json_payload())
    except LabelError as e:
        return api_error(str(e), e.status)
    s.commit()
    return jsonify(defaults)
