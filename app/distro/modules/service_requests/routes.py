from __future__ import annotations

from functools import partial

from flask import Blueprint, abort, current_app, jsonify, request

from app.distro.db import db_session
from app.distro.modules.service_requests.models import (
    REQUEST_STATUSES,
    ArtistProfileLinkingRequest,
    SocialMediaLinkingRequest,
    YouTubeClaim,
    YouTubeOacRequest,
)
from app.distro.modules.service_requests.service import (
    RequestError,
    create_artist_profile_linking_request,
    create_social_media_linking_request,
    create_youtube_claim,
    create_youtube_oac_request,
    serialize_request,
    update_request_status,
)
from app.distro.rbac import require_login, require_permission
from app.distro.utils import api_error, current_user, get_or_404, json_payload

bp = Blueprint("service_requests", __name__)
admin_bp = Blueprint("service_requests_admin", __name__)

# (user path, admin path, model, create function)
REQUEST_KINDS = (
    ("youtube-claims", "youtube-claims", YouTubeClaim, create_youtube_claim),
    ("youtube-oac", "youtube-oac-requests", YouTubeOacRequest, create_youtube_oac_request),
    ("social-media-linking", "social-media-linking", SocialMediaLinkingRequest, create_social_media_linking_request),
    ("artist-profile-linking", "artist-profile-linking", ArtistProfileLinkingRequest, create_artist_profile_linking_request),
)


# ---------- User ----------
def _create(model, create_fn):
    s = db_session()
    try:
        obj = create_fn(s, current_user(), json_payload())
    except RequestError as e:
        return api_error(str(e), e.status)
    s.commit()
    current_app.logger.info("%s %s created", model.__name__, obj.id)
    return jsonify(serialize_request(obj)), 201


def _list_own(model):
    s = db_session()
    rows = (
        s.query(model)
        .filter(model.user_id == current_user().id)
        .order_by(model.created_at.desc(), model.id.desc())
        .all()
    )
    return jsonify([serialize_request(r) for r in rows])


def _detail(model, obj_id: int):
    s = db_session()
    obj = get_or_404(s, model, obj_id)
    u = current_user()
    if obj.user_id != u.id and not u.is_admin:
        abort(403)
    return jsonify(serialize_request(obj))


# ---------- Admin ----------
def _admin_list(model):
    s = db_session()
    status = (request.args.get("status") or "").strip().upper()
    if status and status not in REQUEST_STATUSES:
        return api_error(f"Unknown status: {status}")
    q = s.query(model)
    if status:
        q = q.filter(model.status == status)
    rows = q.order_by(model.created_at.desc(), model.id.desc()).all()
    return jsonify([serialize_request(r, include_user=True) for r in rows])


def _admin_update(model, obj_id: int):
    s = db_session()
    obj = get_or_404(s, model, obj_id)
    payload = json_payload()
    try:
        update_request_status(s, obj, current_user(), status=payload.get("status"), admin_notes=payload.get("adminNotes"))
    except RequestError as e:
        return api_error(str(e), e.status)
    s.commit()
    current_app.logger.info("%s %s set to %s", model.__name__, obj.id, obj.status)
    return jsonify(serialize_request(obj, include_user=True))


for _user_path, _admin_path, _model, _create_fn in REQUEST_KINDS:
    _name = _model.__tablename__
    bp.add_url_rule(f"/{_user_path}", f"{_name}_create", require_login(partial(_create, _model, _create_fn)), methods=["POST"])
    bp.add_url_rule(f"/{_user_path}", f"{_name}_list", require_login(partial(_list_own, _model)), methods=["GET"])
    bp.add_url_rule(f"/{_user_path}/<int:obj_id>", f"{_name}_detail", require_login(partial(_detail, _model)), methods=["GET"])
    admin_bp.add_url_rule(
        f"/{_admin_path}",
        f"{_name}_list",
        require_permission("requests.manage")(partial(_admin_list, _model)),
        methods=["GET"],
    )
    admin_bp.add_url_rule(
        f"/{_admin_path}/<int:obj_id>",
        f"{_name}_update",
        require_permission("requests.manage")(partial(_admin_update, _model)),
        methods=["PATCH"],
    )
