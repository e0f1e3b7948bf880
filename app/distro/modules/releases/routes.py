from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify

from app.distro.db import db_session
from app.distro.models import User
from app.distro.modules.releases.models import Release, Track
from app.distro.modules.releases.service import (
    add_track,
    create_release,
    delete_track,
    serialize_release,
    serialize_track,
    signed_url_or_none,
    submit_release,
    update_release,
    update_track,
    validate_release_payload,
    validate_track_payload,
)
from app.distro.rbac import require_permission, user_has_permission
from app.distro.storage import storage_from_config
from app.distro.utils import api_error, current_user, get_or_404, json_payload

bp = Blueprint("releases", __name__)


def _owned_release(s, release_id: int, user: User) -> Release:
    release = get_or_404(s, Release, release_id)
    if release.user_id != user.id and not user.is_admin:
        abort(403)
    return release


def _owned_track(s, track_id: int, user: User) -> Track:
    track = get_or_404(s, Track, track_id)
    if track.release.user_id != user.id and not user.is_admin:
        abort(403)
    return track


def _release_json(release: Release) -> dict:
    storage = storage_from_config(current_app.config)
    url = signed_url_or_none(storage, release.artwork_key, expires_in=current_app.config["DOWNLOAD_URL_EXPIRY_SECONDS"])
    return serialize_release(release, artwork_url=url, reviewer=user_has_permission(current_user(), "releases.review"))


# ---------- Releases ----------
@bp.post("")
@require_permission("releases.own")
def release_create():
    s = db_session()
    u = current_user()
    payload = json_payload()

    values, errors = validate_release_payload(s, payload, u)
    if errors:
        return api_error(errors[0], errors=errors)

    release = create_release(s, values, u, default_c_line=current_app.config["DEFAULT_LABEL_NAME"])
    s.commit()
    current_app.logger.info("Release %s created by user %s", release.id, u.id)
    return jsonify({"release": _release_json(release)}), 201


@bp.get("")
@require_permission("releases.own")
def release_list():
    s = db_session()
    u = current_user()
    q = s.query(Release)
    if not u.is_admin:
        q = q.filter(Release.user_id == u.id)
    releases = q.order_by(Release.created_at.desc(), Release.id.desc()).all()
    return jsonify({"releases": [_release_json(r) for r in releases]})


@bp.get("/<int:release_id>")
@require_permission("releases.own")
def release_detail(release_id: int):
    s = db_session()
    release = _owned_release(s, release_id, current_user())
    return jsonify({"release": _release_json(release)})


@bp.put("/<int:release_id>")
@require_permission("releases.own")
def release_update(release_id: int):
    s = db_session()
    u = current_user()
    release = _owned_release(s, release_id, u)
    payload = json_payload()
    if "status" in payload:
        return api_error("Status cannot be changed by editing a release. Use submit instead.")

    values, errors = validate_release_payload(s, payload, u, partial=True)
    if errors:
        return api_error(errors[0], errors=errors)

    update_release(s, release, values, u)
    s.commit()
    return jsonify({"release": _release_json(release)})


@bp.post("/<int:release_id>/submit")
@require_permission("releases.own")
def release_submit(release_id: int):
    s = db_session()
    u = current_user()
    release = _owned_release(s, release_id, u)
    submit_release(s, release, u)
    s.commit()
    current_app.logger.info("Release %s submitted for review", release.id)
    return jsonify({"release": _release_json(release), "message": "Release submitted for review"})


# ---------- Tracks ----------
@bp.post("/<int:release_id>/tracks")
@require_permission("releases.own")
def track_create(release_id: int):
    s = db_session()
    u = current_user()
    release = _owned_release(s, release_id, u)

    values, errors = validate_track_payload(json_payload())
    if errors:
        return api_error(errors[0], errors=errors)

    track = add_track(s, release, values, u)
    s.commit()
    return jsonify({"track": serialize_track(track)}), 201


@bp.put("/tracks/<int:track_id>")
@require_permission("releases.own")
def track_update(track_id: int):
    s = db_session()
    u = current_user()
    track = _owned_track(s, track_id, u)

    values, errors = validate_track_payload(json_payload(), partial=True, existing=track)
    if errors:
        return api_error(errors[0], errors=errors)

    update_track(s, track, values, u)
    s.commit()
    return jsonify({"track": serialize_track(track)})


@bp.delete("/tracks/<int:track_id>")
@require_permission("releases.own")
def track_delete(track_id: int):
    s = db_session()
    u = current_user()
    track = _owned_track(s, track_id, u)
    delete_track(s, track, u)
    s.commit()
    return jsonify({"message": "Track deleted"})
