from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from app.distro.db import db_session
from app.distro.modules.releases import lifecycle
from app.distro.modules.releases.models import Release, Track
from app.distro.modules.releases.service import (
    approve_release,
    build_download_list,
    delete_release,
    delete_track,
    distribute_release,
    metadata_csv,
    metadata_json,
    reject_release,
    serialize_release,
    signed_url_or_none,
)
from app.distro.notifications import notify_release_status
from app.distro.rbac import require_permission
from app.distro.storage import StorageError, storage_from_config
from app.distro.utils import api_error, current_user, get_or_404, json_payload

bp = Blueprint("releases_admin", __name__)


def _release_json(release: Release) -> dict:
    storage = storage_from_config(current_app.config)
    url = signed_url_or_none(storage, release.artwork_key, expires_in=current_app.config["DOWNLOAD_URL_EXPIRY_SECONDS"])
    return serialize_release(release, artwork_url=url, include_user=True, reviewer=True)


def _decided(release: Release, message: str):
    emailed = notify_release_status(current_app.config, release)
    return jsonify({"release": _release_json(release), "message": message, "emailSent": emailed})


# ---------- Review queue ----------
@bp.get("/releases")
@require_permission("releases.review")
def releases_list():
    s = db_session()
    status = (request.args.get("status") or "").strip().upper()
    if status and status not in lifecycle.STATUSES:
        return api_error(f"Unknown status: {status}")

    q = s.query(Release)
    if status:
        q = q.filter(Release.status == status)
    releases = q.order_by(Release.created_at.desc(), Release.id.desc()).all()
    return jsonify({"releases": [_release_json(r) for r in releases]})


@bp.get("/releases/<int:release_id>")
@require_permission("releases.review")
def release_detail(release_id: int):
    s = db_session()
    return jsonify({"release": _release_json(get_or_404(s, Release, release_id))})


# ---------- Decisions ----------
@bp.post("/releases/<int:release_id>/approve")
@require_permission("releases.review")
def release_approve(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    approve_release(s, release, current_user())
    s.commit()
    current_app.logger.info("Release %s approved", release.id)
    return _decided(release, "Release approved")


@bp.post("/releases/<int:release_id>/reject")
@require_permission("releases.review")
def release_reject(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    payload = json_payload()
    reject_release(
        s,
        release,
        current_user(),
        reason=payload.get("rejectionReason"),
        allow_resubmission=payload.get("allowResubmission"),
    )
    s.commit()
    current_app.logger.info("Release %s rejected (resubmission %s)", release.id, release.allow_resubmission)
    return _decided(release, "Release rejected")


@bp.post("/releases/<int:release_id>/distribute")
@require_permission("releases.review")
def release_distribute(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    distribute_release(s, release, current_user())
    s.commit()
    current_app.logger.info("Release %s distributed", release.id)
    return _decided(release, "Release distributed")


# ---------- Deletes ----------
@bp.delete("/releases/<int:release_id>")
@require_permission("releases.review")
def release_delete(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    delete_release(s, release, current_user())
    s.commit()
    current_app.logger.info("Release %s deleted by admin", release_id)
    return jsonify({"message": "Release deleted"})


@bp.delete("/tracks/<int:track_id>")
@require_permission("releases.review")
def track_delete(track_id: int):
    s = db_session()
    track = get_or_404(s, Track, track_id)
    delete_track(s, track, current_user(), enforce_lifecycle=False)
    s.commit()
    return jsonify({"message": "Track deleted"})


# ---------- Downloads / exports ----------
@bp.get("/releases/<int:release_id>/downloads")
@require_permission("releases.review")
def release_downloads(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    storage = storage_from_config(current_app.config)
    try:
        downloads = build_download_list(release, storage, expires_in=current_app.config["DOWNLOAD_URL_EXPIRY_SECONDS"])
    except StorageError as e:
        current_app.logger.warning("Download links unavailable for release %s: %s", release.id, e)
        return api_error("Storage is unavailable", 503)
    return jsonify({"release": {"id": release.id, "title": release.title}, "downloads": downloads})


@bp.get("/releases/<int:release_id>/metadata/json")
@require_permission("releases.review")
def release_metadata_json(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    return jsonify(metadata_json(release))


@bp.get("/releases/<int:release_id>/metadata/csv")
@require_permission("releases.review")
def release_metadata_csv(release_id: int):
    s = db_session()
    release = get_or_404(s, Release, release_id)
    filename = f"release-{release.id}-metadata.csv"
    return Response(
        metadata_csv(release),
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
