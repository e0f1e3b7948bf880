from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request

from app.distro.db import db_session
from app.distro.modules.releases.models import Release, Track
from app.distro.modules.releases.service import serialize_track
from app.distro.modules.uploads.service import UploadError, attach_track_audio, inspect_artwork, issue_upload
from app.distro.rbac import require_permission
from app.distro.storage import StorageError, storage_from_config
from app.distro.utils import api_error, clean_str, current_user, get_or_404, json_payload, parse_int

bp = Blueprint("uploads", __name__)


@bp.post("/presigned-url")
@require_permission("releases.own")
def presigned_url():
    s = db_session()
    u = current_user()
    payload = json_payload()

    file_type = (clean_str(payload.get("fileType")) or "").upper()
    file_name = clean_str(payload.get("fileName"))
    release_id = parse_int(payload.get("releaseId"))
    if not file_type or not file_name or release_id is None:
        return api_error("fileType, fileName and releaseId are required")

    release = get_or_404(s, Release, release_id)
    if release.user_id != u.id and not u.is_admin:
        abort(403)

    storage = storage_from_config(current_app.config)
    try:
        issued = issue_upload(
            s,
            storage,
            release,
            u,
            file_type=file_type,
            file_name=file_name,
            expires_in=current_app.config["UPLOAD_URL_EXPIRY_SECONDS"],
        )
    except UploadError as e:
        return api_error(str(e))
    except StorageError as e:
        current_app.logger.warning("Upload URL not issued for release %s: %s", release.id, e)
        return api_error("Storage is unavailable", 503)
    s.commit()

    current_app.logger.info("Upload URL issued release=%s type=%s key=%s", release.id, file_type, issued.file_url)
    return jsonify(
        {
            "uploadUrl": issued.upload_url,
            "fileUrl": issued.file_url,
            "fileUploadId": issued.file_upload.id,
        }
    )


@bp.post("/track-audio")
@require_permission("releases.own")
def track_audio():
    s = db_session()
    u = current_user()
    payload = json_payload()

    track_id = parse_int(payload.get("trackId"))
    audio_url = clean_str(payload.get("audioUrl"))
    if track_id is None or not audio_url:
        return api_error("trackId and audioUrl are required")

    track = get_or_404(s, Track, track_id)
    if track.release.user_id != u.id and not u.is_admin:
        abort(403)

    try:
        attach_track_audio(s, track, audio_url, u)
    except UploadError as e:
        return api_error(str(e))
    s.commit()
    return jsonify({"track": serialize_track(track), "message": "Audio linked to track"})


@bp.post("/artwork/check")
@require_permission("releases.own")
def artwork_check():
    f = request.files.get("file")
    if f is None or not f.filename:
        return api_error("Choose an image file to check")
    report = inspect_artwork(f.stream)
    return jsonify(report.as_dict())
