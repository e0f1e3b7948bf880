from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, send_file

from app.distro.db import db_session
from app.distro.modules.agreements.models import AgreementRequest
from app.distro.modules.agreements.service import (
    DOCUMENT_MIMETYPE,
    AgreementError,
    generate_agreement,
    mark_submitted,
    serialize_agreement,
    set_agreement_status,
)
from app.distro.modules.label_publisher.service import effective_label
from app.distro.modules.releases.service import signed_url_or_none
from app.distro.rbac import require_login, require_permission
from app.distro.storage import StorageError, storage_from_config
from app.distro.utils import api_error, current_user, get_or_404, json_payload, parse_int

bp = Blueprint("agreements", __name__)
admin_bp = Blueprint("agreements_admin", __name__)


def _document_url(agreement: AgreementRequest) -> str | None:
    storage = storage_from_config(current_app.config)
    return signed_url_or_none(storage, agreement.document_key, expires_in=current_app.config["DOWNLOAD_URL_EXPIRY_SECONDS"])


@bp.post("/generate")
@require_login
def agreement_generate():
    s = db_session()
    u = current_user()
    label_name, _ = effective_label(s, u)
    storage = storage_from_config(current_app.config)
    try:
        agreement = generate_agreement(s, storage, u, label_name=label_name)
    except AgreementError as e:
        return api_error(str(e), e.status, **e.extra)
    except StorageError as e:
        current_app.logger.warning("Agreement for user %s not stored: %s", u.id, e)
        return api_error("Storage is unavailable", 503)
    s.commit()
    current_app.logger.info("Agreement %s generated for user %s", agreement.id, u.id)
    return jsonify({"agreementId": agreement.id, "documentUrl": _document_url(agreement)}), 201


@bp.post("/proceed")
@require_login
def agreement_proceed():
    s = db_session()
    u = current_user()
    agreement_id = parse_int(json_payload().get("agreementId"))
    if agreement_id is None:
        return api_error("Agreement ID is required")
    agreement = get_or_404(s, AgreementRequest, agreement_id)
    if agreement.user_id != u.id:
        abort(403)
    mark_submitted(s, agreement, u)
    s.commit()
    return jsonify({"success": True, "requestId": agreement.id})


@bp.get("/status")
@require_login
def agreement_status():
    s = db_session()
    latest = (
        s.query(AgreementRequest)
        .filter(AgreementRequest.user_id == current_user().id)
        .order_by(AgreementRequest.created_at.desc(), AgreementRequest.id.desc())
        .first()
    )
    if latest is None:
        return jsonify({"agreement": None})
    return jsonify({"agreement": serialize_agreement(latest, document_url=_document_url(latest))})


@bp.get("/download/<int:agreement_id>")
@require_login
def agreement_download(agreement_id: int):
    s = db_session()
    u = current_user()
    agreement = get_or_404(s, AgreementRequest, agreement_id)
    if agreement.user_id != u.id and not u.is_admin:
        abort(403)
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(agreement.document_key)
    except StorageError:
        abort(404)
    return send_file(
        fobj,
        mimetype=DOCUMENT_MIMETYPE,
        as_attachment=True,
        download_name=f"agreement_{agreement.id}.pdf",
        max_age=0,
    )


# ---------- Admin ----------
@admin_bp.get("/agreements")
@require_permission("agreements.manage")
def agreements_list():
    s = db_session()
    rows = s.query(AgreementRequest).order_by(AgreementRequest.created_at.desc(), AgreementRequest.id.desc()).all()
    return jsonify({"requests": [serialize_agreement(r, include_user=True) for r in rows]})


@admin_bp.post("/agreement/<int:agreement_id>/status")
@require_permission("agreements.manage")
def agreement_status_update(agreement_id: int):
    s = db_session()
    agreement = get_or_404(s, AgreementRequest, agreement_id)
    payload = json_payload()
    try:
        set_agreement_status(s, agreement, current_user(), payload.get("status"), payload.get("notes"))
    except AgreementError as e:
        return api_error(str(e), e.status)
    s.commit()
    current_app.logger.info("Agreement %s set to %s", agreement.id, agreement.status)
    return jsonify({"success": True, "agreement": serialize_agreement(agreement, include_user=True)})
