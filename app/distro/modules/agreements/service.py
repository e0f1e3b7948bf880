from __future__ import annotations

import hashlib
import io
import re
import secrets
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from flask import render_template
from markupsafe import escape
from xhtml2pdf import pisa

from app.distro.audit import record_event
from app.distro.modules.agreements.models import AgreementRequest
from app.distro.modules.label_publisher.models import UserLabel
from app.distro.modules.label_publisher.service import missing_profile_fields
from app.distro.utils import clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.distro.models import User
    from app.distro.storage import Storage

TEMPLATE_NAME = "agreements/letter_of_understanding.html"
EFFECTIVE_DATE = "09-10-2025"
LEGACY_ENTITY_NAME = re.compile(r"IT Music", re.IGNORECASE)

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"
STATUS_REJECTED = "rejected"
AGREEMENT_STATUSES = (STATUS_PENDING, STATUS_VERIFIED, STATUS_REJECTED)

DOCUMENT_MIMETYPE = "application/pdf"


class AgreementError(ValueError):
    def __init__(self, message: str, status: int = 400, **extra: Any):
        super().__init__(message)
        self.status = status
        self.extra = extra


def template_context(user: "User", *, label_name: str, today: date | None = None) -> dict[str, str]:
    today = today or date.today()
    return {
        "effective_date": EFFECTIVE_DATE,
        "today_date": today.strftime("%m-%d-%Y"),
        "label_name": label_name,
        "user_display_name": user.name or "",
        "user_legal_name": user.legal_name or "",
        "user_email": user.email or "",
        "user_mobile": user.mobile or "",
        "user_full_address": user.address or "",
        "user_entity_name": user.entity_name or "",
    }


def render_agreement(user: "User", *, label_name: str, today: date | None = None) -> str:
    """Letter of understanding with the user's details filled in and the legacy entity name replaced."""
    html = render_template(TEMPLATE_NAME, **template_context(user, label_name=label_name, today=today))
    entity = str(escape(user.entity_name or ""))
    return LEGACY_ENTITY_NAME.sub(lambda _m: entity, html)


def html_to_pdf(html: str) -> bytes:
    buf = io.BytesIO()
    result = pisa.CreatePDF(src=html, dest=buf, encoding="utf-8")
    if result.err:
        raise AgreementError("Could not render agreement PDF", 500)
    return buf.getvalue()


def generate_agreement(s: "Session", storage: "Storage", user: "User", *, label_name: str) -> AgreementRequest:
    missing = missing_profile_fields(user)
    if missing:
        raise AgreementError("Incomplete profile data", missingFields=missing)

    document = html_to_pdf(render_agreement(user, label_name=label_name))
    digest = hashlib.sha256(document).hexdigest()
    key = f"agreements/{user.id}/{datetime.utcnow():%Y%m%d%H%M%S}-{secrets.token_hex(4)}.pdf"
    storage.put_bytes(key, document, content_type=DOCUMENT_MIMETYPE)

    now = datetime.utcnow()
    agreement = AgreementRequest(
        user_id=user.id,
        document_key=key,
        document_hash=digest,
        signed_name=user.legal_name or "",
        email_sent=False,
        status=STATUS_PENDING,
        created_at=now,
        updated_at=now,
    )
    s.add(agreement)
    s.flush()
    record_event(
        s,
        actor=user,
        action="agreement.create",
        entity_type="AgreementRequest",
        entity_id=str(agreement.id),
        metadata={"document_key": key, "sha256": digest},
    )
    return agreement


def mark_submitted(s: "Session", agreement: AgreementRequest, user: "User") -> AgreementRequest:
    agreement.email_sent = True
    agreement.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="agreement.submit",
        entity_type="AgreementRequest",
        entity_id=str(agreement.id),
        metadata={"email_sent": True},
    )
    return agreement


def set_agreement_status(s: "Session", agreement: AgreementRequest, admin: "User", status: Any, notes: Any = None) -> AgreementRequest:
    new_status = (clean_str(status) or "").lower()
    if new_status not in AGREEMENT_STATUSES:
        raise AgreementError("Invalid status value")

    old_status = agreement.status
    agreement.status = new_status
    agreement.updated_at = datetime.utcnow()

    label_added = None
    if new_status == STATUS_VERIFIED:
        label_added = _grant_entity_label(s, agreement.user)

    record_event(
        s,
        actor=admin,
        action="agreement.status",
        entity_type="AgreementRequest",
        entity_id=str(agreement.id),
        reason=clean_str(notes),
        metadata={"from": old_status, "to": new_status, "label_added": label_added},
    )
    return agreement


def _grant_entity_label(s: "Session", user: "User") -> str | None:
    """A verified agreement lets the user release under their entity name."""
    entity = clean_str(user.entity_name)
    if not entity:
        return None
    exists = s.query(UserLabel).filter(UserLabel.user_id == user.id, UserLabel.label_name == entity).first()
    if exists:
        return None
    s.add(UserLabel(user_id=user.id, label_name=entity, created_at=datetime.utcnow()))
    return entity


def serialize_agreement(agreement: AgreementRequest, *, document_url: str | None = None, include_user: bool = False) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": agreement.id,
        "userId": agreement.user_id,
        "status": agreement.status,
        "signedName": agreement.signed_name,
        "emailSent": agreement.email_sent,
        "documentHash": agreement.document_hash,
        "documentUrl": document_url,
        "createdAt": isoformat(agreement.created_at),
        "updatedAt": isoformat(agreement.updated_at),
    }
    if include_user and agreement.user is not None:
        out["user"] = {
            "id": agreement.user.id,
            "name": agreement.user.name,
            "email": agreement.user.email,
            "entityName": agreement.user.entity_name,
        }
    return out
