from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.distro.audit import record_event
from app.distro.modules.label_publisher.models import CustomLabelRequest, GlobalSetting, UserLabel, UserPublisher
from app.distro.utils import clean_str, isoformat

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.distro.models import User
    from app.distro.modules.metadata.models import SubLabel

DEFAULT_LABEL_KEY = "default_label"
DEFAULT_PUBLISHER_KEY = "default_publisher"
FALLBACK_NAME = "Internet Records"

PROFILE_FIELDS = {
    "name": "name",
    "legalName": "legal_name",
    "mobile": "mobile",
    "address": "address",
    "entityName": "entity_name",
}

CUSTOM_LABEL_PENDING = "PENDING"
CUSTOM_LABEL_APPROVED = "APPROVED"
CUSTOM_LABEL_REJECTED = "REJECTED"


class LabelError(ValueError):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


# ---------- Global settings ----------
def get_global_setting(s: "Session", key: str) -> str | None:
    row = s.query(GlobalSetting).filter(GlobalSetting.setting_key == key).one_or_none()
    return row.setting_value if row else None


def set_global_setting(s: "Session", key: str, value: str | None) -> GlobalSetting:
    row = s.query(GlobalSetting).filter(GlobalSetting.setting_key == key).one_or_none()
    if row is None:
        row = GlobalSetting(setting_key=key)
        s.add(row)
    row.setting_value = value
    row.updated_at = datetime.utcnow()
    return row


def global_defaults(s: "Session") -> dict[str, str]:
    return {
        "defaultLabel": get_global_setting(s, DEFAULT_LABEL_KEY) or FALLBACK_NAME,
        "defaultPublisher": get_global_setting(s, DEFAULT_PUBLISHER_KEY) or FALLBACK_NAME,
    }


def update_global_defaults(s: "Session", admin: "User", payload: dict) -> dict[str, str]:
    changes = {}
    for payload_key, setting_key in (("defaultLabel", DEFAULT_LABEL_KEY), ("defaultPublisher", DEFAULT_PUBLISHER_KEY)):
        if payload_key not in payload:
            continue
        value = clean_str(payload.get(payload_key))
        if not value:
            raise LabelError(f"{payload_key} cannot be blank")
        set_global_setting(s, setting_key, value)
        changes[setting_key] = value
    if not changes:
        raise LabelError("Provide defaultLabel and/or defaultPublisher")

    record_event(s, actor=admin, action="settings.global_defaults", entity_type="GlobalSetting", metadata=changes)
    return global_defaults(s)


def effective_label(s: "Session", user: "User") -> tuple[str, bool]:
    """(label, is_custom) for a user: their chosen label or the global default."""
    if user.custom_label:
        return user.custom_label, True
    return get_global_setting(s, DEFAULT_LABEL_KEY) or FALLBACK_NAME, False


def effective_publisher(s: "Session", user: "User") -> tuple[str, bool]:
    if user.custom_publisher:
        return user.custom_publisher, True
    return get_global_setting(s, DEFAULT_PUBLISHER_KEY) or FALLBACK_NAME, False


# ---------- User labels / publishers ----------
def serialize_user_label(row: UserLabel) -> dict[str, Any]:
    return {"id": row.id, "userId": row.user_id, "labelName": row.label_name, "createdAt": isoformat(row.created_at)}


def serialize_user_publisher(row: UserPublisher) -> dict[str, Any]:
    return {"id": row.id, "userId": row.user_id, "publisherName": row.publisher_name, "createdAt": isoformat(row.created_at)}


def add_user_label(s: "Session", user: "User", name: Any) -> UserLabel:
    label_name = clean_str(name)
    if not label_name:
        raise LabelError("Label name is required")
    exists = s.query(UserLabel).filter(UserLabel.user_id == user.id, UserLabel.label_name == label_name).first()
    if exists:
        raise LabelError("This label already exists")
    row = UserLabel(user_id=user.id, label_name=label_name, created_at=datetime.utcnow())
    s.add(row)
    s.flush()
    return row


def add_user_publisher(s: "Session", user: "User", name: Any) -> UserPublisher:
    publisher_name = clean_str(name)
    if not publisher_name:
        raise LabelError("Publisher name is required")
    exists = (
        s.query(UserPublisher)
        .filter(UserPublisher.user_id == user.id, UserPublisher.publisher_name == publisher_name)
        .first()
    )
    if exists:
        raise LabelError("This publisher already exists")
    row = UserPublisher(user_id=user.id, publisher_name=publisher_name, created_at=datetime.utcnow())
    s.add(row)
    s.flush()
    return row


# ---------- Profile ----------
def serialize_profile(user: "User") -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "legalName": user.legal_name,
        "mobile": user.mobile,
        "address": user.address,
        "entityName": user.entity_name,
        "createdAt": isoformat(user.created_at),
        "updatedAt": isoformat(user.updated_at),
    }


def update_profile(s: "Session", user: "User", payload: dict) -> "User":
    name = clean_str(payload.get("name"))
    if not name:
        raise LabelError("Name is required")
    for key, attr in PROFILE_FIELDS.items():
        setattr(user, attr, clean_str(payload.get(key)))
    user.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="profile.update", entity_type="User", entity_id=str(user.id))
    return user


def missing_profile_fields(user: "User") -> list[str]:
    """Profile fields still blank; all must be filled in before an agreement can be generated."""
    return [key for key, attr in PROFILE_FIELDS.items() if not clean_str(getattr(user, attr))]


# ---------- Custom label requests ----------
def serialize_custom_label_request(req: CustomLabelRequest) -> dict[str, Any]:
    return {
        "id": req.id,
        "userId": req.user_id,
        "name": req.name,
        "status": req.status,
        "adminNotes": req.admin_notes,
        "createdAt": isoformat(req.created_at),
        "updatedAt": isoformat(req.updated_at),
    }


def request_custom_label(s: "Session", user: "User", name: Any) -> CustomLabelRequest:
    from app.distro.modules.metadata.models import SubLabel

    label_name = clean_str(name)
    if not label_name:
        raise LabelError("Label name is required")
    if s.query(SubLabel).filter(SubLabel.name.ilike(label_name)).first() is not None:
        raise LabelError("Label name already exists", 409)

    now = datetime.utcnow()
    req = CustomLabelRequest(user_id=user.id, name=label_name, status=CUSTOM_LABEL_PENDING, created_at=now, updated_at=now)
    s.add(req)
    s.flush()
    record_event(s, actor=user, action="custom_label.request", entity_type="CustomLabelRequest", entity_id=str(req.id), metadata={"name": label_name})
    return req


def approve_custom_label(s: "Session", req: CustomLabelRequest, admin: "User") -> "SubLabel":
    """Creates a sub-label visible only to the requesting user."""
    from app.distro.modules.metadata.models import SubLabel

    if req.status != CUSTOM_LABEL_PENDING:
        raise LabelError("Request is not pending")
    if s.query(SubLabel).filter(SubLabel.name.ilike(req.name)).first() is not None:
        raise LabelError("Label name already exists", 409)

    label = SubLabel(name=req.name, user_id=req.user_id, created_at=datetime.utcnow())
    s.add(label)
    req.status = CUSTOM_LABEL_APPROVED
    req.updated_at = datetime.utcnow()
    s.flush()
    record_event(
        s,
        actor=admin,
        action="custom_label.approve",
        entity_type="CustomLabelRequest",
        entity_id=str(req.id),
        metadata={"sub_label_id": label.id, "name": label.name, "user_id": req.user_id},
    )
    return label


def reject_custom_label(s: "Session", req: CustomLabelRequest, admin: "User", admin_notes: Any = None) -> CustomLabelRequest:
    if req.status != CUSTOM_LABEL_PENDING:
        raise LabelError("Request is not pending")
    req.status = CUSTOM_LABEL_REJECTED
    req.admin_notes = clean_str(admin_notes)
    req.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=admin,
        action="custom_label.reject",
        entity_type="CustomLabelRequest",
        entity_id=str(req.id),
        reason=req.admin_notes,
    )
    return req
