from __future__ import annotations

from functools import partial

from flask import Blueprint, jsonify, request
from sqlalchemy import or_

from app.distro.audit import record_event
from app.distro.db import db_session
from app.distro.modules.metadata.models import AlbumCategory, Artist, ContentType, Publisher, SubLabel
from app.distro.rbac import require_login, require_permission
from app.distro.utils import api_error, clean_str, current_user, get_or_404, isoformat, json_payload

bp = Blueprint("metadata", __name__)
admin_bp = Blueprint("metadata_admin", __name__)

# URL segment -> (model, display name)
LOOKUPS = {
    "publishers": (Publisher, "Publisher"),
    "album-categories": (AlbumCategory, "Album category"),
    "content-types": (ContentType, "Content type"),
    "sub-labels": (SubLabel, "Sub-label"),
}

_SEARCH_LIMIT = 20


def serialize_lookup(obj) -> dict:
    out = {"id": obj.id, "name": obj.name, "createdAt": isoformat(obj.created_at)}
    if isinstance(obj, SubLabel):
        out["userId"] = obj.user_id
    return out


def _name_taken(s, model, name: str) -> bool:
    return s.query(model).filter(model.name.ilike(name)).first() is not None


# ---------- Dropdown values ----------
@bp.get("/sub-labels")
@require_login
def sub_labels():
    """Global sub-labels plus the ones approved for the caller."""
    s = db_session()
    u = current_user()
    rows = (
        s.query(SubLabel)
        .filter(or_(SubLabel.user_id.is_(None), SubLabel.user_id == u.id))
        .order_by(SubLabel.name.asc())
        .all()
    )
    return jsonify([serialize_lookup(r) for r in rows])


@bp.get("/artists")
@require_login
def artists():
    s = db_session()
    return jsonify([serialize_lookup(r) for r in s.query(Artist).order_by(Artist.name.asc()).all()])


@bp.get("/artists/search")
@require_login
def artists_search():
    s = db_session()
    q = (request.args.get("q") or "").strip()
    if not q:
        return jsonify([])
    rows = (
        s.query(Artist)
        .filter(Artist.name.ilike(f"%{q}%"))
        .order_by(Artist.name.asc())
        .limit(_SEARCH_LIMIT)
        .all()
    )
    return jsonify([serialize_lookup(r) for r in rows])


@bp.post("/artists")
@require_login
def artists_create():
    """Any signed-in user may add an artist; an existing name returns the existing row."""
    s = db_session()
    name = clean_str(json_payload().get("name"))
    if not name:
        return api_error("Artist name is required")

    existing = s.query(Artist).filter(Artist.name.ilike(name)).first()
    if existing:
        return jsonify(serialize_lookup(existing))

    artist = Artist(name=name)
    s.add(artist)
    s.flush()
    record_event(s, actor=current_user(), action="artist.create", entity_type="Artist", entity_id=str(artist.id), metadata={"name": name})
    s.commit()
    return jsonify(serialize_lookup(artist)), 201


@bp.get("/publishers")
@require_login
def publishers():
    s = db_session()
    return jsonify([serialize_lookup(r) for r in s.query(Publisher).order_by(Publisher.name.asc()).all()])


@bp.get("/album-categories")
@require_login
def album_categories():
    s = db_session()
    return jsonify([serialize_lookup(r) for r in s.query(AlbumCategory).order_by(AlbumCategory.name.asc()).all()])


@bp.get("/content-types")
@require_login
def content_types():
    s = db_session()
    return jsonify([serialize_lookup(r) for r in s.query(ContentType).order_by(ContentType.name.asc()).all()])


# ---------- Admin ----------
@admin_bp.get("/sub-labels")
@require_permission("metadata.manage")
def admin_sub_labels():
    s = db_session()
    rows = s.query(SubLabel).order_by(SubLabel.name.asc()).all()
    return jsonify([serialize_lookup(r) for r in rows])


def lookup_create(kind: str):
    s = db_session()
    model, label = LOOKUPS[kind]
    name = clean_str(json_payload().get("name"))
    if not name:
        return api_error(f"{label} name is required")
    if _name_taken(s, model, name):
        return api_error(f"{label} {name!r} already exists", 409)

    obj = model(name=name)
    s.add(obj)
    s.flush()
    record_event(s, actor=current_user(), action=f"{kind}.create", entity_type=model.__name__, entity_id=str(obj.id), metadata={"name": name})
    s.commit()
    return jsonify(serialize_lookup(obj)), 201


def lookup_delete(kind: str, obj_id: int):
    s = db_session()
    model, label = LOOKUPS[kind]
    obj = get_or_404(s, model, obj_id)
    record_event(s, actor=current_user(), action=f"{kind}.delete", entity_type=model.__name__, entity_id=str(obj.id), metadata={"name": obj.name})
    s.delete(obj)
    s.commit()
    return jsonify({"message": f"{label} deleted"})


for _kind in LOOKUPS:
    _endpoint = _kind.replace("-", "_")
    admin_bp.add_url_rule(
        f"/{_kind}",
        f"{_endpoint}_create",
        require_permission("metadata.manage")(partial(lookup_create, _kind)),
        methods=["POST"],
    )
    admin_bp.add_url_rule(
        f"/{_kind}/<int:obj_id>",
        f"{_endpoint}_delete",
        require_permission("metadata.manage")(partial(lookup_delete, _kind)),
        methods=["DELETE"],
    )
