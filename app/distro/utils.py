from __future__ import annotations

from datetime import date, datetime
from typing import Any, TypeVar

from flask import abort, g, jsonify, request
from sqlalchemy.orm import Session

from app.distro.models import User

T = TypeVar("T")


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        # RBAC decorators should prevent this.
        raise RuntimeError("No current user")
    return u


def json_payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def api_error(message: str, status: int = 400, **extra: Any):
    body: dict[str, Any] = {"error": message}
    body.update(extra)
    return jsonify(body), status


def get_or_404(s: Session, model: type[T], obj_id: int) -> T:
    obj = s.get(model, obj_id)
    if obj is None:
        abort(404)
    return obj


def clean_str(value: Any) -> str | None:
    """Trimmed string or None for blank/missing values."""
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    v = str(value).strip()
    if not v:
        return None
    try:
        return int(v)
    except ValueError:
        return None


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def parse_date(s: Any) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    if isinstance(s, date):
        return s
    v = str(s).strip()
    if not v:
        return None
    return date.fromisoformat(v[:10])


def isoformat(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
