from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.distro.audit import record_event
from app.distro.modules.releases import lifecycle
from app.distro.storage import Storage, StorageError
from app.distro.utils import clean_str, isoformat, parse_bool, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.distro.models import User
    from app.distro.modules.releases.models import Release, Track


# payload key -> (model attribute, kind)
RELEASE_FIELDS: dict[str, tuple[str, str]] = {
    "title": ("title", "str"),
    "upc": ("upc", "str"),
    "originalReleaseDate": ("original_release_date", "date"),
    "goLiveDate": ("go_live_date", "date"),
    "cLine": ("c_line", "str"),
    "albumCategoryId": ("album_category_id", "album_category"),
    "contentTypeId": ("content_type_id", "content_type"),
    "subLabelId": ("sub_label_id", "sub_label"),
    "publisherId": ("publisher_id", "publisher"),
    "primaryArtistId": ("primary_artist_id", "artist"),
}

TRACK_FIELDS: dict[str, tuple[str, str]] = {
    "title": ("title", "str"),
    "duration": ("duration", "int"),
    "genre": ("genre", "str"),
    "language": ("language", "str"),
    "isrc": ("isrc", "str"),
    "singer": ("singer", "str"),
    "lyricist": ("lyricist", "str"),
    "composer": ("composer", "str"),
    "producer": ("producer", "str"),
    "featuring": ("featuring", "str"),
    "crbtStartTime": ("crbt_start_time", "int"),
    "crbtEndTime": ("crbt_end_time", "int"),
}

CSV_HEADER = ("Track Title", "Artist", "Duration", "Genre", "Language", "ISRC")


def audio_prefix(release_id: int) -> str:
    return f"releases/{release_id}/audio/"


def _lookup_model(kind: str):
    from app.distro.modules.metadata.models import AlbumCategory, Artist, ContentType, Publisher, SubLabel

    return {
        "album_category": AlbumCategory,
        "content_type": ContentType,
        "sub_label": SubLabel,
        "publisher": Publisher,
        "artist": Artist,
    }[kind]


def _parse_release_payload(s: "Session", payload: dict, user: "User") -> tuple[dict[str, Any], list[str]]:
    """Only keys present in the payload are returned, so callers can apply partial updates."""
    values: dict[str, Any] = {}
    errors: list[str] = []
    for key, (attr, kind) in RELEASE_FIELDS.items():
        if key not in payload:
            continue
        raw = payload.get(key)
        if kind == "str":
            values[attr] = clean_str(raw)
        elif kind == "date":
            try:
                values[attr] = parse_date(raw)
            except ValueError:
                errors.append(f"{key} must be a YYYY-MM-DD date.")
        else:
            if raw in (None, ""):
                values[attr] = None
                continue
            ref_id = parse_int(raw)
            ref = s.get(_lookup_model(kind), ref_id) if ref_id is not None else None
            if ref is None:
                errors.append(f"{key} does not exist.")
                continue
            if kind == "sub_label" and ref.user_id is not None and ref.user_id != user.id and not user.is_admin:
                errors.append(f"{key} does not exist.")
                continue
            values[attr] = ref.id
    return values, errors


def validate_release_payload(s: "Session", payload: dict, user: "User", *, partial: bool = False) -> tuple[dict[str, Any], list[str]]:
    values, errors = _parse_release_payload(s, payload, user)
    if not partial or "title" in payload:
        if not values.get("title"):
            errors.append("Title is required.")
    return values, errors


def validate_track_payload(payload: dict, *, partial: bool = False, existing: "Track | None" = None) -> tuple[dict[str, Any], list[str]]:
    values: dict[str, Any] = {}
    errors: list[str] = []
    for key, (attr, kind) in TRACK_FIELDS.items():
        if key not in payload:
            continue
        raw = payload.get(key)
        if kind == "str":
            values[attr] = clean_str(raw)
            continue
        if raw in (None, ""):
            values[attr] = None
            continue
        n = parse_int(raw)
        if n is None or n < 0:
            errors.append(f"{key} must be a non-negative whole number of seconds.")
            continue
        values[attr] = n

    if not partial or "title" in payload:
        if not values.get("title"):
            errors.append("Track title is required.")

    def _effective(attr: str) -> Any:
        if attr in values:
            return values[attr]
        return getattr(existing, attr) if existing is not None else None

    start = _effective("crbt_start_time")
    end = _effective("crbt_end_time")
    duration = _effective("duration")
    if start is not None and end is not None and start >= end:
        errors.append("CRBT start time must be before the end time.")
    if end is not None and duration is not None and end > duration:
        errors.append("CRBT end time cannot be past the end of the track.")
    return values, errors


def create_release(s: "Session", values: dict[str, Any], user: "User", *, default_c_line: str) -> "Release":
    from app.distro.modules.releases.models import Release

    now = datetime.utcnow()
    release = Release(
        status=lifecycle.DRAFT,
        allow_resubmission=False,
        user_id=user.id,
        created_at=now,
        updated_at=now,
        **values,
    )
    if not release.c_line:
        release.c_line = default_c_line
    s.add(release)
    s.flush()

    record_event(
        s,
        actor=user,
        action="release.create",
        entity_type="Release",
        entity_id=str(release.id),
        metadata={"title": release.title},
    )
    return release


def update_release(s: "Session", release: "Release", values: dict[str, Any], user: "User") -> "Release":
    lifecycle.ensure_editable(release)

    changes = {}
    for attr, new in values.items():
        old = getattr(release, attr)
        if old != new:
            changes[attr] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(release, attr, new)

    release.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="release.edit",
        entity_type="Release",
        entity_id=str(release.id),
        metadata={"title": release.title, "changes": changes},
    )
    return release


def add_track(s: "Session", release: "Release", values: dict[str, Any], user: "User") -> "Track":
    from app.distro.modules.releases.models import Track

    lifecycle.ensure_editable(release)

    now = datetime.utcnow()
    track = Track(release_id=release.id, created_at=now, updated_at=now, **values)
    s.add(track)
    release.tracks.append(track)
    release.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="track.create",
        entity_type="Track",
        entity_id=str(track.id),
        metadata={"release_id": release.id, "title": track.title},
    )
    return track


def update_track(s: "Session", track: "Track", values: dict[str, Any], user: "User") -> "Track":
    lifecycle.ensure_editable(track.release)

    for attr, new in values.items():
        setattr(track, attr, new)
    track.updated_at = datetime.utcnow()
    track.release.updated_at = track.updated_at

    record_event(
        s,
        actor=user,
        action="track.edit",
        entity_type="Track",
        entity_id=str(track.id),
        metadata={"release_id": track.release_id, "fields": sorted(values)},
    )
    return track


def delete_track(s: "Session", track: "Track", user: "User", *, enforce_lifecycle: bool = True) -> None:
    release = track.release
    if enforce_lifecycle:
        lifecycle.ensure_track_removable(release)

    record_event(
        s,
        actor=user,
        action="track.delete",
        entity_type="Track",
        entity_id=str(track.id),
        metadata={"release_id": release.id, "title": track.title},
    )
    release.tracks.remove(track)
    s.delete(track)
    release.updated_at = datetime.utcnow()


def link_track_audio(s: "Session", track: "Track", audio_key: str, user: "User") -> "Track":
    lifecycle.ensure_editable(track.release)
    track.audio_key = audio_key
    track.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="track.audio_linked",
        entity_type="Track",
        entity_id=str(track.id),
        metadata={"release_id": track.release_id, "storage_key": audio_key},
    )
    return track


def submit_release(s: "Session", release: "Release", user: "User") -> "Release":
    previous = release.status
    lifecycle.submit_for_review(release)
    record_event(
        s,
        actor=user,
        action="release.resubmit" if previous == lifecycle.REJECTED else "release.submit",
        entity_type="Release",
        entity_id=str(release.id),
        metadata={"from": previous, "to": release.status, "track_count": len(release.tracks)},
    )
    return release


def approve_release(s: "Session", release: "Release", admin: "User") -> "Release":
    lifecycle.approve(release)
    record_event(s, actor=admin, action="release.approve", entity_type="Release", entity_id=str(release.id))
    return release


def reject_release(s: "Session", release: "Release", admin: "User", *, reason: str | None, allow_resubmission: Any) -> "Release":
    lifecycle.reject(release, reason, parse_bool(allow_resubmission))
    record_event(
        s,
        actor=admin,
        action="release.reject",
        entity_type="Release",
        entity_id=str(release.id),
        reason=release.rejection_reason,
        metadata={"allow_resubmission": release.allow_resubmission},
    )
    return release


def distribute_release(s: "Session", release: "Release", admin: "User") -> "Release":
    lifecycle.distribute(release)
    record_event(s, actor=admin, action="release.distribute", entity_type="Release", entity_id=str(release.id))
    return release


def delete_release(s: "Session", release: "Release", admin: "User") -> None:
    record_event(
        s,
        actor=admin,
        action="release.delete",
        entity_type="Release",
        entity_id=str(release.id),
        metadata={"title": release.title, "status": release.status, "track_count": len(release.tracks)},
    )
    s.delete(release)


def signed_url_or_none(storage: Storage, key: str | None, *, expires_in: int) -> str | None:
    """Signed download URL, or None when the object is missing from storage."""
    if not key:
        return None
    try:
        if not storage.exists(key):
            return None
        return storage.presigned_download_url(key, expires_in=expires_in)
    except StorageError:
        return None


def serialize_track(track: "Track") -> dict[str, Any]:
    return {
        "id": track.id,
        "releaseId": track.release_id,
        "title": track.title,
        "duration": track.duration,
        "genre": track.genre,
        "language": track.language,
        "isrc": track.isrc,
        "singer": track.singer,
        "lyricist": track.lyricist,
        "composer": track.composer,
        "producer": track.producer,
        "featuring": track.featuring,
        "audioUrl": track.audio_key,
        "crbtStartTime": track.crbt_start_time,
        "crbtEndTime": track.crbt_end_time,
        "createdAt": isoformat(track.created_at),
        "updatedAt": isoformat(track.updated_at),
    }


def serialize_release(
    release: "Release", *, artwork_url: str | None = None, include_user: bool = False, reviewer: bool = False
) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": release.id,
        "title": release.title,
        "status": release.status,
        "rejectionReason": release.rejection_reason if release.status == lifecycle.REJECTED else None,
        "allowResubmission": bool(release.allow_resubmission) if release.status == lifecycle.REJECTED else False,
        "allowedActions": lifecycle.allowed_actions(release, reviewer=reviewer),
        "artworkKey": release.artwork_key,
        "artworkUrl": artwork_url,
        "upc": release.upc,
        "originalReleaseDate": isoformat(release.original_release_date),
        "goLiveDate": isoformat(release.go_live_date),
        "cLine": release.c_line,
        "albumCategoryId": release.album_category_id,
        "contentTypeId": release.content_type_id,
        "subLabelId": release.sub_label_id,
        "publisherId": release.publisher_id,
        "primaryArtistId": release.primary_artist_id,
        "userId": release.user_id,
        "createdAt": isoformat(release.created_at),
        "updatedAt": isoformat(release.updated_at),
        "tracks": [serialize_track(t) for t in release.tracks],
    }
    if include_user and release.user is not None:
        out["user"] = {
            "id": release.user.id,
            "name": release.user.name,
            "email": release.user.email,
            "role": release.user.role,
        }
    return out


def build_download_list(release: "Release", storage: Storage, *, expires_in: int) -> list[dict[str, str]]:
    downloads: list[dict[str, str]] = []
    if release.artwork_key:
        downloads.append(
            {
                "type": "ARTWORK",
                "name": f"{release.title} - Artwork",
                "url": storage.presigned_download_url(release.artwork_key, expires_in=expires_in),
            }
        )
    for track in release.tracks:
        if track.audio_key:
            downloads.append(
                {
                    "type": "AUDIO",
                    "name": track.title,
                    "url": storage.presigned_download_url(track.audio_key, expires_in=expires_in),
                }
            )
    return downloads


def format_duration(seconds: int | None) -> str:
    if seconds is None:
        return ""
    return f"{seconds // 60}:{seconds % 60:02d}"


def metadata_json(release: "Release") -> dict[str, Any]:
    user = release.user
    return {
        "release": {
            "id": release.id,
            "title": release.title,
            "status": release.status,
            "artworkUrl": release.artwork_key,
            "upc": release.upc,
            "cLine": release.c_line,
            "createdAt": isoformat(release.created_at),
            "updatedAt": isoformat(release.updated_at),
        },
        "artist": {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
        },
        "tracks": [
            {
                "id": t.id,
                "title": t.title,
                "duration": t.duration,
                "genre": t.genre,
                "language": t.language,
                "isrc": t.isrc,
                "singer": t.singer,
                "composer": t.composer,
                "lyricist": t.lyricist,
                "producer": t.producer,
                "featuring": t.featuring,
            }
            for t in release.tracks
        ],
    }


def metadata_csv(release: "Release") -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    artist_name = release.user.name if release.user else ""
    for t in release.tracks:
        writer.writerow([t.title, artist_name, format_duration(t.duration), t.genre or "", t.language or "", t.isrc or ""])
    return buf.getvalue()
