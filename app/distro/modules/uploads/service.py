from __future__ import annotations

import mimetypes
import os
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, BinaryIO

from PIL import Image, UnidentifiedImageError

from app.distro.audit import record_event
from app.distro.modules.releases import lifecycle
from app.distro.modules.releases.service import audio_prefix, link_track_audio

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.distro.models import User
    from app.distro.modules.releases.models import FileUpload, Release, Track
    from app.distro.storage import Storage


FILE_TYPE_AUDIO = "AUDIO"
FILE_TYPE_ARTWORK = "ARTWORK"
FILE_TYPES = (FILE_TYPE_AUDIO, FILE_TYPE_ARTWORK)

ALLOWED_EXTENSIONS = {
    FILE_TYPE_AUDIO: (".mp3",),
    FILE_TYPE_ARTWORK: (".jpg", ".jpeg", ".png"),
}
CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}

ARTWORK_FORMATS = ("JPEG", "PNG")
ARTWORK_MIN_PX = 1400
ARTWORK_MAX_PX = 3000


class UploadError(ValueError):
    pass


@dataclass
class IssuedUpload:
    upload_url: str
    file_url: str
    file_upload: "FileUpload"


@dataclass
class ArtworkReport:
    width: int | None = None
    height: int | None = None
    format: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict:
        return {"ok": self.ok, "width": self.width, "height": self.height, "format": self.format, "errors": self.errors}


def file_extension(file_name: str) -> str:
    """Lower-cased extension of the last path component; any script is allowed in the stem."""
    base = (file_name or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    return os.path.splitext(base)[1].lower()


def check_file_name(file_type: str, file_name: str) -> str:
    """Returns the normalised extension, or raises UploadError for a type the portal does not accept."""
    if file_type not in FILE_TYPES:
        raise UploadError("fileType must be AUDIO or ARTWORK")
    ext = file_extension(file_name)
    if ext not in ALLOWED_EXTENSIONS[file_type]:
        allowed = ", ".join(ALLOWED_EXTENSIONS[file_type])
        raise UploadError(f"{file_type.title()} files must be one of: {allowed}")
    return ext


def build_storage_key(release_id: int, file_type: str, ext: str) -> str:
    if file_type == FILE_TYPE_AUDIO:
        prefix = audio_prefix(release_id)
    else:
        prefix = f"releases/{release_id}/artwork/"
    return f"{prefix}{secrets.token_hex(16)}{ext}"


def issue_upload(
    s: "Session",
    storage: "Storage",
    release: "Release",
    user: "User",
    *,
    file_type: str,
    file_name: str,
    expires_in: int,
) -> IssuedUpload:
    """
    Reserve a storage key for a direct client upload and record it.

    Artwork is pointed at the new key straight away; audio is linked to a track
    separately once the client has finished its PUT.
    """
    from app.distro.modules.releases.models import FileUpload

    lifecycle.ensure_editable(release)
    ext = check_file_name(file_type, file_name)
    key = build_storage_key(release.id, file_type, ext)
    content_type = CONTENT_TYPES.get(ext) or mimetypes.guess_type(file_name)[0]
    upload_url = storage.presigned_upload_url(key, content_type=content_type, expires_in=expires_in)

    fu = FileUpload(
        release_id=release.id,
        file_type=file_type,
        storage_key=key,
        original_filename=(file_name or "")[:255] or None,
        created_at=datetime.utcnow(),
        created_by_user_id=user.id,
    )
    s.add(fu)
    if file_type == FILE_TYPE_ARTWORK:
        release.artwork_key = key
        release.updated_at = datetime.utcnow()
    s.flush()

    record_event(
        s,
        actor=user,
        action="upload.issue",
        entity_type="Release",
        entity_id=str(release.id),
        metadata={"file_type": file_type, "storage_key": key, "file_upload_id": fu.id},
    )
    return IssuedUpload(upload_url=upload_url, file_url=key, file_upload=fu)


def attach_track_audio(s: "Session", track: "Track", audio_key: str, user: "User") -> "Track":
    key = (audio_key or "").strip().lstrip("/")
    if not key.startswith(audio_prefix(track.release_id)) or ".." in key.split("/"):
        raise UploadError("Audio file does not belong to this release")
    return link_track_audio(s, track, key, user)


def inspect_artwork(stream: BinaryIO) -> ArtworkReport:
    """Decode cover art and check format and dimensions (square JPEG/PNG, 1400-3000 px)."""
    report = ArtworkReport()
    try:
        with Image.open(stream) as image:
            report.width, report.height = image.size
            report.format = image.format
    except (UnidentifiedImageError, OSError):
        report.errors.append("File is not a readable image")
        return report

    if report.format not in ARTWORK_FORMATS:
        report.errors.append("Artwork must be a JPEG or PNG image")
    if report.width != report.height:
        report.errors.append("Artwork must be square")
    if min(report.width, report.height) < ARTWORK_MIN_PX:
        report.errors.append(f"Artwork must be at least {ARTWORK_MIN_PX}x{ARTWORK_MIN_PX} pixels")
    if max(report.width, report.height) > ARTWORK_MAX_PX:
        report.errors.append(f"Artwork must be at most {ARTWORK_MAX_PX}x{ARTWORK_MAX_PX} pixels")
    return report
