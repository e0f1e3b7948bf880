from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.distro.audit import record_event
from app.distro.modules.service_requests.models import (
    CLOSED_STATUSES,
    PENDING,
    REQUEST_STATUSES,
    ArtistProfileLinkingRequest,
    SocialMediaLinkingRequest,
    YouTubeClaim,
    YouTubeOacRequest,
)
from app.distro.utils import clean_str, isoformat, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from app.distro.models import User

OAC_MIN_RELEASES = 3
SOCIAL_PLATFORMS = ("facebook", "instagram", "both")
PROFILE_URL_FIELDS = {
    "instagramUrl": "instagram_url",
    "youtubeUrl": "youtube_url",
    "facebookUrl": "facebook_url",
    "spotifyUrl": "spotify_url",
    "appleMusicUrl": "apple_music_url",
}


class RequestError(ValueError):
    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


def serialize_request(obj, *, include_user: bool = False) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for col in obj.__table__.columns:
        value = getattr(obj, col.key)
        out[_camel(col.key)] = isoformat(value) if isinstance(value, (date, datetime)) else value
    if include_user and obj.user is not None:
        out["user"] = {"id": obj.user.id, "name": obj.user.name, "email": obj.user.email}
    return out


def _record_created(s: "Session", obj, user: "User") -> None:
    s.add(obj)
    s.flush()
    record_event(
        s,
        actor=user,
        action=f"{obj.__tablename__}.create",
        entity_type=type(obj).__name__,
        entity_id=str(obj.id),
    )


def create_youtube_claim(s: "Session", user: "User", payload: dict) -> YouTubeClaim:
    from app.distro.modules.releases.models import Release

    video_urls = clean_str(payload.get("videoUrls"))
    if not video_urls:
        raise RequestError("Video URLs are required")

    release_id = None
    if payload.get("releaseId") not in (None, ""):
        release = s.get(Release, parse_int(payload.get("releaseId")) or 0)
        if release is None or release.user_id != user.id:
            raise RequestError("Release not found or access denied", 403)
        release_id = release.id

    now = datetime.utcnow()
    claim = YouTubeClaim(
        user_id=user.id,
        release_id=release_id,
        video_urls=video_urls,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    _record_created(s, claim, user)
    return claim


def create_youtube_oac_request(s: "Session", user: "User", payload: dict) -> YouTubeOacRequest:
    """Official Artist Channel request; needs an established catalogue and no open request."""
    from app.distro.modules.releases.models import Release

    channel_link = clean_str(payload.get("channelLink"))
    legal_name = clean_str(payload.get("legalName"))
    channel_name = clean_str(payload.get("channelName"))
    if not (channel_link and legal_name and channel_name):
        raise RequestError("All fields are required")

    release_count = s.query(func.count(Release.id)).filter(Release.user_id == user.id).scalar() or 0
    if release_count < OAC_MIN_RELEASES:
        raise RequestError(
            f"You must have at least {OAC_MIN_RELEASES} songs distributed through our platform to request YouTube OAC"
        )

    pending = (
        s.query(YouTubeOacRequest)
        .filter(YouTubeOacRequest.user_id == user.id, YouTubeOacRequest.status == PENDING)
        .first()
    )
    if pending is not None:
        raise RequestError("You already have a pending OAC request")

    now = datetime.utcnow()
    req = YouTubeOacRequest(
        user_id=user.id,
        channel_link=channel_link,
        legal_name=legal_name,
        channel_name=channel_name,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    _record_created(s, req, user)
    return req


def create_social_media_linking_request(s: "Session", user: "User", payload: dict) -> SocialMediaLinkingRequest:
    email = clean_str(payload.get("email"))
    label = clean_str(payload.get("label"))
    platforms = (clean_str(payload.get("platforms")) or "").lower()
    isrc = clean_str(payload.get("isrc"))
    facebook_page_url = clean_str(payload.get("facebookPageUrl"))
    instagram_handle = clean_str(payload.get("instagramHandle"))

    if not (email and label and platforms and isrc):
        raise RequestError("Email, label, platforms, and ISRC are required")
    if platforms not in SOCIAL_PLATFORMS:
        raise RequestError("platforms must be facebook, instagram or both")
    if platforms == "facebook" and not facebook_page_url:
        raise RequestError("Facebook Page URL is required")
    if platforms == "instagram" and not instagram_handle:
        raise RequestError("Instagram Handle is required")
    if platforms == "both" and not (facebook_page_url and instagram_handle):
        raise RequestError("Both Facebook and Instagram details are required")

    now = datetime.utcnow()
    req = SocialMediaLinkingRequest(
        user_id=user.id,
        email=email,
        label=label,
        platforms=platforms,
        facebook_page_url=facebook_page_url,
        instagram_handle=instagram_handle,
        isrc=isrc,
        status=PENDING,
        created_at=now,
        updated_at=now,
    )
    _record_created(s, req, user)
    return req


def create_artist_profile_linking_request(s: "Session", user: "User", payload: dict) -> ArtistProfileLinkingRequest:
    artist_name = clean_str(payload.get("artistName"))
    email = clean_str(payload.get("email"))
    if not (artist_name and email):
        raise RequestError("Artist name and email are required")

    urls = {attr: clean_str(payload.get(key)) for key, attr in PROFILE_URL_FIELDS.items()}
    if not any(urls.values()):
        raise RequestError("At least one platform URL is required")

    now = datetime.utcnow()
    req = ArtistProfileLinkingRequest(
        user_id=user.id,
        artist_name=artist_name,
        email=email,
        status=PENDING,
        created_at=now,
        updated_at=now,
        **urls,
    )
    _record_created(s, req, user)
    return req


def update_request_status(s: "Session", obj, admin: "User", *, status: Any, admin_notes: Any = None):
    new_status = (clean_str(status) or "").upper()
    if new_status not in REQUEST_STATUSES:
        raise RequestError(f"Invalid status. Use one of: {', '.join(REQUEST_STATUSES)}")

    old_status = obj.status
    obj.status = new_status
    notes = clean_str(admin_notes)
    if notes is not None:
        obj.admin_notes = notes
    now = datetime.utcnow()
    obj.updated_at = now
    if new_status in CLOSED_STATUSES:
        obj.processed_at = now

    record_event(
        s,
        actor=admin,
        action=f"{obj.__tablename__}.status",
        entity_type=type(obj).__name__,
        entity_id=str(obj.id),
        reason=notes,
        metadata={"from": old_status, "to": new_status},
    )
    return obj
