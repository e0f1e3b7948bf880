from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from app.distro.models import Base

if TYPE_CHECKING:
    from app.distro.models import User

PENDING = "PENDING"
PROCESSING = "PROCESSING"
COMPLETED = "COMPLETED"
REJECTED = "REJECTED"

REQUEST_STATUSES = (PENDING, PROCESSING, COMPLETED, REJECTED)
CLOSED_STATUSES = (COMPLETED, REJECTED)


class ServiceRequestMixin:
    """Columns every admin-processed request carries."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PENDING)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @declared_attr
    def user(cls) -> Mapped["User"]:
        return relationship("User", lazy="selectin")


class YouTubeClaim(ServiceRequestMixin, Base):
    __tablename__ = "youtube_claims"

    release_id: Mapped[int | None] = mapped_column(ForeignKey("releases.id", ondelete="SET NULL"), nullable=True)
    video_urls: Mapped[str] = mapped_column(Text, nullable=False)  # newline separated


class YouTubeOacRequest(ServiceRequestMixin, Base):
    __tablename__ = "youtube_oac_requests"

    channel_link: Mapped[str] = mapped_column(String(512), nullable=False)
    legal_name: Mapped[str] = mapped_column(String(255), nullable=False)
    channel_name: Mapped[str] = mapped_column(String(255), nullable=False)


class SocialMediaLinkingRequest(ServiceRequestMixin, Base):
    __tablename__ = "social_media_linking_requests"

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    platforms: Mapped[str] = mapped_column(String(16), nullable=False)  # facebook | instagram | both
    facebook_page_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    instagram_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    isrc: Mapped[str] = mapped_column(String(32), nullable=False)


class ArtistProfileLinkingRequest(ServiceRequestMixin, Base):
    __tablename__ = "artist_profile_linking_requests"

    artist_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    instagram_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    youtube_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    facebook_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    spotify_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    apple_music_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
