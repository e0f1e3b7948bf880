from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.distro.models import Base

if TYPE_CHECKING:
    from app.distro.models import User


class Release(Base):
    __tablename__ = "releases"
    __table_args__ = (
        Index("idx_releases_user_id", "user_id"),
        Index("idx_releases_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    artwork_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    upc: Mapped[str | None] = mapped_column(String(32), nullable=True)
    original_release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    go_live_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    c_line: Mapped[str | None] = mapped_column(String(255), nullable=True)

    album_category_id: Mapped[int | None] = mapped_column(ForeignKey("album_categories.id", ondelete="SET NULL"), nullable=True)
    content_type_id: Mapped[int | None] = mapped_column(ForeignKey("content_types.id", ondelete="SET NULL"), nullable=True)
    sub_label_id: Mapped[int | None] = mapped_column(ForeignKey("sub_labels.id", ondelete="SET NULL"), nullable=True)
    publisher_id: Mapped[int | None] = mapped_column(ForeignKey("publishers.id", ondelete="SET NULL"), nullable=True)
    primary_artist_id: Mapped[int | None] = mapped_column(ForeignKey("artists.id", ondelete="SET NULL"), nullable=True)

    # DRAFT -> UNDER_REVIEW -> APPROVED -> DISTRIBUTED
    #                       -> REJECTED (-> UNDER_REVIEW when allow_resubmission)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="DRAFT")
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    allow_resubmission: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", lazy="selectin")

    tracks: Mapped[list["Track"]] = relationship(
        "Track",
        back_populates="release",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="Track.id",
    )
    file_uploads: Mapped[list["FileUpload"]] = relationship(
        "FileUpload",
        back_populates="release",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class Track(Base):
    __tablename__ = "tracks"
    __table_args__ = (
        Index("idx_tracks_release_id", "release_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    release_id: Mapped[int] = mapped_column(ForeignKey("releases.id", ondelete="CASCADE"), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    genre: Mapped[str | None] = mapped_column(String(128), nullable=True)
    language: Mapped[str | None] = mapped_column(String(64), nullable=True)
    isrc: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Credits
    singer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lyricist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    composer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    producer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    featuring: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Set after the direct upload completes
    audio_key: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # Caller ring-back tone clip window, seconds from track start
    crbt_start_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    crbt_end_time: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    release: Mapped[Release] = relationship("Release", back_populates="tracks", lazy="selectin")


class FileUpload(Base):
    __tablename__ = "file_uploads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    release_id: Mapped[int] = mapped_column(ForeignKey("releases.id", ondelete="CASCADE"), nullable=False)
    file_type: Mapped[str] = mapped_column(String(16), nullable=False)  # AUDIO | ARTWORK
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    release: Mapped[Release] = relationship("Release", back_populates="file_uploads", lazy="selectin")
