"""initial schema: accounts, releases, lookups, requests, label settings, agreements

Revision ID: 5d1e0a7c9b21
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5d1e0a7c9b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _user_fk(ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def _request_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk(),
        sa.Column("status", sa.String(32), nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    ]


def _lookup_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def upgrade() -> None:
    # ---- Accounts / RBAC / audit ----
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("legal_name", sa.String(255), nullable=True),
        sa.Column("mobile", sa.String(64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("entity_name", sa.String(255), nullable=True),
        sa.Column("custom_label", sa.String(255), nullable=True),
        sa.Column("custom_publisher", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(128), nullable=False, unique=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "user_roles",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_user_email", sa.String(320), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    # ---- Lookups ----
    op.create_table(
        "sub_labels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        _user_fk(nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    for name in ("artists", "publishers", "album_categories", "content_types"):
        _lookup_table(name)

    # ---- Releases ----
    op.create_table(
        "releases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("artwork_key", sa.String(512), nullable=True),
        sa.Column("upc", sa.String(32), nullable=True),
        sa.Column("original_release_date", sa.Date(), nullable=True),
        sa.Column("go_live_date", sa.Date(), nullable=True),
        sa.Column("c_line", sa.String(255), nullable=True),
        sa.Column("album_category_id", sa.Integer(), sa.ForeignKey("album_categories.id", ondelete="SET NULL"), nullable=True),
        sa.Column("content_type_id", sa.Integer(), sa.ForeignKey("content_types.id", ondelete="SET NULL"), nullable=True),
        sa.Column("sub_label_id", sa.Integer(), sa.ForeignKey("sub_labels.id", ondelete="SET NULL"), nullable=True),
        sa.Column("publisher_id", sa.Integer(), sa.ForeignKey("publishers.id", ondelete="SET NULL"), nullable=True),
        sa.Column("primary_artist_id", sa.Integer(), sa.ForeignKey("artists.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("allow_resubmission", sa.Boolean(), nullable=False, server_default=sa.false()),
        _user_fk(),
        *_timestamps(),
    )
    op.create_index("idx_releases_user_id", "releases", ["user_id"])
    op.create_index("idx_releases_status", "releases", ["status"])

    op.create_table(
        "tracks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("release_id", sa.Integer(), sa.ForeignKey("releases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("genre", sa.String(128), nullable=True),
        sa.Column("language", sa.String(64), nullable=True),
        sa.Column("isrc", sa.String(32), nullable=True),
        sa.Column("singer", sa.String(255), nullable=True),
        sa.Column("lyricist", sa.String(255), nullable=True),
        sa.Column("composer", sa.String(255), nullable=True),
        sa.Column("producer", sa.String(255), nullable=True),
        sa.Column("featuring", sa.String(255), nullable=True),
        sa.Column("audio_key", sa.String(512), nullable=True),
        sa.Column("crbt_start_time", sa.Integer(), nullable=True),
        sa.Column("crbt_end_time", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_tracks_release_id", "tracks", ["release_id"])

    op.create_table(
        "file_uploads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("release_id", sa.Integer(), sa.ForeignKey("releases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_type", sa.String(16), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("original_filename", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )

    # ---- Service requests ----
    op.create_table(
        "youtube_claims",
        *_request_columns(),
        sa.Column("release_id", sa.Integer(), sa.ForeignKey("releases.id", ondelete="SET NULL"), nullable=True),
        sa.Column("video_urls", sa.Text(), nullable=False),
    )
    op.create_table(
        "youtube_oac_requests",
        *_request_columns(),
        sa.Column("channel_link", sa.String(512), nullable=False),
        sa.Column("legal_name", sa.String(255), nullable=False),
        sa.Column("channel_name", sa.String(255), nullable=False),
    )
    op.create_table(
        "social_media_linking_requests",
        *_request_columns(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("label", sa.String(255), nullable=False),
        sa.Column("platforms", sa.String(16), nullable=False),
        sa.Column("facebook_page_url", sa.String(512), nullable=True),
        sa.Column("instagram_handle", sa.String(255), nullable=True),
        sa.Column("isrc", sa.String(32), nullable=False),
    )
    op.create_table(
        "artist_profile_linking_requests",
        *_request_columns(),
        sa.Column("artist_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("instagram_url", sa.String(512), nullable=True),
        sa.Column("youtube_url", sa.String(512), nullable=True),
        sa.Column("facebook_url", sa.String(512), nullable=True),
        sa.Column("spotify_url", sa.String(512), nullable=True),
        sa.Column("apple_music_url", sa.String(512), nullable=True),
    )
    for table in ("youtube_claims", "youtube_oac_requests", "social_media_linking_requests", "artist_profile_linking_requests"):
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    # ---- Label / publisher settings ----
    op.create_table(
        "user_labels",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk(),
        sa.Column("label_name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "label_name", name="uq_user_labels_user_name"),
    )
    op.create_index("ix_user_labels_user_id", "user_labels", ["user_id"])
    op.create_table(
        "user_publishers",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk(),
        sa.Column("publisher_name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "publisher_name", name="uq_user_publishers_user_name"),
    )
    op.create_index("ix_user_publishers_user_id", "user_publishers", ["user_id"])
    op.create_table(
        "global_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("setting_key", sa.String(128), nullable=False, unique=True),
        sa.Column("setting_value", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_table(
        "custom_label_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="PENDING"),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_custom_label_requests_user_id", "custom_label_requests", ["user_id"])

    # ---- Agreements ----
    op.create_table(
        "agreement_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_fk(),
        sa.Column("document_key", sa.String(512), nullable=False),
        sa.Column("document_hash", sa.String(64), nullable=False),
        sa.Column("signed_name", sa.String(255), nullable=False),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        *_timestamps(),
    )
    op.create_index("idx_agreement_requests_user_id", "agreement_requests", ["user_id"])


def downgrade() -> None:
    for table in (
        "agreement_requests",
        "custom_label_requests",
        "global_settings",
        "user_publishers",
        "user_labels",
        "artist_profile_linking_requests",
        "social_media_linking_requests",
        "youtube_oac_requests",
        "youtube_claims",
        "file_uploads",
        "tracks",
        "releases",
        "content_types",
        "album_categories",
        "publishers",
        "artists",
        "sub_labels",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
