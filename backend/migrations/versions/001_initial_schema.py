"""Initial schema: accounts, catalog mirror, and interaction tables.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. users, password_reset_tokens
  2. Catalog mirror in FK dependency order (artists → albums → songs)
  3. Interaction tables (song_ratings, song_favorites, song_comments,
     album_ratings, album_favorites)

ON DELETE policies:
  password_reset_tokens.user_id → CASCADE   (token owned by user)
  albums.artist_id              → RESTRICT  (artist with albums stays)
  songs.artist_id               → RESTRICT
  songs.album_id                → SET NULL  (a song may exist without an album)
  interaction tables.*          → CASCADE   (owned by both user and entity)

external_id is UNIQUE on every catalog table. Materialisation relies on it:
concurrent inserts of the same catalog entity collapse onto one row.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _cascade_fk(column: str, target: str, name: str) -> sa.Column:
    return sa.Column(
        column,
        sa.Integer(),
        sa.ForeignKey(target, ondelete="CASCADE", name=name),
        nullable=False,
    )


def upgrade() -> None:

    # ── Step 1: users ──────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("profile_picture_url", sa.String(500), nullable=True),
        sa.Column(
            "role",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'user'"),
        ),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
        sa.CheckConstraint("role IN ('user', 'admin')", name="ck_users_role"),
    )

    # ── Step 2: password_reset_tokens ──────────────────────────────────────

    op.create_table(
        "password_reset_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_password_reset_tokens_user"),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "used",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("FALSE"),
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_password_reset_tokens"),
        sa.UniqueConstraint("token", name="uq_password_reset_tokens_token"),
    )
    op.create_index(
        "idx_password_reset_tokens_user", "password_reset_tokens", ["user_id"],
    )

    # ── Step 3: artists ────────────────────────────────────────────────────

    op.create_table(
        "artists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column(
            "genres",
            postgresql.ARRAY(sa.String(100)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_artists"),
        sa.UniqueConstraint("external_id", name="uq_artists_external_id"),
    )

    # ── Step 4: albums ─────────────────────────────────────────────────────

    op.create_table(
        "albums",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "artist_id",
            sa.Integer(),
            sa.ForeignKey("artists.id", ondelete="RESTRICT", name="fk_albums_artist"),
            nullable=False,
        ),
        sa.Column("release_date", sa.String(10), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("total_tracks", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_albums"),
        sa.UniqueConstraint("external_id", name="uq_albums_external_id"),
    )
    op.create_index("idx_albums_artist", "albums", ["artist_id"])

    # ── Step 5: songs ──────────────────────────────────────────────────────

    op.create_table(
        "songs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "artist_id",
            sa.Integer(),
            sa.ForeignKey("artists.id", ondelete="RESTRICT", name="fk_songs_artist"),
            nullable=False,
        ),
        sa.Column(
            "album_id",
            sa.Integer(),
            sa.ForeignKey("albums.id", ondelete="SET NULL", name="fk_songs_album"),
            nullable=True,
        ),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("preview_url", sa.String(500), nullable=True),
        sa.Column("popularity", sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_songs"),
        sa.UniqueConstraint("external_id", name="uq_songs_external_id"),
    )
    op.create_index("idx_songs_artist", "songs", ["artist_id"])
    op.create_index("idx_songs_album", "songs", ["album_id"])

    # ── Step 6: song interactions ──────────────────────────────────────────

    op.create_table(
        "song_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_song_ratings_user"),
        _cascade_fk("song_id", "songs.id", "fk_song_ratings_song"),
        sa.Column("rating", sa.Numeric(2, 1), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_song_ratings"),
        sa.UniqueConstraint("user_id", "song_id", name="uq_song_ratings_user_song"),
        sa.CheckConstraint(
            "rating >= 0.5 AND rating <= 5.0",
            name="ck_song_ratings_range",
        ),
    )

    op.create_table(
        "song_favorites",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_song_favorites_user"),
        _cascade_fk("song_id", "songs.id", "fk_song_favorites_song"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_song_favorites"),
        sa.UniqueConstraint("user_id", "song_id", name="uq_song_favorites_user_song"),
    )

    op.create_table(
        "song_comments",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_song_comments_user"),
        _cascade_fk("song_id", "songs.id", "fk_song_comments_song"),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_song_comments"),
        sa.UniqueConstraint("user_id", "song_id", name="uq_song_comments_user_song"),
        sa.CheckConstraint(
            "LENGTH(TRIM(content)) > 0",
            name="ck_song_comments_nonempty",
        ),
    )

    for table in ("song_ratings", "song_favorites", "song_comments"):
        op.create_index(f"idx_{table}_user", table, ["user_id"])
        op.create_index(f"idx_{table}_song", table, ["song_id"])

    # ── Step 7: album interactions ─────────────────────────────────────────

    op.create_table(
        "album_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_album_ratings_user"),
        _cascade_fk("album_id", "albums.id", "fk_album_ratings_album"),
        sa.Column("rating", sa.Numeric(2, 1), nullable=False),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint("id", name="pk_album_ratings"),
        sa.UniqueConstraint("user_id", "album_id", name="uq_album_ratings_user_album"),
        sa.CheckConstraint(
            "rating >= 0.5 AND rating <= 5.0",
            name="ck_album_ratings_range",
        ),
    )

    op.create_table(
        "album_favorites",
        sa.Column("id", sa.Integer(), nullable=False),
        _cascade_fk("user_id", "users.id", "fk_album_favorites_user"),
        _cascade_fk("album_id", "albums.id", "fk_album_favorites_album"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_album_favorites"),
        sa.UniqueConstraint("user_id", "album_id", name="uq_album_favorites_user_album"),
    )

    for table in ("album_ratings", "album_favorites"):
        op.create_index(f"idx_{table}_user", table, ["user_id"])
        op.create_index(f"idx_{table}_album", table, ["album_id"])


def downgrade() -> None:
    """Drops everything in reverse dependency order."""
    for table in (
        "album_favorites",
        "album_ratings",
        "song_comments",
        "song_favorites",
        "song_ratings",
        "songs",
        "albums",
        "artists",
        "password_reset_tokens",
        "users",
    ):
        op.drop_table(table)
