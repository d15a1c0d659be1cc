"""Initial schema: users, watch progress, favorites

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# shared by two tables, so created once up front
media_type = postgresql.ENUM("movie", "tv", name="mediatype", create_type=False)


def upgrade() -> None:
    media_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "watch_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_key", sa.String(160), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("session_id", sa.String(128), nullable=True),
        sa.Column("movie_id", sa.Integer(), nullable=False),
        sa.Column("media_type", media_type, nullable=False),
        sa.Column("season", sa.Integer(), nullable=True),
        sa.Column("episode", sa.Integer(), nullable=True),
        sa.Column("season_key", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("episode_key", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("progress", sa.Float(), nullable=False, server_default="0"),
        sa.Column("timestamp", sa.Float(), nullable=False, server_default="0"),
        sa.Column("duration", sa.Float(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "owner_key", "movie_id", "media_type", "season_key", "episode_key",
            name="uq_watch_progress_owner_item",
        ),
    )
    op.create_index("ix_watch_progress_owner_updated", "watch_progress", ["owner_key", "updated_at"])

    op.create_table(
        "favorites",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("movie_id", sa.Integer(), nullable=False),
        sa.Column("media_type", media_type, nullable=False),
        sa.Column("title", sa.String(512), nullable=False, server_default=""),
        sa.Column("poster_path", sa.Text(), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "movie_id", "media_type", name="uq_favorites_user_item"),
    )
    op.create_index("ix_favorites_user_id", "favorites", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_favorites_user_id", "favorites")
    op.drop_table("favorites")
    op.drop_index("ix_watch_progress_owner_updated", "watch_progress")
    op.drop_table("watch_progress")
    op.drop_table("users")
    media_type.drop(op.get_bind(), checkfirst=True)
