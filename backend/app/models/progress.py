from datetime import datetime, timezone
from sqlalchemy import String, Integer, Float, DateTime, Index, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column
from app.database import Base
import enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MediaType(str, enum.Enum):
    movie = "movie"
    tv = "tv"


class WatchProgress(Base):
    __tablename__ = "watch_progress"
    __table_args__ = (
        UniqueConstraint(
            "owner_key", "movie_id", "media_type", "season_key", "episode_key",
            name="uq_watch_progress_owner_item",
        ),
        Index("ix_watch_progress_owner_updated", "owner_key", "updated_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # "user:<id>" or "guest:<token>"; a guest row never carries a user_id
    owner_key: Mapped[str] = mapped_column(String(160), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    movie_id: Mapped[int] = mapped_column(Integer, nullable=False)
    media_type: Mapped[MediaType] = mapped_column(SAEnum(MediaType), nullable=False)
    season: Mapped[int | None] = mapped_column(Integer, nullable=True)
    episode: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # NOT NULL mirrors of season/episode (0 = none) so the unique key never compares NULLs
    season_key: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    episode_key: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
