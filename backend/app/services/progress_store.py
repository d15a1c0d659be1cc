"""Watch-progress persistence: SQL-backed store with upsert on the natural key.

The key is (owner, content id, media type, season, episode); season and
episode only take part when both are present. Writes are single-statement
``INSERT ... ON CONFLICT DO UPDATE`` so same-key writers race as
last-write-wins without ever creating a second row.
"""
from __future__ import annotations
import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert
from app.exceptions import StorageError
from app.models.progress import WatchProgress, MediaType, utcnow
from app.schemas.progress import WatchProgressRecord
from app.services.identity import Identity

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


def compute_percentage(timestamp: float, duration: float) -> float:
    if not duration or duration <= 0:
        return 0.0
    return max(0.0, min(100.0, timestamp / duration * 100))


def normalize_episode(season: int | None, episode: int | None) -> tuple[int | None, int | None]:
    if season and episode:
        return season, episode
    return None, None


class ProgressStore(Protocol):
    async def upsert(self, record: WatchProgressRecord) -> None: ...

    async def get(
        self,
        identity: Identity,
        content_id: int,
        media_type: MediaType | None = None,
        season: int | None = None,
        episode: int | None = None,
    ) -> WatchProgressRecord | None: ...

    async def list_recent(self, identity: Identity, limit: int = DEFAULT_LIST_LIMIT) -> list[WatchProgressRecord]: ...


async def query(
    store: ProgressStore,
    identity: Identity,
    content_id: int | None = None,
    media_type: MediaType | None = None,
    season: int | None = None,
    episode: int | None = None,
    limit: int | None = None,
) -> WatchProgressRecord | None | list[WatchProgressRecord]:
    """Exact lookup when a content id is given, else most-recent-first list."""
    if content_id is not None:
        return await store.get(identity, content_id, media_type, season, episode)
    return await store.list_recent(identity, limit or DEFAULT_LIST_LIMIT)


class SqlProgressStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert(self, record: WatchProgressRecord) -> None:
        identity = record.identity
        season, episode = normalize_episode(record.season, record.episode)
        now = utcnow()
        values = {
            "owner_key": identity.owner_key,
            "user_id": identity.user_id,
            "session_id": identity.session_id,
            "movie_id": record.movie_id,
            "media_type": record.media_type,
            "season": season,
            "episode": episode,
            "season_key": season or 0,
            "episode_key": episode or 0,
            "timestamp": record.timestamp,
            "duration": record.duration,
            # never trust the client's percentage
            "progress": compute_percentage(record.timestamp, record.duration),
            "updated_at": now,
        }
        stmt = dialect_insert(self.db)(WatchProgress).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["owner_key", "movie_id", "media_type", "season_key", "episode_key"],
            set_={
                "timestamp": stmt.excluded.timestamp,
                "duration": stmt.excluded.duration,
                "progress": stmt.excluded.progress,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
            logger.debug(f"Saved progress {record.media_type.value}/{record.movie_id} for {identity.kind}: {values['progress']:.1f}%")
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to save progress for {identity.kind} on {record.media_type.value}/{record.movie_id}: {e}") from e

    async def get(
        self,
        identity: Identity,
        content_id: int,
        media_type: MediaType | None = None,
        season: int | None = None,
        episode: int | None = None,
    ) -> WatchProgressRecord | None:
        stmt = select(WatchProgress).where(
            WatchProgress.owner_key == identity.owner_key,
            WatchProgress.movie_id == content_id,
        )
        if media_type is not None:
            stmt = stmt.where(WatchProgress.media_type == media_type)
        season, episode = normalize_episode(season, episode)
        if season is not None:
            stmt = stmt.where(WatchProgress.season_key == season, WatchProgress.episode_key == episode)
        # without an episode, the latest position for the title wins
        stmt = stmt.order_by(WatchProgress.updated_at.desc(), WatchProgress.id.desc()).limit(1)
        # rows written by the core upsert bypass the identity map
        stmt = stmt.execution_options(populate_existing=True)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to read progress for {identity.kind} on {content_id}: {e}") from e
        row = result.scalars().first()
        return WatchProgressRecord.model_validate(row) if row else None

    async def list_recent(self, identity: Identity, limit: int = DEFAULT_LIST_LIMIT) -> list[WatchProgressRecord]:
        stmt = (
            select(WatchProgress)
            .where(WatchProgress.owner_key == identity.owner_key)
            .order_by(WatchProgress.updated_at.desc(), WatchProgress.id.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"Failed to list progress for {identity.kind}: {e}") from e
        return [WatchProgressRecord.model_validate(row) for row in result.scalars().all()]

    async def query(self, identity: Identity, content_id: int | None = None, media_type: MediaType | None = None,
                    season: int | None = None, episode: int | None = None, limit: int | None = None):
        return await query(self, identity, content_id, media_type, season, episode, limit)
