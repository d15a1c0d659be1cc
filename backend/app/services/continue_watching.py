"""Continue-watching list: recent, partially watched entries with catalog metadata."""
from __future__ import annotations
import asyncio
import logging
from typing import Protocol

from app.config import get_settings
from app.exceptions import ResolutionError, StorageError
from app.models.progress import MediaType
from app.schemas.catalog import ContinueWatchingItem, MovieDetails, TVDetails
from app.schemas.progress import WatchProgressRecord
from app.services.identity import Identity
from app.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


class CatalogResolver(Protocol):
    async def resolve(self, content_id: int, media_type: MediaType) -> MovieDetails | TVDetails: ...


class ContinueWatchingAggregator:
    def __init__(
        self,
        store: ProgressStore,
        catalog: CatalogResolver,
        *,
        limit: int | None = None,
        min_pct: float | None = None,
        max_pct: float | None = None,
    ):
        settings = get_settings()
        self.store = store
        self.catalog = catalog
        self.limit = limit or settings.continue_watching_limit
        self.min_pct = settings.continue_watching_min_pct if min_pct is None else min_pct
        self.max_pct = settings.continue_watching_max_pct if max_pct is None else max_pct

    def is_resumable(self, record: WatchProgressRecord) -> bool:
        """Actually started, not effectively finished (both bounds exclusive)."""
        return self.min_pct < record.progress < self.max_pct

    async def _resolve(self, record: WatchProgressRecord) -> ContinueWatchingItem | None:
        try:
            details = await self.catalog.resolve(record.movie_id, record.media_type)
        except ResolutionError as e:
            logger.warning(f"Dropping continue-watching entry: {e}")
            return None
        except Exception as e:
            logger.warning(
                f"Dropping continue-watching entry {record.media_type.value} {record.movie_id}: {e}",
                exc_info=True,
            )
            return None
        return ContinueWatchingItem(item=details, media_type=record.media_type.value, progress=record.progress)

    async def build(self, identity: Identity) -> list[ContinueWatchingItem]:
        try:
            records = await self.store.list_recent(identity, self.limit)
        except StorageError as e:
            logger.warning(f"Could not load progress for {identity.kind} continue-watching list: {e}")
            return []

        candidates = [r for r in records if self.is_resumable(r)]
        # gather keeps input order, so most-recently-updated stays first
        resolved = await asyncio.gather(*(self._resolve(r) for r in candidates))
        return [item for item in resolved if item is not None]
