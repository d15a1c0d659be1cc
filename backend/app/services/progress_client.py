"""Async HTTP client for the watch-progress API, used by the playback surface."""
from __future__ import annotations
import asyncio
import aiohttp
import logging
from typing import Any

from pydantic import ValidationError

from app.exceptions import StorageError
from app.models.progress import MediaType
from app.schemas.progress import WatchProgressRecord
from app.services.identity import Identity
from app.services.progress_store import DEFAULT_LIST_LIMIT, normalize_episode, query

logger = logging.getLogger(__name__)


class ProgressApiClient:
    """Same upsert/get/list_recent surface as SqlProgressStore, over HTTP."""

    def __init__(self, base_url: str, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self.session.request(method, url, **kwargs) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise StorageError(f"{method} {path} returned {resp.status}: {body[:200]}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StorageError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            # 2xx with a body that is not JSON, e.g. a proxy error page
            raise StorageError(f"{method} {path} returned an unreadable body: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise StorageError(f"{method} {path} returned unexpected payload type {type(data).__name__}")
        return data

    async def upsert(self, record: WatchProgressRecord) -> None:
        payload = record.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"updated_at"})
        await self._request("POST", "/api/watch-progress", json=payload)

    async def get(
        self,
        identity: Identity,
        content_id: int,
        media_type: MediaType | None = None,
        season: int | None = None,
        episode: int | None = None,
    ) -> WatchProgressRecord | None:
        params: dict[str, Any] = {**identity.as_params(), "movieId": content_id}
        if media_type is not None:
            params["mediaType"] = media_type.value
        season, episode = normalize_episode(season, episode)
        if season is not None:
            params["season"] = season
            params["episode"] = episode
        data = await self._request("GET", "/api/watch-progress", params=params)
        raw = (data or {}).get("progress")
        if not raw:
            return None
        try:
            return WatchProgressRecord.model_validate(raw)
        except ValidationError as e:
            raise StorageError(f"Malformed progress record for {content_id}: {e}") from e

    async def list_recent(self, identity: Identity, limit: int = DEFAULT_LIST_LIMIT) -> list[WatchProgressRecord]:
        params = {**identity.as_params(), "limit": limit}
        data = await self._request("GET", "/api/watch-progress", params=params)
        try:
            return [WatchProgressRecord.model_validate(raw) for raw in (data or {}).get("progress") or []]
        except (TypeError, ValidationError) as e:
            raise StorageError(f"Malformed progress list for {identity.kind}: {e}") from e

    async def query(self, identity: Identity, content_id: int | None = None, media_type: MediaType | None = None,
                    season: int | None = None, episode: int | None = None, limit: int | None = None):
        return await query(self, identity, content_id, media_type, season, episode, limit)
