"""Async TMDB catalog client, with every call routed through the injected cache."""
from __future__ import annotations
import aiohttp
import logging
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter

from app.config import get_settings
from app.exceptions import ResolutionError
from app.models.progress import MediaType
from app.schemas.catalog import (
    CatalogItem,
    Credits,
    Genre,
    MovieDetails,
    MovieItem,
    PagedResults,
    Season,
    TVDetails,
    TVItem,
    Video,
)
from app.services.cache import CACHE_DURATIONS, CacheBackend, cached, get_cache

logger = logging.getLogger(__name__)

_item_adapter = TypeAdapter(CatalogItem)

# category -> media types it exists for
LISTINGS = {
    "popular": {MediaType.movie, MediaType.tv},
    "top_rated": {MediaType.movie, MediaType.tv},
    "upcoming": {MediaType.movie},
    "now_playing": {MediaType.movie},
    "airing_today": {MediaType.tv},
    "on_the_air": {MediaType.tv},
}


def _list_ttl(media_type: MediaType) -> int:
    return CACHE_DURATIONS["movies"] if media_type == MediaType.movie else CACHE_DURATIONS["tv_shows"]


def _details_ttl(media_type: MediaType) -> int:
    return CACHE_DURATIONS["movie_details"] if media_type == MediaType.movie else CACHE_DURATIONS["tv_details"]


def build_streaming_url(base_url: str, media_type: MediaType, content_id: int,
                        season: int | None = None, episode: int | None = None) -> str:
    """Embed URL for the third-party player; the page treats it as opaque."""
    base_url = base_url.rstrip("/")
    if media_type == MediaType.movie:
        return f"{base_url}/movie/{content_id}"
    return f"{base_url}/tv/{content_id}/{season or 1}/{episode or 1}"


def image_url(base_url: str, path: str | None, size: str = "original") -> str:
    if not path:
        return "/placeholder-image.jpg"
    return f"{base_url.rstrip('/')}/{size}{path}"


def poster_url(item: MovieItem | TVItem, size: str = "w500", base_url: str | None = None) -> str:
    return image_url(base_url or get_settings().tmdb_image_base_url, item.poster_path, size)


class TMDBClient:
    def __init__(self, base_url: str, access_token: str, cache: CacheBackend):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.cache = cache
        self._session: aiohttp.ClientSession | None = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=30),
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _get(self, path: str, **params) -> Any:
        async with self.session.get(f"{self.base_url}{path}", params=params or None) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def _cached_get(self, key: str, ttl: int, path: str, **params) -> Any:
        return await cached(self.cache, key, lambda: self._get(path, **params), ttl)

    def _page(self, data: dict, media_type: MediaType | None = None) -> PagedResults:
        """Tag each raw result with its kind; untaggable results (people) are skipped."""
        items = []
        for raw in data.get("results") or []:
            kind = media_type.value if media_type else raw.get("media_type")
            if kind not in ("movie", "tv"):
                continue
            items.append(_item_adapter.validate_python({**raw, "kind": kind}))
        return PagedResults(
            page=data.get("page", 1),
            results=items,
            total_pages=data.get("total_pages", 1),
            total_results=data.get("total_results", len(items)),
        )

    async def trending(self, media_type: MediaType, time_window: str = "week") -> PagedResults:
        data = await self._cached_get(
            f"trending_{media_type.value}_{time_window}", CACHE_DURATIONS["trending"],
            f"/trending/{media_type.value}/{time_window}",
        )
        return self._page(data, media_type)

    async def listing(self, media_type: MediaType, category: str, page: int = 1) -> PagedResults:
        if media_type not in LISTINGS.get(category, set()):
            raise ValueError(f"No '{category}' listing for {media_type.value}")
        data = await self._cached_get(
            f"{category}_{media_type.value}_{page}", _list_ttl(media_type),
            f"/{media_type.value}/{category}", page=page,
        )
        return self._page(data, media_type)

    async def details(self, media_type: MediaType, content_id: int) -> MovieDetails | TVDetails:
        data = await self._cached_get(
            f"{media_type.value}_details_{content_id}", _details_ttl(media_type),
            f"/{media_type.value}/{content_id}",
        )
        if media_type == MediaType.movie:
            return MovieDetails.model_validate({**data, "kind": "movie"})
        return TVDetails.model_validate({**data, "kind": "tv"})

    async def credits(self, media_type: MediaType, content_id: int) -> Credits:
        data = await self._cached_get(
            f"{media_type.value}_credits_{content_id}", _details_ttl(media_type),
            f"/{media_type.value}/{content_id}/credits",
        )
        return Credits.model_validate(data)

    async def videos(self, media_type: MediaType, content_id: int) -> list[Video]:
        data = await self._cached_get(
            f"{media_type.value}_videos_{content_id}", _details_ttl(media_type),
            f"/{media_type.value}/{content_id}/videos",
        )
        return [Video.model_validate(v) for v in data.get("results") or []]

    async def similar(self, media_type: MediaType, content_id: int) -> PagedResults:
        data = await self._cached_get(
            f"{media_type.value}_similar_{content_id}", _list_ttl(media_type),
            f"/{media_type.value}/{content_id}/similar",
        )
        return self._page(data, media_type)

    async def recommendations(self, media_type: MediaType, content_id: int) -> PagedResults:
        data = await self._cached_get(
            f"{media_type.value}_recommendations_{content_id}", _list_ttl(media_type),
            f"/{media_type.value}/{content_id}/recommendations",
        )
        return self._page(data, media_type)

    async def tv_season(self, content_id: int, season_number: int) -> Season:
        data = await self._cached_get(
            f"tv_season_{content_id}_{season_number}", CACHE_DURATIONS["tv_details"],
            f"/tv/{content_id}/season/{season_number}",
        )
        return Season.model_validate(data)

    async def search(self, query: str, media_type: MediaType | None = None, page: int = 1) -> PagedResults:
        """media_type None searches movies and TV together."""
        scope = media_type.value if media_type else "multi"
        data = await self._cached_get(
            f"search_{scope}_{query.casefold()}_{page}", CACHE_DURATIONS["search_results"],
            f"/search/{scope}", query=query, page=page,
        )
        return self._page(data, media_type)

    async def genres(self, media_type: MediaType) -> list[Genre]:
        data = await self._cached_get(
            f"{media_type.value}_genres", CACHE_DURATIONS["genres"],
            f"/genre/{media_type.value}/list",
        )
        return [Genre.model_validate(g) for g in data.get("genres") or []]

    async def discover(self, media_type: MediaType, genre_id: int, page: int = 1) -> PagedResults:
        data = await self._cached_get(
            f"discover_{media_type.value}_{genre_id}_{page}", _list_ttl(media_type),
            f"/discover/{media_type.value}", with_genres=genre_id, page=page,
        )
        return self._page(data, media_type)

    async def resolve(self, content_id: int, media_type: MediaType) -> MovieDetails | TVDetails:
        """Details lookup for one progress entry; any failure is a ResolutionError."""
        try:
            return await self.details(media_type, content_id)
        except Exception as e:
            raise ResolutionError(f"Failed to load {media_type.value} {content_id}: {e}") from e


@lru_cache
def get_tmdb_client() -> TMDBClient:
    settings = get_settings()
    return TMDBClient(settings.tmdb_base_url, settings.tmdb_access_token, get_cache())
