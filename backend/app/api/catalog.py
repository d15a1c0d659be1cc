from fastapi import APIRouter, Depends, HTTPException, Query

from app.config import get_settings
from app.models.progress import MediaType
from app.schemas.catalog import (
    CatalogDetails,
    Credits,
    Genre,
    PagedResults,
    Season,
    StreamUrlResponse,
    Video,
    SORT_FIELDS,
    sort_items,
)
from app.services.tmdb import LISTINGS, TMDBClient, build_streaming_url, get_tmdb_client

router = APIRouter(prefix="/api/catalog", tags=["catalog"])
settings = get_settings()


@router.get("/search", response_model=PagedResults)
async def search(
    q: str = Query(..., min_length=1),
    media_type: MediaType | None = Query(None, alias="mediaType"),
    page: int = Query(1, ge=1, le=500),
    sort_by: str | None = Query(None, alias="sortBy"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    catalog: TMDBClient = Depends(get_tmdb_client),
):
    if sort_by is not None and sort_by not in SORT_FIELDS:
        raise HTTPException(400, f"sortBy must be one of {', '.join(SORT_FIELDS)}")
    results = await catalog.search(q.strip(), media_type, page)
    if sort_by:
        results.results = sort_items(results.results, sort_by, descending=order == "desc")
    return results


@router.get("/{media_type}/trending", response_model=PagedResults)
async def trending(
    media_type: MediaType,
    window: str = Query("week", pattern="^(day|week)$"),
    catalog: TMDBClient = Depends(get_tmdb_client),
):
    return await catalog.trending(media_type, window)


@router.get("/{media_type}/list/{category}", response_model=PagedResults)
async def listing(
    media_type: MediaType,
    category: str,
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_tmdb_client),
):
    if media_type not in LISTINGS.get(category, set()):
        raise HTTPException(404, f"No '{category}' listing for {media_type.value}")
    return await catalog.listing(media_type, category, page)


@router.get("/{media_type}/genres", response_model=list[Genre])
async def genres(media_type: MediaType, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.genres(media_type)


@router.get("/{media_type}/genres/{genre_id}", response_model=PagedResults)
async def discover(
    media_type: MediaType,
    genre_id: int,
    page: int = Query(1, ge=1, le=500),
    catalog: TMDBClient = Depends(get_tmdb_client),
):
    return await catalog.discover(media_type, genre_id, page)


@router.get("/{media_type}/{content_id}", response_model=CatalogDetails)
async def details(media_type: MediaType, content_id: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.resolve(content_id, media_type)


@router.get("/{media_type}/{content_id}/credits", response_model=Credits)
async def credits(media_type: MediaType, content_id: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.credits(media_type, content_id)


@router.get("/{media_type}/{content_id}/videos", response_model=list[Video])
async def videos(media_type: MediaType, content_id: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.videos(media_type, content_id)


@router.get("/{media_type}/{content_id}/similar", response_model=PagedResults)
async def similar(media_type: MediaType, content_id: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.similar(media_type, content_id)


@router.get("/{media_type}/{content_id}/recommendations", response_model=PagedResults)
async def recommendations(media_type: MediaType, content_id: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.recommendations(media_type, content_id)


@router.get("/tv/{content_id}/season/{season_number}", response_model=Season)
async def tv_season(content_id: int, season_number: int, catalog: TMDBClient = Depends(get_tmdb_client)):
    return await catalog.tv_season(content_id, season_number)


@router.get("/{media_type}/{content_id}/watch", response_model=StreamUrlResponse)
async def watch(
    media_type: MediaType,
    content_id: int,
    season: int | None = Query(None, ge=1),
    episode: int | None = Query(None, ge=1),
):
    url = build_streaming_url(settings.streaming_base_url, media_type, content_id, season, episode)
    return StreamUrlResponse(url=url, stream_type="iframe")
