from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.progress import MediaType
from app.schemas.progress import (
    WatchProgressRecord,
    ProgressSaveResponse,
    ProgressLookupResponse,
    ProgressListResponse,
)
from app.services.identity import Identity
from app.services.progress_store import DEFAULT_LIST_LIMIT, SqlProgressStore

router = APIRouter(prefix="/api/watch-progress", tags=["watch-progress"])


def get_progress_store(db: AsyncSession = Depends(get_db)) -> SqlProgressStore:
    return SqlProgressStore(db)


def identity_from_params(user_id: str | None, session_id: str | None) -> Identity | None:
    """Account id wins when both are sent."""
    if user_id:
        return Identity(user_id=user_id)
    if session_id:
        return Identity(session_id=session_id)
    return None


@router.post("", response_model=ProgressSaveResponse)
async def save_progress(data: WatchProgressRecord, store: SqlProgressStore = Depends(get_progress_store)):
    await store.upsert(data)
    return ProgressSaveResponse()


@router.get("", response_model=ProgressLookupResponse | ProgressListResponse)
async def get_progress(
    movie_id: int | None = Query(None, alias="movieId"),
    media_type: MediaType | None = Query(None, alias="mediaType"),
    user_id: str | None = Query(None, alias="userId"),
    session_id: str | None = Query(None, alias="sessionId"),
    season: int | None = Query(None),
    episode: int | None = Query(None),
    limit: int | None = Query(None, ge=1, le=100),
    store: SqlProgressStore = Depends(get_progress_store),
):
    identity = identity_from_params(user_id, session_id)
    if identity is None:
        raise HTTPException(400, "Missing required parameters")

    if movie_id is not None:
        record = await store.get(identity, movie_id, media_type, season, episode)
        return ProgressLookupResponse(progress=record)

    # continue-watching feed
    records = await store.list_recent(identity, limit or DEFAULT_LIST_LIMIT)
    return ProgressListResponse(progress=records)
