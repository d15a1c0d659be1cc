from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.progress import get_progress_store, identity_from_params
from app.schemas.catalog import ContinueWatchingResponse
from app.services.continue_watching import ContinueWatchingAggregator
from app.services.progress_store import SqlProgressStore
from app.services.tmdb import TMDBClient, get_tmdb_client

router = APIRouter(prefix="/api/continue-watching", tags=["continue-watching"])


@router.get("", response_model=ContinueWatchingResponse)
async def continue_watching(
    user_id: str | None = Query(None, alias="userId"),
    session_id: str | None = Query(None, alias="sessionId"),
    limit: int | None = Query(None, ge=1, le=50),
    store: SqlProgressStore = Depends(get_progress_store),
    catalog: TMDBClient = Depends(get_tmdb_client),
):
    identity = identity_from_params(user_id, session_id)
    if identity is None:
        raise HTTPException(400, "Missing required parameters")
    aggregator = ContinueWatchingAggregator(store, catalog, limit=limit)
    return ContinueWatchingResponse(items=await aggregator.build(identity))
