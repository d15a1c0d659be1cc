from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, dialect_insert
from app.exceptions import StorageError
from app.models.favorite import Favorite
from app.models.progress import MediaType, utcnow
from app.schemas.favorite import (
    FavoriteCreate,
    FavoriteResponse,
    FavoriteListResponse,
    FavoriteStatusResponse,
)

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


async def _execute(db: AsyncSession, stmt, action: str, commit: bool = False):
    try:
        result = await db.execute(stmt)
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise StorageError(f"Failed to {action}: {e}") from e
    return result


@router.get("", response_model=FavoriteListResponse | FavoriteStatusResponse)
async def list_favorites(
    user_id: str | None = Query(None, alias="userId"),
    movie_id: int | None = Query(None, alias="movieId"),
    media_type: MediaType | None = Query(None, alias="mediaType"),
    db: AsyncSession = Depends(get_db),
):
    if not user_id:
        raise HTTPException(401, "User must be logged in")

    if movie_id is not None and media_type is not None:
        result = await _execute(
            db,
            select(Favorite.id).where(
                Favorite.user_id == user_id,
                Favorite.movie_id == movie_id,
                Favorite.media_type == media_type,
            ),
            f"check favorite {media_type.value}/{movie_id}",
        )
        return FavoriteStatusResponse(is_favorite=result.first() is not None)

    result = await _execute(
        db,
        select(Favorite)
        .where(Favorite.user_id == user_id)
        .order_by(Favorite.added_at.desc(), Favorite.id.desc())
        .execution_options(populate_existing=True),
        "list favorites",
    )
    return FavoriteListResponse(favorites=[FavoriteResponse.model_validate(f) for f in result.scalars().all()])


@router.post("", response_model=FavoriteResponse, status_code=201)
async def add_favorite(data: FavoriteCreate, db: AsyncSession = Depends(get_db)):
    if not data.user_id:
        raise HTTPException(401, "User must be logged in to add favorites")

    stmt = dialect_insert(db)(Favorite).values(
        user_id=data.user_id,
        movie_id=data.movie_id,
        media_type=data.media_type,
        title=data.title,
        poster_path=data.poster_path,
        added_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "movie_id", "media_type"],
        set_={
            "title": stmt.excluded.title,
            "poster_path": stmt.excluded.poster_path,
            "added_at": stmt.excluded.added_at,
        },
    )
    item = f"{data.media_type.value}/{data.movie_id}"
    await _execute(db, stmt, f"add favorite {item}", commit=True)

    result = await _execute(
        db,
        select(Favorite)
        .where(
            Favorite.user_id == data.user_id,
            Favorite.movie_id == data.movie_id,
            Favorite.media_type == data.media_type,
        )
        .execution_options(populate_existing=True),
        f"load favorite {item}",
    )
    return result.scalars().first()


@router.delete("", status_code=204)
async def remove_favorite(
    user_id: str | None = Query(None, alias="userId"),
    movie_id: int = Query(..., alias="movieId"),
    media_type: MediaType = Query(..., alias="mediaType"),
    db: AsyncSession = Depends(get_db),
):
    """Remove a favorite by its natural key."""
    if not user_id:
        raise HTTPException(401, "User must be logged in")
    await _execute(
        db,
        delete(Favorite).where(
            Favorite.user_id == user_id,
            Favorite.movie_id == movie_id,
            Favorite.media_type == media_type,
        ),
        f"remove favorite {media_type.value}/{movie_id}",
        commit=True,
    )
