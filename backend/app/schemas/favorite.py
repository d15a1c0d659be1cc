from datetime import datetime
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from app.models.progress import MediaType

_CAMEL = {"alias_generator": to_camel, "populate_by_name": True}


class FavoriteCreate(BaseModel):
    model_config = _CAMEL

    user_id: str | None = None
    movie_id: int
    media_type: MediaType
    title: str = ""
    poster_path: str | None = None


class FavoriteResponse(BaseModel):
    model_config = {"from_attributes": True, **_CAMEL}

    id: int
    user_id: str
    movie_id: int
    media_type: MediaType
    title: str
    poster_path: str | None
    added_at: datetime


class FavoriteListResponse(BaseModel):
    favorites: list[FavoriteResponse]


class FavoriteStatusResponse(BaseModel):
    model_config = _CAMEL

    is_favorite: bool
