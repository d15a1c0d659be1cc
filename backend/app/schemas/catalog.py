from typing import Annotated, Literal, Union
from pydantic import BaseModel, Field


class Genre(BaseModel):
    id: int
    name: str


class _CatalogBase(BaseModel):
    model_config = {"extra": "ignore"}

    id: int
    overview: str | None = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    genre_ids: list[int] = []
    original_language: str | None = None
    adult: bool = False


class MovieItem(_CatalogBase):
    kind: Literal["movie"] = "movie"
    title: str = ""
    original_title: str | None = None
    release_date: str | None = None


class TVItem(_CatalogBase):
    kind: Literal["tv"] = "tv"
    name: str = ""
    original_name: str | None = None
    first_air_date: str | None = None
    origin_country: list[str] = []


CatalogItem = Annotated[Union[MovieItem, TVItem], Field(discriminator="kind")]


class MovieDetails(MovieItem):
    genres: list[Genre] = []
    runtime: int | None = None  # minutes
    tagline: str | None = None
    status: str | None = None
    imdb_id: str | None = None
    budget: int | None = None
    revenue: int | None = None


class SeasonSummary(BaseModel):
    id: int
    name: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    season_number: int
    episode_count: int | None = None
    air_date: str | None = None


class TVDetails(TVItem):
    genres: list[Genre] = []
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    episode_run_time: list[int] = []  # minutes
    seasons: list[SeasonSummary] = []
    tagline: str | None = None
    status: str | None = None
    last_air_date: str | None = None
    in_production: bool = False


CatalogDetails = Annotated[Union[MovieDetails, TVDetails], Field(discriminator="kind")]


class Episode(BaseModel):
    id: int
    name: str | None = None
    overview: str | None = None
    episode_number: int
    season_number: int
    runtime: int | None = None
    air_date: str | None = None
    still_path: str | None = None
    vote_average: float = 0.0


class Season(BaseModel):
    id: int
    name: str | None = None
    overview: str | None = None
    season_number: int
    air_date: str | None = None
    poster_path: str | None = None
    episodes: list[Episode] = []


class CastMember(BaseModel):
    id: int
    name: str
    character: str | None = None
    profile_path: str | None = None
    order: int | None = None


class CrewMember(BaseModel):
    id: int
    name: str
    job: str | None = None
    department: str | None = None
    profile_path: str | None = None


class Credits(BaseModel):
    id: int
    cast: list[CastMember] = []
    crew: list[CrewMember] = []


class Video(BaseModel):
    id: str
    key: str
    name: str
    site: str
    type: str
    official: bool = False


class PagedResults(BaseModel):
    page: int = 1
    results: list[CatalogItem] = []
    total_pages: int = 1
    total_results: int = 0


class StreamUrlResponse(BaseModel):
    url: str
    stream_type: str


class ContinueWatchingItem(BaseModel):
    item: CatalogDetails
    media_type: Literal["movie", "tv"]
    progress: float


class ContinueWatchingResponse(BaseModel):
    items: list[ContinueWatchingItem]


def display_title(item: MovieItem | TVItem) -> str:
    if item.kind == "movie":
        return item.title or item.original_title or ""
    if item.kind == "tv":
        return item.name or item.original_name or ""
    raise ValueError(f"Unknown catalog kind: {item.kind}")


def release_date(item: MovieItem | TVItem) -> str | None:
    if item.kind == "movie":
        return item.release_date or None
    if item.kind == "tv":
        return item.first_air_date or None
    raise ValueError(f"Unknown catalog kind: {item.kind}")


def runtime_seconds(details: MovieDetails | TVDetails) -> float | None:
    """Known length of one sitting (a movie, or one episode), if the catalog has it."""
    if details.kind == "movie":
        minutes = details.runtime
    elif details.kind == "tv":
        minutes = details.episode_run_time[0] if details.episode_run_time else None
    else:
        raise ValueError(f"Unknown catalog kind: {details.kind}")
    return float(minutes * 60) if minutes else None


SORT_FIELDS = ("popularity", "vote_average", "release_date", "title")


def sort_items(items: list, sort_by: str, descending: bool = True) -> list:
    """Client-chosen ordering over fields the catalog returned."""
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"sort_by must be one of {', '.join(SORT_FIELDS)}")
    if sort_by == "title":
        key = lambda i: display_title(i).casefold()
    elif sort_by == "release_date":
        key = lambda i: release_date(i) or ""
    else:
        key = lambda i: getattr(i, sort_by)
    return sorted(items, key=key, reverse=descending)
