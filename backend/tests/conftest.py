"""
Pytest fixtures and configuration for CineStream tests
"""
import asyncio

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.database import Base
from app.exceptions import ResolutionError, StorageError
from app.models.progress import MediaType
from app.schemas.catalog import MovieDetails, TVDetails
from app.schemas.progress import WatchProgressRecord
from app.services.progress_store import normalize_episode
import app.models  # noqa: F401


class FakeClock:
    """Manually advanced stand-in for time.monotonic"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProgressStore:
    """In-memory progress store that records every call"""

    def __init__(self, records=None, fail_get=False, fail_upsert=False, fail_list=False):
        self.records = list(records or [])
        self.upserts = []
        self.fail_get = fail_get
        self.fail_upsert = fail_upsert
        self.fail_list = fail_list

    async def upsert(self, record):
        if self.fail_upsert:
            raise StorageError("store unreachable")
        self.upserts.append(record)

    async def get(self, identity, content_id, media_type=None, season=None, episode=None):
        if self.fail_get:
            raise StorageError("store unreachable")
        season, episode = normalize_episode(season, episode)
        for r in self.records:
            if r.identity != identity or r.movie_id != content_id:
                continue
            if media_type is not None and r.media_type != media_type:
                continue
            if season is not None and (r.season, r.episode) != (season, episode):
                continue
            return r
        return None

    async def list_recent(self, identity, limit=20):
        if self.fail_list:
            raise StorageError("store unreachable")
        return [r for r in self.records if r.identity == identity][:limit]


class FakeCatalog:
    """Catalog resolver that fails for the ids in `broken`"""

    def __init__(self, broken=()):
        self.broken = set(broken)
        self.calls = []

    async def resolve(self, content_id, media_type):
        self.calls.append((content_id, media_type))
        if content_id in self.broken:
            raise ResolutionError(f"Failed to load {media_type.value} {content_id}: 404")
        if media_type == MediaType.movie:
            return MovieDetails(id=content_id, title=f"Movie {content_id}", runtime=100)
        return TVDetails(id=content_id, name=f"Show {content_id}", episode_run_time=[45])


def make_record(movie_id=42, progress=0.0, timestamp=0.0, duration=3000.0, user_id=None,
                session_id="g1", media_type=MediaType.movie, season=None, episode=None):
    return WatchProgressRecord(
        user_id=user_id,
        session_id=None if user_id else session_id,
        movie_id=movie_id,
        media_type=media_type,
        progress=progress,
        timestamp=timestamp,
        duration=duration,
        season=season,
        episode=episode,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def api_client(tmp_path, fake_catalog):
    """TestClient over the real app, backed by a throwaway SQLite file"""
    from fastapi.testclient import TestClient
    from app.database import get_db
    from app.main import app as fastapi_app
    from app.services.tmdb import get_tmdb_client

    # NullPool: every request opens its connection on its own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_all())
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_tmdb_client] = lambda: fake_catalog
    try:
        yield TestClient(fastapi_app)
    finally:
        fastapi_app.dependency_overrides.clear()
        asyncio.run(engine.dispose())
