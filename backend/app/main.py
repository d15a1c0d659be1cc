from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import create_tables
from app.exceptions import register_exception_handlers
from app.api import progress, favorites, auth, catalog, continue_watching
from app.services.cache import get_cache
from app.services.scheduler import start_scheduler, stop_scheduler
from app.services.tmdb import get_tmdb_client

logging.basicConfig(level=logging.DEBUG if get_settings().debug else logging.INFO)
logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting CineStream...")
    if settings.auto_create_tables:
        try:
            await create_tables()
        except Exception as e:
            logger.warning(f"Could not create tables (database unreachable?): {e}")

    start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    await get_tmdb_client().close()
    await get_cache().close()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Routers
app.include_router(progress.router)
app.include_router(continue_watching.router)
app.include_router(favorites.router)
app.include_router(auth.router)
app.include_router(catalog.router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.app_name}
