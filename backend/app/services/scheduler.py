"""APScheduler setup for background jobs."""
from __future__ import annotations
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from app.config import get_settings
from app.services.cache import get_cache

logger = logging.getLogger(__name__)
settings = get_settings()

_scheduler: AsyncIOScheduler | None = None


def get_scheduler() -> AsyncIOScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler()
    return _scheduler


async def purge_expired_cache():
    """Drop expired catalog responses from the in-process cache."""
    try:
        removed = await get_cache().purge_expired()
    except Exception as e:
        logger.error(f"Cache purge failed: {e}")
        return
    if removed:
        logger.info(f"Purged {removed} expired cache entries")


def start_scheduler():
    scheduler = get_scheduler()
    scheduler.add_job(
        purge_expired_cache,
        trigger=IntervalTrigger(minutes=settings.cache_cleanup_interval_minutes),
        id="purge_expired_cache",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    scheduler = get_scheduler()
    if scheduler.running:
        scheduler.shutdown(wait=False)
