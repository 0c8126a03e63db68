"""
Scheduler for background housekeeping

Uses APScheduler to expire old sessions and drop stale catalog caches.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from merchantdesk.models.base import session_scope
from merchantdesk.services import auth_service
from merchantdesk.config import get_settings
from merchantdesk.utils.logger import log
from merchantdesk.utils.cache import purge_expired

settings = get_settings()
scheduler = AsyncIOScheduler()


async def cleanup_sessions():
    """Delete expired session tokens"""
    try:
        with session_scope() as db:
            removed = auth_service.cleanup_expired(db)
        if removed:
            log.info(f"Removed {removed} expired sessions")
    except Exception as e:
        log.error(f"Session cleanup error: {str(e)}")


async def purge_catalog_cache():
    """Free memory held by expired catalog entries"""
    removed = purge_expired()
    if removed:
        log.info(f"Purged {removed} expired cache entries")


def setup_scheduler():
    """Configure the housekeeping jobs."""
    scheduler.add_job(
        cleanup_sessions,
        trigger=IntervalTrigger(minutes=settings.session_cleanup_interval_minutes),
        id='session_cleanup',
        name='Expired Session Cleanup',
        replace_existing=True,
        max_instances=1
    )
    scheduler.add_job(
        purge_catalog_cache,
        trigger=IntervalTrigger(seconds=settings.product_cache_ttl_seconds),
        id='catalog_cache_purge',
        name='Catalog Cache Purge',
        replace_existing=True,
        max_instances=1
    )
    log.info("Scheduler configured with housekeeping jobs")


def start_scheduler():
    """Start the scheduler"""
    setup_scheduler()
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown()
        log.info("Scheduler stopped")


def get_scheduled_jobs() -> list:
    """List configured jobs with their next run time"""
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
