import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from utils.session import SessionRegistry

logger = logging.getLogger(__name__)


async def refresh_sessions(sessions: SessionRegistry, margin_seconds: int):
    if not len(sessions):
        return
    refreshed = await sessions.refresh_expiring(margin_seconds)
    if refreshed:
        logger.info(f"Refreshed {refreshed} session(s) close to expiry.")


def setup_scheduler(sessions: SessionRegistry, timezone: str, margin_seconds: int):
    scheduler = AsyncIOScheduler(timezone=timezone)
    # Check more often than the margin so no token lapses between runs
    interval = max(30, margin_seconds // 2)
    scheduler.add_job(refresh_sessions, 'interval', seconds=interval, args=(sessions, margin_seconds))
    return scheduler
