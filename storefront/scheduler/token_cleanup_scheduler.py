"""Scheduled cleanup of expired, used public access tokens.

Runs PublicAccessTokenService.cleanup_expired_tokens on a fixed interval
(TOKEN_CLEANUP_INTERVAL_MINUTES). Only tokens that are both expired and
already consumed are removed; expired tokens that were never used are kept.

Usage in main application startup:
    from storefront.scheduler import start_scheduler, shutdown_scheduler

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await start_scheduler()
        yield
        await shutdown_scheduler()

Or run standalone:
    python -m storefront.scheduler.token_cleanup_scheduler
"""

import asyncio
import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from storefront.core.config import settings
from storefront.integrations.adapters.factory import get_token_store
from storefront.services.public_access_tokens import PublicAccessTokenService

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "public_token_cleanup"

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def run_token_cleanup() -> int:
    """
    Execute one cleanup pass.

    This is called by APScheduler on every interval tick. Store failures are
    logged by the service and reported as zero deletions.
    """
    service = PublicAccessTokenService(get_token_store())
    deleted = await service.cleanup_expired_tokens()
    logger.info(f"Scheduled token cleanup removed {deleted} token(s)")
    return deleted


async def start_scheduler(interval_minutes: int | None = None) -> None:
    """
    Start the token cleanup scheduler.

    Call this during application startup.
    """
    global _scheduler

    if _scheduler is not None:
        logger.warning("Scheduler already running")
        return

    minutes = interval_minutes or settings.TOKEN_CLEANUP_INTERVAL_MINUTES

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        run_token_cleanup,
        "interval",
        minutes=minutes,
        id=CLEANUP_JOB_ID,
        name="Public Token Cleanup",
        max_instances=1,
        coalesce=True,
    )

    _scheduler.start()
    logger.info(f"Token cleanup scheduler started (every {minutes} min)")


async def shutdown_scheduler() -> None:
    """
    Shutdown the scheduler gracefully.

    Call this during application shutdown.
    """
    global _scheduler

    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Token cleanup scheduler stopped")


def get_scheduler_status() -> dict[str, Any]:
    """
    Get current scheduler status for monitoring.

    Returns:
        Dictionary with scheduler state and job information
    """
    if not _scheduler:
        return {
            "running": False,
            "jobs": [],
        }

    jobs = []
    for job in _scheduler.get_jobs():
        next_run = job.next_run_time
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            }
        )

    return {
        "running": _scheduler.running,
        "jobs": jobs,
    }


# Standalone execution
if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    async def main():
        print("Starting token cleanup scheduler...")
        await start_scheduler()

        status = get_scheduler_status()
        for job in status["jobs"]:
            print(f"  - {job['name']}: next run at {job['next_run']}")

        print("\nPress Ctrl+C to stop...")
        try:
            while True:
                await asyncio.sleep(1)
        except (KeyboardInterrupt, asyncio.CancelledError):
            pass

        await shutdown_scheduler()
        print("Scheduler stopped.")

    asyncio.run(main())
