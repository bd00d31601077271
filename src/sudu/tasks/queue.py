"""SAQ queue configuration for background tasks."""

from saq import CronJob, Queue

from sudu.config import settings

# Main task queue
queue = Queue.from_url(settings.redis_url)


def sweep_schedule(interval_minutes: int) -> str:
    """Cron expression running every ``interval_minutes`` minutes."""
    return f"*/{interval_minutes} * * * *"


def get_queue_settings() -> dict:
    """Get SAQ queue settings for the worker."""
    # Import here to avoid circular imports
    from sudu.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS, sweep_pending_registrations

    return {
        "queue": queue,
        "functions": [sweep_pending_registrations],
        "cron_jobs": [
            CronJob(
                sweep_pending_registrations,
                cron=sweep_schedule(settings.pending_sweep_interval_minutes),
                timeout=MAINTENANCE_TIMEOUT_SECONDS,
            ),
        ],
        "concurrency": 2,  # Number of concurrent tasks
        "startup": startup,
        "shutdown": shutdown,
    }


async def startup(_ctx: dict) -> None:
    """Called when worker starts."""
    pass


async def shutdown(_ctx: dict) -> None:
    """Called when worker shuts down."""
    from sudu.database import close_db

    await close_db()
