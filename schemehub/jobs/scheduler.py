"""
APScheduler configuration.

A single recurring job reconciles master data from the external source at
minute 0 of every SYNC_CRON_HOURS hour (default every third hour). The
job itself refuses to overlap with a running sync (see SyncSupervisor);
max_instances=1 keeps APScheduler from queueing a second copy as well.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.cron import CronTrigger

from schemehub.config import settings

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sync_master_data"

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 300,
}

scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> AsyncIOScheduler:
    """Create the scheduler on first use, inside the running event loop."""
    global scheduler
    if scheduler is None:
        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            executors={'default': AsyncIOExecutor()},
            job_defaults=job_defaults,
            timezone=settings.SCHEDULER_TIMEZONE,
        )
    return scheduler


def sync_trigger() -> CronTrigger:
    return CronTrigger(hour=settings.SYNC_CRON_HOURS, minute=0, timezone=settings.SCHEDULER_TIMEZONE)


def start_scheduler():
    """Register the master data sync job and start the scheduler."""
    from schemehub.jobs.data_sync_jobs import run_scheduled_sync

    sched = get_scheduler()
    if sched.running:
        return

    sched.add_job(
        run_scheduled_sync,
        sync_trigger(),
        id=SYNC_JOB_ID,
        name='Sync products and distributors from external source',
        replace_existing=True,
    )
    sched.start()
    logger.info("Background job scheduler started")

    for job in sched.get_jobs():
        logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background job scheduler stopped")
    scheduler = None


def get_job_status():
    """Get status of all scheduled jobs."""
    if scheduler is None:
        return []
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in scheduler.get_jobs()
    ]


def get_next_sync_time() -> Optional[str]:
    for job in get_job_status():
        if job['id'] == SYNC_JOB_ID:
            return job['next_run_time']
    return None
