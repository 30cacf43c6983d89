"""
Timer Scheduler

Runs the timers in-process with APScheduler, for long-running container
deployments that have no external cron.

Example usage:
    scheduler = build_scheduler()
    scheduler.start()
"""

from __future__ import annotations

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from churchapi.config import Settings, get_settings
from churchapi.jobs.timers import TIMER_HANDLERS, Timer

logger = structlog.get_logger()


def build_scheduler(settings: Settings | None = None) -> AsyncIOScheduler:
    """Create a scheduler with every timer registered; not started."""
    settings = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone="UTC")

    triggers = {
        Timer.FIFTEEN_MINUTE: IntervalTrigger(minutes=15),
        Timer.MIDNIGHT: CronTrigger(hour=0, minute=0, timezone="UTC"),
        Timer.SCHEDULED_TASKS: IntervalTrigger(
            minutes=max(1, int(settings.scheduled_tasks_interval_minutes))
        ),
    }
    for timer, trigger in triggers.items():
        scheduler.add_job(
            TIMER_HANDLERS[timer],
            trigger=trigger,
            id=f"timer_{timer.value}",
            name=f"Timer {timer.value}",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )

    logger.info("Timer scheduler configured", jobs=[job.id for job in scheduler.get_jobs()])
    return scheduler
