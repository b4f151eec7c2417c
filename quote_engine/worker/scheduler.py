"""APScheduler job definitions for the penalty jobs."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from quote_engine.config import Settings
from quote_engine.worker.tasks import PenaltyTaskRunner

logger = logging.getLogger(__name__)


def setup_scheduler(task_runner: PenaltyTaskRunner, settings: Settings) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Scheduling overview (in settings.scheduler_timezone):
    - Daily SLA detection and automatic penalties at daily_penalty_check_hour
    - Hourly detection-only pass logging critical violations
    - Weekly penalty statistics on weekly_stats_day_of_week at weekly_stats_hour
    - Pending wallet-debit reconciliation every pending_penalty_reconcile_hours

    Returns:
        Configured scheduler instance (not started)
    """
    timezone = settings.scheduler_timezone
    scheduler = AsyncIOScheduler(timezone=timezone)

    scheduler.add_job(
        task_runner.run_daily_penalty_check,
        CronTrigger(hour=settings.daily_penalty_check_hour, minute=0, timezone=timezone),
        id="daily_penalty_check",
        name="Detect SLA violations and apply penalties",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
        replace_existing=True,
    )

    scheduler.add_job(
        task_runner.run_hourly_critical_check,
        CronTrigger(minute=0, timezone=timezone),
        id="hourly_critical_check",
        name="Log critical SLA violations",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    scheduler.add_job(
        task_runner.run_weekly_statistics,
        CronTrigger(
            day_of_week=settings.weekly_stats_day_of_week,
            hour=settings.weekly_stats_hour,
            minute=0,
            timezone=timezone,
        ),
        id="weekly_statistics",
        name="Weekly penalty statistics",
        max_instances=1,
        replace_existing=True,
    )

    scheduler.add_job(
        task_runner.run_pending_reconciliation,
        IntervalTrigger(hours=settings.pending_penalty_reconcile_hours, timezone=timezone),
        id="pending_reconciliation",
        name="Retry wallet debits for pending penalties",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured (%s): penalty check daily at %02d:00, critical check hourly, "
        "statistics on %s at %02d:00, pending reconciliation every %d hours",
        timezone,
        settings.daily_penalty_check_hour,
        settings.weekly_stats_day_of_week,
        settings.weekly_stats_hour,
        settings.pending_penalty_reconcile_hours,
    )

    return scheduler


def scheduler_status(scheduler: AsyncIOScheduler | None) -> dict:
    """Running flag and next run time of every job."""
    if scheduler is None:
        return {"running": False, "jobs": []}
    jobs = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run.isoformat() if next_run else None,
            }
        )
    return {"running": scheduler.running, "jobs": jobs}
