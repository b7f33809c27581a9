"""
Background Job Scheduler

APScheduler (AsyncIO) wrapper holding a registry of periodic jobs.

Jobs are registered by their modules during startup, scheduled when the
scheduler starts, and can be run on demand from the debug endpoints.
A job that raises is logged and retried on its next run.
"""

import logging
from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

JOB_DEFAULTS = {
    "coalesce": True,  # missed runs collapse into one
    "max_instances": 1,
    "misfire_grace_time": 5 * 60,
}

_scheduler: AsyncIOScheduler | None = None
_registry: dict[str, tuple[JobFunc, BaseTrigger]] = {}


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(f"Job {event.job_id} failed: {event.exception}", exc_info=event.exception)
    else:
        logger.info(f"Job {event.job_id} finished")


def _schedule(job_id: str) -> None:
    func, trigger = _registry[job_id]
    _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)
    logger.info(f"Scheduled job: {job_id}")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Add a job to the registry.

    A job registered while the scheduler is running is scheduled at once;
    otherwise it is scheduled by start_scheduler().
    """
    _registry[job_id] = (func, trigger)
    if _scheduler is not None:
        _schedule(job_id)


async def start_scheduler() -> AsyncIOScheduler:
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    for job_id in _registry:
        _schedule(job_id)
    _scheduler.start()

    logger.info(f"Scheduler started with {len(_registry)} job(s)")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, waiting for running jobs."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped")


async def run_job_now(job_id: str) -> dict[str, Any]:
    """
    Run a registered job immediately, outside its schedule.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at and
        either the job's result or the error message

    Raises:
        KeyError: If no job is registered under job_id
    """
    if job_id not in _registry:
        raise KeyError(job_id)

    func, _ = _registry[job_id]
    report: dict[str, Any] = {
        "job_id": job_id,
        "executed_at": datetime.now(UTC).isoformat(),
    }

    logger.info(f"Running job {job_id} on demand")
    try:
        report["result"] = await func()
        report["status"] = "success"
    except Exception as e:
        logger.error(f"On-demand run of {job_id} failed: {e}", exc_info=True)
        report["status"] = "error"
        report["error"] = str(e)
    return report


def list_jobs() -> list[dict[str, Any]]:
    """Registered jobs with their next run time (None until scheduled)."""
    jobs = []
    for job_id in _registry:
        scheduled = _scheduler.get_job(job_id) if _scheduler is not None else None
        next_run = scheduled.next_run_time if scheduled is not None else None
        jobs.append(
            {
                "job_id": job_id,
                "next_run_time": next_run.isoformat() if next_run else None,
            }
        )
    return jobs
