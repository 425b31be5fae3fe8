"""Scheduler service for cron-driven job execution."""

import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from expiry_alerts.logging import get_logger

logger = get_logger(__name__, component="scheduler")

# A daily job that starts up to an hour late is still worth running once.
MISFIRE_GRACE_SECONDS = 3600


class SchedulerService:
    """
    Wraps APScheduler to trigger jobs on crontab schedules.

    Uses BackgroundScheduler to run jobs in a separate thread while
    allowing the main thread to handle signals and coordinate shutdown.
    Schedules are interpreted in the business timezone so "06:00" means
    06:00 where the tenants work.
    """

    def __init__(
        self,
        timezone_name: str = "UTC",
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            timezone_name: IANA zone the crontab expressions are evaluated in
            shutdown_event: Optional event to set on shutdown for coordination
        """
        self.timezone = timezone_name
        self.shutdown_event = shutdown_event
        self._jobs: Dict[str, Callable[[], object]] = {}

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping runs
                "coalesce": True,  # If runs were missed, only execute once
                "misfire_grace_time": MISFIRE_GRACE_SECONDS,
            },
            timezone=self.timezone,
        )

    def register(self, job_id: str, func: Callable[[], object], schedule: str) -> None:
        """
        Register a job on a 5-field crontab schedule.

        Raises:
            ValueError: If the crontab expression is invalid
        """
        trigger = CronTrigger.from_crontab(schedule, timezone=self.timezone)
        self.scheduler.add_job(
            func=func,
            trigger=trigger,
            id=job_id,
            name=job_id,
            replace_existing=True,
        )
        self._jobs[job_id] = func

        logger.info(
            f"Registered job {job_id} with schedule '{schedule}'",
            extra={
                "event": "scheduler.job_registered",
                "job": job_id,
                "schedule": schedule,
                "timezone": str(self.timezone),
            },
        )

    @property
    def job_ids(self) -> List[str]:
        return list(self._jobs)

    def start(self) -> None:
        """Start the scheduler (spawns worker threads)."""
        self.scheduler.start()

        logger.info(
            f"Scheduler started with {len(self._jobs)} job(s)",
            extra={
                "event": "scheduler.started",
                "jobs": self.job_ids,
                "timezone": str(self.timezone),
                "next_run_times": {
                    job_id: _isoformat(self.get_next_run_time(job_id)) for job_id in self._jobs
                },
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={
                "event": "scheduler.stopping",
                "wait_for_jobs": wait,
            },
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info(
            "Scheduler shutdown complete",
            extra={"event": "scheduler.stopped"}
        )

    def trigger_now(self, job_id: str) -> None:
        """
        Run a registered job immediately in the current thread.

        Raises:
            KeyError: If no job with this id is registered
        """
        if job_id not in self._jobs:
            raise KeyError(f"No job registered with id '{job_id}'")

        logger.info(
            f"Triggering immediate run of {job_id}",
            extra={"event": "scheduler.trigger_now", "job": job_id}
        )
        self._jobs[job_id]()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self, job_id: str) -> Optional[datetime]:
        """
        Get the next scheduled run time of a job.

        Returns:
            Next run time, or None if the job is unknown or the scheduler is not started
        """
        job = self.scheduler.get_job(job_id)
        return getattr(job, "next_run_time", None) if job else None


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
