"""Scheduling module for cron-driven execution of the expiry jobs."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
