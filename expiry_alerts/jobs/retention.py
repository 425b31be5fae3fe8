"""Batched purge of old in-app notifications."""

from typing import Optional

from expiry_alerts.alerts.clock import BusinessClock
from expiry_alerts.config.models import JobName
from expiry_alerts.logging import get_logger
from expiry_alerts.logging.context import log_context
from expiry_alerts.persistence.database import Database
from expiry_alerts.persistence.repositories import NotificationRepository
from expiry_alerts.utils.timestamps import format_timestamp_for_log, utc_now

from .base import run_lock
from .models import JobRunResult

logger = get_logger(__name__, component="retention")

DEFAULT_BATCH_SIZE = 1000


class RetentionPurger:
    """Deletes notifications created before ``now - retention_days``.

    Each batch commits on its own, and the loop stops only when a batch
    deletes nothing, so a final batch of exactly ``batch_size`` rows is
    followed by one more (empty) pass.
    """

    def __init__(self, database: Database, clock: BusinessClock, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.database = database
        self.clock = clock
        self.batch_size = batch_size

    def purge(self, retention_days: int) -> int:
        """Return the number of notifications deleted.

        Raises:
            ValueError: If ``retention_days`` is not positive
            PersistenceError: If a batch fails (earlier batches stay committed)
        """
        if retention_days < 1:
            raise ValueError("retention_days must be at least 1")

        cutoff = self.clock.cutoff(retention_days)
        total = 0
        batches = 0

        while True:
            with self.database.session() as session:
                deleted = NotificationRepository(session).delete_older_than_batch(
                    cutoff, self.batch_size
                )
            if deleted == 0:
                break

            total += deleted
            batches += 1
            logger.debug(
                f"Deleted batch of {deleted} notification(s)",
                extra={"event": "retention.batch.deleted", "batch": batches, "deleted": deleted},
            )

        logger.info(
            f"Purged {total} notification(s) older than {retention_days} days",
            extra={
                "event": "retention.purge.completed",
                "deleted": total,
                "batches": batches,
                "retention_days": retention_days,
                "cutoff": format_timestamp_for_log(cutoff),
            },
        )
        return total


class RetentionJob:
    """Scheduler-facing wrapper that reports the purge as a JobRunResult."""

    name = JobName.NOTIFICATION_RETENTION

    def __init__(
        self,
        database: Database,
        clock: BusinessClock,
        retention_days: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.purger = RetentionPurger(database, clock, batch_size)
        self.retention_days = retention_days

    def run(self, tenant_id: Optional[str] = None) -> JobRunResult:
        """Purge across all tenants; ``tenant_id`` is accepted for interface parity and ignored."""
        started = utc_now()
        lock = run_lock(self.name)
        if not lock.acquire(blocking=False):
            logger.warning(
                "Retention run skipped: previous run still in progress",
                extra={"event": "job.run.skipped", "reason": "lock_held", "job": self.name.value},
            )
            return JobRunResult(
                job=self.name.value, run_started_at=started, run_finished_at=utc_now(), skipped_run=True
            )

        try:
            with log_context(job=self.name.value):
                deleted = self.purger.purge(self.retention_days)
            return JobRunResult(
                job=self.name.value,
                run_started_at=started,
                run_finished_at=utc_now(),
                deleted=deleted,
            )
        finally:
            lock.release()
