"""Shared orchestration for the expiry jobs.

Every job enumerates tenants, then runs one isolated pass per tenant inside
its own session and log context. A tenant whose pass raises is recorded in
its stats and the loop moves on; only a failure before the loop (such as
enumerating tenants) propagates to the caller.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from expiry_alerts.alerts.clock import BusinessClock
from expiry_alerts.alerts.gate import AlertGate
from expiry_alerts.alerts.recipients import RecipientResolver
from expiry_alerts.alerts.scanner import TenantScanner
from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.config.models import ExpiryJobConfig, JobName
from expiry_alerts.domain.models import AlertDecision, OutboundEmail, RecordKind, RenderedEmail, Tenant
from expiry_alerts.logging import get_logger
from expiry_alerts.logging.context import log_context
from expiry_alerts.notifications.sender import EmailSender
from expiry_alerts.notifications.templates import TemplateRenderer
from expiry_alerts.persistence.database import Database
from expiry_alerts.persistence.exceptions import RecordNotFoundError
from expiry_alerts.persistence.repositories import (
    ExpiringRecordRepository,
    MemberRepository,
    TenantRepository,
)
from expiry_alerts.utils.timestamps import utc_now

from .models import JobRunResult, TenantRunStats

logger = get_logger(__name__, component="jobs")

# One lock per job name: overlapping runs of the same job are skipped.
_RUN_LOCKS: Dict[str, threading.Lock] = {name.value: threading.Lock() for name in JobName}


def run_lock(name: JobName) -> threading.Lock:
    return _RUN_LOCKS[name.value]


def enumerate_tenants(database: Database, tenant_id: Optional[str] = None) -> List[Tenant]:
    """Active tenants, or exactly the requested one.

    Raises:
        RecordNotFoundError: If ``tenant_id`` is unknown or inactive
        PersistenceError: If tenants cannot be read
    """
    with database.session() as session:
        tenants = TenantRepository(session)
        if tenant_id is None:
            return tenants.list_active()

        tenant = tenants.get(tenant_id)
        if tenant is None or not tenant.is_active:
            raise RecordNotFoundError(f"Active tenant {tenant_id} not found")
        return [tenant]


class ExpiryJob(ABC):
    """Base class for a scheduled expiry job.

    Subclasses set ``name`` and ``kind`` and implement ``process_tenant``.
    """

    name: JobName
    kind: RecordKind
    module: str = "other"

    def __init__(
        self,
        database: Database,
        env_config: EnvironmentConfig,
        job_config: ExpiryJobConfig,
        clock: BusinessClock,
        sender: Optional[EmailSender] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.database = database
        self.env_config = env_config
        self.job_config = job_config
        self.clock = clock
        self.sender = sender
        self.renderer = renderer or TemplateRenderer()
        self.single_tenant_id: Optional[str] = None

    def run(self, tenant_id: Optional[str] = None) -> JobRunResult:
        """Run the job over all active tenants, or one tenant.

        Raises:
            PersistenceError: If tenants cannot be enumerated
        """
        run_started_at = utc_now()
        run_id = uuid4().hex
        lock = run_lock(self.name)

        if not lock.acquire(blocking=False):
            with log_context(run_id=run_id, job=self.name.value):
                logger.warning(
                    "Job run skipped: previous run still in progress",
                    extra={"event": "job.run.skipped", "reason": "lock_held"},
                )
            return JobRunResult(
                job=self.name.value,
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                skipped_run=True,
            )

        try:
            self.single_tenant_id = tenant_id
            with log_context(run_id=run_id, job=self.name.value):
                logger.info(
                    "Job run started",
                    extra={
                        "event": "job.run.started",
                        "today": self.clock.today.isoformat(),
                        "windows": list(self.job_config.windows),
                        "alert_on_expired": self.job_config.alert_on_expired,
                        "single_tenant": tenant_id,
                    },
                )

                tenants = enumerate_tenants(self.database, tenant_id)
                tenant_stats = [self._run_tenant(tenant) for tenant in tenants]

                result = JobRunResult(
                    job=self.name.value,
                    run_started_at=run_started_at,
                    run_finished_at=utc_now(),
                    tenant_stats=tenant_stats,
                )
                logger.info(
                    "Job run completed",
                    extra={"event": "job.run.completed", **result.summary()},
                )
                return result
        finally:
            lock.release()

    def _run_tenant(self, tenant: Tenant) -> TenantRunStats:
        started = time.time()
        stats = TenantRunStats(tenant_id=tenant.id, tenant_slug=tenant.slug)

        with log_context(tenant_id=tenant.id, tenant_slug=tenant.slug):
            try:
                with self.database.session() as session:
                    self.process_tenant(session, tenant, stats)
            except Exception as e:
                stats.had_errors = True
                stats.error_message = str(e)
                logger.error(
                    f"Tenant pass failed for {tenant.slug}: {e}",
                    extra={"event": "tenant.pass.failed", "error_type": type(e).__name__},
                    exc_info=True,
                )

            stats.duration_seconds = time.time() - started
            logger.info(
                f"Tenant pass finished for {tenant.slug}",
                extra={
                    "event": "tenant.pass.completed",
                    "checked": stats.checked,
                    "alerted": stats.alerted,
                    "sent": stats.sent,
                    "failed": stats.failed,
                    "admin_sent": stats.admin_sent,
                    "skipped": stats.skipped,
                    "had_errors": stats.had_errors,
                },
            )
        return stats

    @abstractmethod
    def process_tenant(self, session: Session, tenant: Tenant, stats: TenantRunStats) -> None:
        """Scan, gate and deliver for one tenant. Exceptions abandon only this tenant."""

    def scanner(self, session: Session) -> TenantScanner:
        return TenantScanner(ExpiringRecordRepository(session), self.kind, self.clock)

    def gate(self, **kwargs) -> AlertGate:
        return AlertGate(
            self.job_config.windows,
            self.clock,
            alert_on_expired=self.job_config.alert_on_expired,
            **kwargs,
        )

    def resolver(self, session: Session) -> RecipientResolver:
        return RecipientResolver(MemberRepository(session))

    def collect_decisions(
        self, session: Session, tenant: Tenant, stats: TenantRunStats
    ) -> List[AlertDecision]:
        """Scan the tenant and keep the records the gate fires on today."""
        records = self.scanner(session).scan(
            tenant.id,
            self.job_config.max_window,
            include_expired=self.job_config.alert_on_expired,
            expired_lookback_days=self.job_config.expired_lookback_days,
        )
        stats.checked += len(records)

        gate = self.gate()
        today = self.clock.today
        decisions = [d for d in (gate.evaluate(r, today) for r in records) if d is not None]
        stats.alerted += len(decisions)
        return decisions

    def build_email(
        self, tenant: Tenant, recipient_email: str, rendered: RenderedEmail, action: str, **fields
    ) -> OutboundEmail:
        return OutboundEmail(
            to=[recipient_email],
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            module=self.module,
            action=action,
            tenant_id=tenant.id,
            organization_name=tenant.name,
            organization_slug=tenant.slug,
            **fields,
        )

    def deliver(self, message: OutboundEmail, stats: TenantRunStats, admin: bool = False) -> None:
        """Send with failure handling and update the counters."""
        if self.sender is None:
            raise RuntimeError(f"{self.name.value} requires an email sender")

        outcome = self.sender.send_with_failure_handling(message)
        if outcome.skipped:
            stats.skipped += 1
        elif outcome.success:
            if admin:
                stats.admin_sent += 1
            else:
                stats.sent += 1
        else:
            stats.failed += 1
