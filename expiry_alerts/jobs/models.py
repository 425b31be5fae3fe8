"""Data models for job run tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class TenantRunStats:
    """
    Counters for one tenant's pass within a job run.

    Attributes:
        tenant_id: Tenant processed
        tenant_slug: Tenant slug (for log readability)
        checked: Candidate records returned by the scan
        alerted: Records the gate decided to alert on
        sent: Individual emails or in-app notifications delivered
        failed: Deliveries that failed
        admin_sent: Admin summary emails delivered
        skipped: Deliveries skipped (placeholder recipients, same-day duplicates)
        duration_seconds: Time spent on this tenant
        had_errors: Whether the tenant's pass was abandoned
        error_message: Error that abandoned the pass
    """

    tenant_id: str
    tenant_slug: Optional[str] = None
    checked: int = 0
    alerted: int = 0
    sent: int = 0
    failed: int = 0
    admin_sent: int = 0
    skipped: int = 0
    duration_seconds: float = 0.0
    had_errors: bool = False
    error_message: Optional[str] = None


@dataclass
class JobRunResult:
    """
    Aggregate results from one job invocation.

    Attributes:
        job: Job name
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        total_duration_seconds: Total time for the run
        tenant_stats: Per-tenant counters
        checked/alerted/sent/failed/admin_sent/skipped: Totals across tenants
        tenants_failed: Tenants whose pass was abandoned
        deleted: Rows removed (retention purge only)
        had_errors: Whether any tenant pass failed
        skipped_run: Whether the run was skipped (previous run still in progress)
        aborted: Whether the run raised before finishing its tenant loop
        error_message: The error that aborted the run
    """

    job: str
    run_started_at: datetime
    run_finished_at: datetime
    total_duration_seconds: float = 0.0
    tenant_stats: List[TenantRunStats] = field(default_factory=list)
    checked: int = 0
    alerted: int = 0
    sent: int = 0
    failed: int = 0
    admin_sent: int = 0
    skipped: int = 0
    tenants_failed: int = 0
    deleted: int = 0
    had_errors: bool = False
    skipped_run: bool = False
    aborted: bool = False
    error_message: Optional[str] = None

    def __post_init__(self):
        """Aggregate totals from tenant stats."""
        if self.tenant_stats:
            self.checked = sum(s.checked for s in self.tenant_stats)
            self.alerted = sum(s.alerted for s in self.tenant_stats)
            self.sent = sum(s.sent for s in self.tenant_stats)
            self.failed = sum(s.failed for s in self.tenant_stats)
            self.admin_sent = sum(s.admin_sent for s in self.tenant_stats)
            self.skipped = sum(s.skipped for s in self.tenant_stats)
            self.tenants_failed = sum(1 for s in self.tenant_stats if s.had_errors)
            self.had_errors = self.tenants_failed > 0
        if self.aborted:
            self.had_errors = True

        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()

    @property
    def tenants_processed(self) -> int:
        return len(self.tenant_stats)

    def summary(self) -> Dict[str, Any]:
        """Counters for the run summary log line."""
        return {
            "job": self.job,
            "tenants_processed": self.tenants_processed,
            "tenants_failed": self.tenants_failed,
            "checked": self.checked,
            "alerted": self.alerted,
            "sent": self.sent,
            "failed": self.failed,
            "admin_sent": self.admin_sent,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "duration_ms": int(self.total_duration_seconds * 1000),
        }
