"""In-app warnings to employees about their own upcoming document expiries."""

from sqlalchemy.orm import Session

from expiry_alerts.config.models import JobName
from expiry_alerts.domain.models import RecordKind, Tenant
from expiry_alerts.logging import get_logger
from expiry_alerts.notifications.payloads import document_expiry_notification
from expiry_alerts.persistence.repositories import NotificationRepository

from .base import ExpiryJob
from .models import TenantRunStats

logger = get_logger(__name__, component="jobs")


class EmployeeDocumentNotificationJob(ExpiryJob):
    """Writes one notification per (employee, document, window day); sends no email.

    Re-running on the same day writes nothing new: the gate checks the
    structured dedup key before each insert.
    """

    name = JobName.EMPLOYEE_NOTIFICATIONS
    kind = RecordKind.EMPLOYEE_DOCUMENT
    module = "hr"

    def process_tenant(self, session: Session, tenant: Tenant, stats: TenantRunStats) -> None:
        records = self.scanner(session).scan(
            tenant.id, self.job_config.max_window, include_expired=False
        )
        stats.checked += len(records)

        notifications = NotificationRepository(session)
        gate = self.gate(notifications=notifications)
        today = self.clock.today

        for record in records:
            decision = gate.evaluate(record, today)
            if decision is None or not record.owner_id:
                continue
            stats.alerted += 1

            if gate.is_duplicate(decision, record.owner_id):
                stats.skipped += 1
                continue

            notifications.create(
                document_expiry_notification(decision, record.owner_id).model_copy(
                    update={"created_at": self.clock.now}
                )
            )
            stats.sent += 1
