"""Employee document expiry emails: one per affected employee plus an admin summary."""

from collections import OrderedDict
from typing import Dict, List

from sqlalchemy.orm import Session

from expiry_alerts.config.models import JobName
from expiry_alerts.domain.models import AlertDecision, RecordKind, Tenant
from expiry_alerts.logging import get_logger
from expiry_alerts.notifications.payloads import admin_summary_context, employee_alert_context
from expiry_alerts.notifications.templates import ADMIN_DOCUMENT_SUMMARY, EMPLOYEE_DOCUMENT_ALERT

from .base import ExpiryJob
from .models import TenantRunStats

logger = get_logger(__name__, component="jobs")


def group_by_owner(decisions: List[AlertDecision]) -> Dict[str, List[AlertDecision]]:
    """Group decisions by owning employee, preserving scan order."""
    grouped: "OrderedDict[str, List[AlertDecision]]" = OrderedDict()
    for decision in decisions:
        owner = decision.record.owner_id
        if owner:
            grouped.setdefault(owner, []).append(decision)
    return grouped


class EmployeeDocumentExpiryJob(ExpiryJob):
    name = JobName.EMPLOYEE_DOCUMENTS
    kind = RecordKind.EMPLOYEE_DOCUMENT
    module = "hr"

    def process_tenant(self, session: Session, tenant: Tenant, stats: TenantRunStats) -> None:
        decisions = self.collect_decisions(session, tenant, stats)
        if not decisions:
            return

        resolver = self.resolver(session)

        for owner_id, owned in group_by_owner(decisions).items():
            recipients = resolver.resolve_individual(tenant.id, owned[0])
            if not recipients:
                logger.debug(
                    f"Employee {owner_id} has no email address; individual alert skipped",
                    extra={"event": "job.individual.skipped", "member_id": owner_id},
                )
                stats.skipped += 1
                continue

            employee = recipients[0]
            rendered = self.renderer.render(
                EMPLOYEE_DOCUMENT_ALERT,
                employee_alert_context(employee, owned, tenant, self.env_config),
            )
            message = self.build_email(
                tenant,
                employee.email,
                rendered,
                action="document-expiry-alert",
                recipient_name=employee.name,
                metadata={"member_id": owner_id, "documents": len(owned)},
            )
            self.deliver(message, stats)

        admins = resolver.resolve_admins(tenant.id)
        if not admins:
            logger.info(
                "No admins to receive document expiry summary; skipped",
                extra={"event": "job.admin_summary.skipped", "alerts": len(decisions)},
            )
            return

        rendered = self.renderer.render(
            ADMIN_DOCUMENT_SUMMARY, admin_summary_context(decisions, tenant, self.env_config)
        )
        for admin in admins:
            message = self.build_email(
                tenant,
                admin.email,
                rendered,
                action="admin-document-expiry-summary",
                recipient_name=admin.name,
                metadata={"documents": len(decisions)},
            )
            self.deliver(message, stats, admin=True)
