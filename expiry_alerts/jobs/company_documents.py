"""Company document expiry: one consolidated email per tenant admin."""

from sqlalchemy.orm import Session

from expiry_alerts.config.models import JobName
from expiry_alerts.domain.models import RecordKind, Tenant
from expiry_alerts.logging import get_logger
from expiry_alerts.notifications.payloads import company_documents_context
from expiry_alerts.notifications.templates import COMPANY_DOCUMENT_ALERT

from .base import ExpiryJob
from .models import TenantRunStats

logger = get_logger(__name__, component="jobs")


class CompanyDocumentExpiryJob(ExpiryJob):
    """Alerts tenant admins about licenses and registrations on window days or once expired."""

    name = JobName.COMPANY_DOCUMENTS
    kind = RecordKind.COMPANY_DOCUMENT
    module = "company-documents"

    def process_tenant(self, session: Session, tenant: Tenant, stats: TenantRunStats) -> None:
        decisions = self.collect_decisions(session, tenant, stats)
        if not decisions:
            return

        admins = self.resolver(session).resolve_admins(tenant.id)
        if not admins:
            logger.info(
                "No admins to receive company document alert; skipped",
                extra={"event": "job.admin_summary.skipped", "alerts": len(decisions)},
            )
            return

        rendered = self.renderer.render(
            COMPANY_DOCUMENT_ALERT, company_documents_context(decisions, tenant, self.env_config)
        )
        for admin in admins:
            message = self.build_email(
                tenant,
                admin.email,
                rendered,
                action="company-document-expiry-alert",
                recipient_name=admin.name,
                metadata={"documents": len(decisions)},
            )
            self.deliver(message, stats, admin=True)
