"""Asset warranty expiry: exact-window alerts to the tenant's admins."""

from typing import Optional

from sqlalchemy.orm import Session

from expiry_alerts.alerts.recipients import RecipientResolver
from expiry_alerts.config.models import JobName
from expiry_alerts.domain.models import RecordKind, Tenant
from expiry_alerts.logging import get_logger
from expiry_alerts.notifications.payloads import warranty_context
from expiry_alerts.notifications.templates import WARRANTY_ALERT
from expiry_alerts.persistence.repositories import MemberRepository

from .base import ExpiryJob
from .models import TenantRunStats

logger = get_logger(__name__, component="jobs")


class AssetWarrantyExpiryJob(ExpiryJob):
    """Alerts on warranties ending exactly on a window day; disposed assets never qualify.

    A single-tenant run sends to ADMIN_NOTIFICATION_EMAILS when set. Runs over
    all tenants always use each tenant's own admins.
    """

    name = JobName.ASSET_WARRANTY
    kind = RecordKind.ASSET_WARRANTY
    module = "assets"

    def resolver(self, session: Session, tenant: Optional[Tenant] = None) -> RecipientResolver:
        static_admins = None
        if tenant is not None and tenant.id == self.single_tenant_id:
            static_admins = self.env_config.admin_notification_emails
        return RecipientResolver(MemberRepository(session), static_admins=static_admins)

    def process_tenant(self, session: Session, tenant: Tenant, stats: TenantRunStats) -> None:
        decisions = self.collect_decisions(session, tenant, stats)
        if not decisions:
            return

        recipients = self.resolver(session, tenant).resolve_admins(tenant.id)
        if not recipients:
            logger.info(
                "No recipients for warranty alert; skipped",
                extra={"event": "job.admin_summary.skipped", "alerts": len(decisions)},
            )
            return

        rendered = self.renderer.render(
            WARRANTY_ALERT, warranty_context(decisions, tenant, self.env_config)
        )
        for recipient in recipients:
            message = self.build_email(
                tenant,
                recipient.email,
                rendered,
                action="warranty-expiry-alert",
                recipient_name=recipient.name,
                metadata={"assets": len(decisions)},
            )
            self.deliver(message, stats, admin=True)
