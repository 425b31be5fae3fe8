"""Maps alert decisions to owner and admin recipients within one tenant."""

from typing import List, Optional, Sequence

from expiry_alerts.domain.models import AlertDecision, Recipient, RecordKind, ResolvedRecipients
from expiry_alerts.logging import get_logger
from expiry_alerts.persistence.repositories import MemberRepository

logger = get_logger(__name__, component="recipients")


class RecipientResolver:
    """Resolves recipients from the tenant's own membership.

    ``static_admins`` replaces the admin lookup when set (the warranty job's
    ADMIN_NOTIFICATION_EMAILS); it never widens the lookup beyond the tenant.
    """

    def __init__(self, members: MemberRepository, static_admins: Optional[Sequence[str]] = None):
        self.members = members
        self.static_admins = [email for email in (static_admins or []) if email]

    def resolve(self, tenant_id: str, decision: AlertDecision) -> ResolvedRecipients:
        return ResolvedRecipients(
            individual=self.resolve_individual(tenant_id, decision),
            admins=self.resolve_admins(tenant_id),
        )

    def resolve_individual(self, tenant_id: str, decision: AlertDecision) -> List[Recipient]:
        """The record's owner, for employee documents that carry an email address."""
        record = decision.record
        if record.tenant_id != tenant_id:
            raise ValueError(
                f"Record {record.id} belongs to tenant {record.tenant_id}, not {tenant_id}"
            )

        if record.kind == RecordKind.EMPLOYEE_DOCUMENT and record.owner_email:
            return [Recipient(email=record.owner_email, name=record.owner_name, member_id=record.owner_id)]
        return []

    def resolve_admins(self, tenant_id: str) -> List[Recipient]:
        if self.static_admins:
            return [Recipient(email=email) for email in self.static_admins]

        admins = self.members.list_admins(tenant_id)
        if not admins:
            logger.info(
                f"No admins found for tenant {tenant_id}",
                extra={"event": "recipients.no_admins", "tenant_id": tenant_id},
            )
        return admins
