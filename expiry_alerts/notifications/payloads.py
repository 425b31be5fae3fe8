"""Template contexts and in-app notification payloads.

Builders here turn alert decisions into the plain dictionaries the email
templates render, and into NotificationRecord rows for in-app alerts.
"""

from collections import OrderedDict
from typing import Dict, List, Sequence

from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.domain.models import (
    AlertDecision,
    FailureContext,
    NotificationRecord,
    NotificationType,
    Recipient,
    Tenant,
)

DATE_FORMAT = "%d %b %Y"

DOCUMENT_EXPIRY_TITLE = "Document Expiring Soon"
EMAIL_FAILURE_TITLE = "Email Notification Failed"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def describe_days(decision: AlertDecision) -> str:
    """Human phrase for a day offset.

    Example:
        'Expired 3 days ago', 'Expires today', '7 days remaining'
    """
    days = decision.days_remaining
    if days < 0:
        return f"Expired {_plural(abs(days), 'day')} ago"
    if days == 0:
        return "Expires today"
    return f"{_plural(days, 'day')} remaining"


def document_item(decision: AlertDecision) -> Dict:
    """One row of a document table in an email body."""
    record = decision.record
    return {
        "id": record.id,
        "name": record.subject_name,
        "reference": record.reference_label,
        "asset_info": record.asset_info,
        "owner_name": record.owner_name,
        "owner_email": record.owner_email,
        "expiry_date": record.expiry_date.strftime(DATE_FORMAT),
        "days_remaining": decision.days_remaining,
        "status": decision.status.value,
        "is_expired": decision.is_expired,
        "days_text": describe_days(decision),
    }


def _counts(decisions: Sequence[AlertDecision]) -> Dict[str, int]:
    expired = sum(1 for d in decisions if d.is_expired)
    return {"expired_count": expired, "expiring_count": len(decisions) - expired}


def employee_alert_context(
    recipient: Recipient,
    decisions: Sequence[AlertDecision],
    tenant: Tenant,
    env_config: EnvironmentConfig,
) -> Dict:
    """Context for the per-employee document email."""
    return {
        "user_name": recipient.display_name,
        "org_name": tenant.name,
        "documents": [document_item(d) for d in decisions],
        "portal_url": env_config.tenant_portal_url(tenant.slug, "/profile"),
        **_counts(decisions),
    }


def admin_summary_context(
    decisions: Sequence[AlertDecision],
    tenant: Tenant,
    env_config: EnvironmentConfig,
) -> Dict:
    """Context for the admin summary, grouped by employee in scan order."""
    grouped: "OrderedDict[str, Dict]" = OrderedDict()
    for decision in decisions:
        record = decision.record
        key = record.owner_id or record.id
        if key not in grouped:
            grouped[key] = {
                "name": record.owner_name or record.owner_email or "Unknown employee",
                "email": record.owner_email,
                "documents": [],
            }
        grouped[key]["documents"].append(document_item(decision))

    employees: List[Dict] = list(grouped.values())
    for employee in employees:
        employee["has_expired"] = any(doc["is_expired"] for doc in employee["documents"])

    return {
        "org_name": tenant.name,
        "employees": employees,
        "total_employees": len(employees),
        "portal_url": env_config.tenant_portal_url(tenant.slug, "/admin/employees/document-expiry"),
        **_counts(decisions),
    }


def company_documents_context(
    decisions: Sequence[AlertDecision],
    tenant: Tenant,
    env_config: EnvironmentConfig,
) -> Dict:
    return {
        "org_name": tenant.name,
        "documents": [document_item(d) for d in decisions],
        "portal_url": env_config.tenant_portal_url(tenant.slug, "/admin/company-documents"),
        **_counts(decisions),
    }


def warranty_context(
    decisions: Sequence[AlertDecision],
    tenant: Tenant,
    env_config: EnvironmentConfig,
) -> Dict:
    return {
        "org_name": tenant.name,
        "assets": [document_item(d) for d in decisions],
        "count": len(decisions),
        "portal_url": env_config.tenant_portal_url(tenant.slug, "/admin/assets"),
    }


def failure_alert_context(context: FailureContext, env_config: EnvironmentConfig) -> Dict:
    """Context for the super-admin escalation email."""
    return {
        "organization_name": context.organization_name,
        "organization_slug": context.organization_slug,
        "tenant_id": context.tenant_id,
        "module": context.module,
        "action": context.action,
        "recipient_email": context.recipient_email,
        "recipient_name": context.recipient_name or "",
        "email_subject": context.email_subject,
        "error": context.error,
        "error_code": context.error_code or "",
        "metadata": sorted((context.metadata or {}).items()),
        "failures_url": env_config.platform_url("/super-admin/email-failures"),
    }


def document_expiry_notification(decision: AlertDecision, recipient_id: str) -> NotificationRecord:
    """In-app warning for an employee's own expiring document.

    The dedup key travels with the row: ``record_id`` and ``alert_day``.
    """
    record = decision.record
    days = decision.days_remaining
    return NotificationRecord(
        tenant_id=record.tenant_id,
        recipient_id=recipient_id,
        type=NotificationType.DOCUMENT_EXPIRY_WARNING,
        title=DOCUMENT_EXPIRY_TITLE,
        message=f"Your {record.subject_name} will expire in {_plural(days, 'day')}. Please renew it.",
        link="/profile",
        entity_type="EmployeeDocument",
        entity_id=record.id,
        record_id=record.id,
        alert_day=days,
    )


def email_failure_notification(context: FailureContext, admin: Recipient) -> NotificationRecord:
    """In-app notice to a tenant admin that an email could not be delivered."""
    return NotificationRecord(
        tenant_id=context.tenant_id,
        recipient_id=admin.member_id or admin.email,
        type=NotificationType.EMAIL_FAILURE,
        title=EMAIL_FAILURE_TITLE,
        message=(
            f"An email for '{context.action}' to {context.recipient_email} could not be "
            f"delivered: {context.error}"
        ),
        link="/admin/settings",
        entity_type="EmailFailure",
    )
