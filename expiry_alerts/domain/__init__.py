"""Domain models for the expiry alerts service."""

from .models import (
    AlertDecision,
    AlertStatus,
    ChannelPolicy,
    DeliveryChannel,
    DeliveryOutcome,
    EmailFailureRecord,
    ExpiringRecord,
    FailureContext,
    NotificationRecord,
    NotificationType,
    OutboundEmail,
    Recipient,
    RecordKind,
    RenderedEmail,
    ResolvedRecipients,
    Tenant,
    TenantSmtpConfig,
)

__all__ = [
    "AlertDecision",
    "AlertStatus",
    "ChannelPolicy",
    "DeliveryChannel",
    "DeliveryOutcome",
    "EmailFailureRecord",
    "ExpiringRecord",
    "FailureContext",
    "NotificationRecord",
    "NotificationType",
    "OutboundEmail",
    "Recipient",
    "RecordKind",
    "RenderedEmail",
    "ResolvedRecipients",
    "Tenant",
    "TenantSmtpConfig",
]
