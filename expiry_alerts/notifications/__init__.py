"""Email composition and delivery for expiry alerts.

Public API:
    - EmailSender: channel selection (tenant relay or platform provider) and sending
    - FailureHandler: failure records, admin notices and super-admin escalation
    - TemplateRenderer: Jinja2 subject/HTML/text rendering
    - ProviderClient / SMTPClient: transports
"""

from .failures import FailureCooldown, FailureHandler
from .models import (
    DeliveryError,
    NotificationError,
    NotificationTemplateError,
    ProviderDeliveryError,
    SMTPDeliveryError,
)
from .provider_client import ProviderClient
from .sender import (
    DEV_MODE_MESSAGE_ID,
    ChannelSelection,
    EmailSender,
    filter_deliverable,
    is_placeholder_address,
)
from .smtp_client import SMTPClient, build_mime_message
from .templates import (
    ADMIN_DOCUMENT_SUMMARY,
    COMPANY_DOCUMENT_ALERT,
    EMAIL_FAILURE_ALERT,
    EMPLOYEE_DOCUMENT_ALERT,
    WARRANTY_ALERT,
    TemplateRenderer,
)

__all__ = [
    "EmailSender",
    "ChannelSelection",
    "DEV_MODE_MESSAGE_ID",
    "filter_deliverable",
    "is_placeholder_address",
    "FailureCooldown",
    "FailureHandler",
    "TemplateRenderer",
    "EMPLOYEE_DOCUMENT_ALERT",
    "ADMIN_DOCUMENT_SUMMARY",
    "COMPANY_DOCUMENT_ALERT",
    "WARRANTY_ALERT",
    "EMAIL_FAILURE_ALERT",
    "ProviderClient",
    "SMTPClient",
    "build_mime_message",
    "NotificationError",
    "NotificationTemplateError",
    "DeliveryError",
    "SMTPDeliveryError",
    "ProviderDeliveryError",
]
