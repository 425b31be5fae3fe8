"""Core domain models for expiry detection and notification dispatch.

- ExpiringRecord: a document or warranty with an expiry date, read from a tenant
- AlertDecision: the gate's verdict for one record on one day
- Recipient / ResolvedRecipients: who an alert is addressed to
- OutboundEmail / DeliveryOutcome: the sender's input and result
- FailureContext: what the failure handler persists and escalates
- NotificationRecord: an in-app notification row
- TenantSmtpConfig: a tenant's optional mail relay override
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class RecordKind(str, Enum):
    """Kinds of records scanned for expiry."""

    COMPANY_DOCUMENT = "company_document"
    EMPLOYEE_DOCUMENT = "employee_document"
    ASSET_WARRANTY = "asset_warranty"


class AlertStatus(str, Enum):
    """Classification of a day offset."""

    EXPIRED = "expired"
    EXPIRING = "expiring"


class NotificationType(str, Enum):
    """In-app notification types written by this service."""

    DOCUMENT_EXPIRY_WARNING = "DOCUMENT_EXPIRY_WARNING"
    WARRANTY_EXPIRY_WARNING = "WARRANTY_EXPIRY_WARNING"
    EMAIL_FAILURE = "EMAIL_FAILURE"
    GENERAL = "GENERAL"


class DeliveryChannel(str, Enum):
    """Which transport carried (or would have carried) an email."""

    NONE = "none"
    PLATFORM = "platform"
    TENANT_SMTP = "tenant_smtp"


class ChannelPolicy(str, Enum):
    """How a tenant's sends are routed.

    NO_OVERRIDE: platform provider only.
    OVERRIDE_STRICT: tenant relay only; relay failures are reported, never rerouted.
    """

    NO_OVERRIDE = "no_override"
    OVERRIDE_STRICT = "override_strict"


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class Tenant(BaseModel):
    """An isolated organization."""

    id: str
    name: str
    slug: str
    is_active: bool = True


class ExpiringRecord(BaseModel):
    """A time-sensitive record owned by exactly one tenant.

    ``expiry_date`` is a calendar date; the business modules store expiry as a
    day, never as an instant.
    """

    id: str = Field(..., description="Record identifier within the tenant")
    tenant_id: str = Field(..., description="Owning tenant")
    kind: RecordKind
    subject_name: str = Field(..., description="Human label, e.g. 'Passport' or 'Trade License'")
    expiry_date: date
    reference_label: Optional[str] = Field(None, description="Reference number, asset tag, etc.")
    owner_id: Optional[str] = Field(None, description="Owning member (employee documents only)")
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    asset_info: Optional[str] = Field(None, description="Linked asset description, if any")

    @field_validator("expiry_date", mode="before")
    @classmethod
    def coerce_date(cls, v):
        """Accept datetimes from the store and keep only the calendar day."""
        if isinstance(v, datetime):
            return _as_utc(v).date()
        return v

    model_config = {"frozen": True}


class AlertDecision(BaseModel):
    """The gate's decision that a record must be alerted today."""

    record: ExpiringRecord
    days_remaining: int
    status: AlertStatus

    @property
    def is_expired(self) -> bool:
        return self.status == AlertStatus.EXPIRED

    model_config = {"frozen": True}


class Recipient(BaseModel):
    """Someone an alert is addressed to."""

    email: str
    name: Optional[str] = None
    member_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


class ResolvedRecipients(BaseModel):
    """Recipients for one decision: the record owner and the tenant's admins."""

    individual: List[Recipient] = Field(default_factory=list)
    admins: List[Recipient] = Field(default_factory=list)


class RenderedEmail(BaseModel):
    """Subject/HTML/text triple produced by the composer."""

    subject: str
    html: str
    text: str


class OutboundEmail(BaseModel):
    """An email ready for the sender, plus attribution for failure handling."""

    to: List[str]
    subject: str
    html: str
    text: str
    module: str = Field("other", description="Business module the email belongs to")
    action: str = Field(..., description="What triggered the email, e.g. 'document-expiry-alert'")
    tenant_id: Optional[str] = None
    organization_name: Optional[str] = None
    organization_slug: Optional[str] = None
    recipient_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("to", mode="before")
    @classmethod
    def wrap_single_address(cls, v):
        if isinstance(v, str):
            return [v]
        return v


class DeliveryOutcome(BaseModel):
    """Uniform result of one send attempt. The sender never raises."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    skipped: bool = False
    channel: DeliveryChannel = DeliveryChannel.NONE


class FailureContext(BaseModel):
    """Everything needed to record and escalate a failed delivery."""

    module: str
    action: str
    tenant_id: str
    organization_name: str
    organization_slug: str
    recipient_email: str
    recipient_name: Optional[str] = None
    email_subject: str
    error: str
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def alert_key(self) -> str:
        """Key used to rate-limit repeated escalations."""
        return f"{self.tenant_id}:{self.module}:{self.action}:{self.recipient_email}"


class NotificationRecord(BaseModel):
    """A persisted in-app notification."""

    id: Optional[int] = None
    tenant_id: str
    recipient_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    record_id: Optional[str] = Field(None, description="Expiring record this alert is about")
    alert_day: Optional[int] = Field(None, description="Window day that fired")
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class EmailFailureRecord(BaseModel):
    """A persisted delivery failure."""

    id: Optional[int] = None
    tenant_id: str
    module: str
    action: str
    organization_name: str
    organization_slug: str
    recipient_email: str
    recipient_name: Optional[str] = None
    email_subject: str
    error: str
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class TenantSmtpConfig(BaseModel):
    """A tenant's custom relay. ``secret`` is stored encrypted."""

    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    secret: Optional[str] = None
    secure: bool = False
    from_address: Optional[str] = None
    from_name: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """All fields a relay send needs are present."""
        return bool(self.host and self.port and self.user and self.secret and self.from_address)
