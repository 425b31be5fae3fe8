"""Database schema definition and ORM models.

Only the columns the expiry jobs read or write are modelled. Business modules
own the full tables; this service treats them as a tenant-scoped store.
Calendar dates use the ``Date`` type; instants are ISO 8601 strings in UTC.
"""

import logging

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from expiry_alerts.domain.models import (
    EmailFailureRecord,
    NotificationRecord,
    NotificationType,
    Recipient,
    Tenant,
    TenantSmtpConfig,
)
from expiry_alerts.utils.timestamps import from_storage, to_storage

logger = logging.getLogger(__name__)

Base = declarative_base()

ASSET_STATUS_DISPOSED = "DISPOSED"


class TenantModel(Base):
    """ORM model for tenants, including the optional custom relay columns."""

    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    custom_smtp_host = Column(String(255), nullable=True)
    custom_smtp_port = Column(Integer, nullable=True)
    custom_smtp_user = Column(String(255), nullable=True)
    # Encrypted "iv:tag:ciphertext"; see expiry_alerts.security.secrets
    custom_smtp_password = Column(Text, nullable=True)
    custom_smtp_secure = Column(Boolean, nullable=False, default=False)
    custom_email_from = Column(String(255), nullable=True)
    custom_email_name = Column(String(255), nullable=True)

    def to_domain(self) -> Tenant:
        return Tenant(id=self.id, name=self.name, slug=self.slug, is_active=bool(self.is_active))

    def smtp_config(self) -> TenantSmtpConfig:
        return TenantSmtpConfig(
            host=self.custom_smtp_host,
            port=self.custom_smtp_port,
            user=self.custom_smtp_user,
            secret=self.custom_smtp_password,
            secure=bool(self.custom_smtp_secure),
            from_address=self.custom_email_from,
            from_name=self.custom_email_name,
        )


class MemberModel(Base):
    """ORM model for tenant members (admins and employees)."""

    __tablename__ = "members"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_employee = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (Index("idx_members_tenant_admin", "tenant_id", "is_admin", "is_deleted"),)

    def to_recipient(self) -> Recipient:
        return Recipient(email=self.email, name=self.name, member_id=self.id)


class AssetModel(Base):
    """ORM model for assets; only warranty and linkage columns are modelled."""

    __tablename__ = "assets"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False)
    asset_tag = Column(String(100), nullable=True)
    type = Column(String(100), nullable=True)
    brand = Column(String(100), nullable=True)
    model = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="AVAILABLE")
    warranty_expiry = Column(Date, nullable=True)

    __table_args__ = (Index("idx_assets_tenant_warranty", "tenant_id", "warranty_expiry"),)

    def describe(self) -> str:
        """Human label such as 'Dell Latitude 5440 (AST-0012)'."""
        label = " ".join(part for part in (self.brand, self.model) if part)
        if self.asset_tag:
            label = f"{label} ({self.asset_tag})"
        return label


class CompanyDocumentModel(Base):
    """ORM model for company-level documents (licenses, registrations)."""

    __tablename__ = "company_documents"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False)
    document_type = Column(String(255), nullable=False)
    reference_number = Column(String(255), nullable=True)
    expiry_date = Column(Date, nullable=False)
    asset_id = Column(String(64), ForeignKey("assets.id"), nullable=True)

    __table_args__ = (Index("idx_company_documents_tenant_expiry", "tenant_id", "expiry_date"),)


class EmployeeDocumentModel(Base):
    """ORM model for employee documents (QID, passport, visa, ...)."""

    __tablename__ = "employee_documents"

    id = Column(String(64), primary_key=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False)
    member_id = Column(String(64), ForeignKey("members.id"), nullable=False)
    document_type = Column(String(100), nullable=False)
    document_number = Column(String(255), nullable=True)
    expiry_date = Column(Date, nullable=False)

    __table_args__ = (Index("idx_employee_documents_tenant_expiry", "tenant_id", "expiry_date"),)


class NotificationModel(Base):
    """ORM model for in-app notifications.

    ``record_id`` and ``alert_day`` form the structured dedup key together
    with ``recipient_id``; they are null for notifications not tied to an
    expiry window.
    """

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(64), nullable=True)
    record_id = Column(String(64), nullable=True)
    alert_day = Column(Integer, nullable=True)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_notifications_dedup", "recipient_id", "record_id", "alert_day", "created_at"),
        Index("idx_notifications_created_at", "created_at"),
        Index("idx_notifications_tenant", "tenant_id"),
    )

    def to_domain(self) -> NotificationRecord:
        return NotificationRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            recipient_id=self.recipient_id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message,
            link=self.link,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            record_id=self.record_id,
            alert_day=self.alert_day,
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, notification: NotificationRecord) -> "NotificationModel":
        return cls(
            tenant_id=notification.tenant_id,
            recipient_id=notification.recipient_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            link=notification.link,
            entity_type=notification.entity_type,
            entity_id=notification.entity_id,
            record_id=notification.record_id,
            alert_day=notification.alert_day,
            created_at=to_storage(notification.created_at),
        )


class EmailFailureModel(Base):
    """ORM model for email_failure_logs."""

    __tablename__ = "email_failure_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(64), nullable=False)
    module = Column(String(50), nullable=False)
    action = Column(String(100), nullable=False)
    organization_name = Column(String(255), nullable=False)
    organization_slug = Column(String(100), nullable=False)
    recipient_email = Column(String(255), nullable=False)
    recipient_name = Column(String(255), nullable=True)
    email_subject = Column(String(500), nullable=False)
    error = Column(Text, nullable=False)
    error_code = Column(String(100), nullable=True)
    # "metadata" is reserved on declarative classes
    extra_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_email_failure_logs_tenant_created", "tenant_id", "created_at"),)

    def to_domain(self) -> EmailFailureRecord:
        return EmailFailureRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            module=self.module,
            action=self.action,
            organization_name=self.organization_name,
            organization_slug=self.organization_slug,
            recipient_email=self.recipient_email,
            recipient_name=self.recipient_name,
            email_subject=self.email_subject,
            error=self.error,
            error_code=self.error_code,
            metadata=self.extra_metadata,
            created_at=from_storage(self.created_at),
        )

    @classmethod
    def from_domain(cls, record: EmailFailureRecord) -> "EmailFailureModel":
        return cls(
            tenant_id=record.tenant_id,
            module=record.module,
            action=record.action,
            organization_name=record.organization_name,
            organization_slug=record.organization_slug,
            recipient_email=record.recipient_email,
            recipient_name=record.recipient_name,
            email_subject=record.email_subject,
            error=record.error,
            error_code=record.error_code,
            extra_metadata=record.metadata,
            created_at=to_storage(record.created_at),
        )


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent)."""
    logger.info("Creating database schema if not exists", extra={"event": "database.schema.creating"})

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(
            f"Database schema ready. Tables: {', '.join(tables)}",
            extra={"event": "database.schema.ready"},
        )
    except Exception as e:
        logger.error(
            f"Failed to create database schema: {e}",
            exc_info=True,
            extra={"event": "database.schema.failed"},
        )
        raise
