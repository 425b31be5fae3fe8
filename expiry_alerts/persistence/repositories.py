"""Data access layer (repositories) for persistence operations.

Repositories wrap one session, return domain models, and convert
SQLAlchemy errors into PersistenceError. Every query over tenant-owned data
takes ``tenant_id`` and applies it as the first predicate.
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from expiry_alerts.domain.models import (
    EmailFailureRecord,
    ExpiringRecord,
    NotificationRecord,
    NotificationType,
    Recipient,
    RecordKind,
    Tenant,
    TenantSmtpConfig,
)
from expiry_alerts.utils.timestamps import to_storage, utc_now

from .exceptions import DataIntegrityError, PersistenceError
from .schema import (
    ASSET_STATUS_DISPOSED,
    AssetModel,
    CompanyDocumentModel,
    EmailFailureModel,
    EmployeeDocumentModel,
    MemberModel,
    NotificationModel,
    TenantModel,
)

logger = logging.getLogger(__name__)


class TenantRepository:
    """Repository for tenant lookups."""

    def __init__(self, session: Session):
        self.session = session

    def list_active(self) -> List[Tenant]:
        """All active tenants, ordered by name.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = select(TenantModel).where(TenantModel.is_active.is_(True)).order_by(TenantModel.name)
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing active tenants: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list tenants: {e}") from e

    def get(self, tenant_id: str) -> Optional[Tenant]:
        try:
            model = self.session.get(TenantModel, tenant_id)
            return model.to_domain() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve tenant: {e}") from e

    def get_smtp_config(self, tenant_id: str) -> Optional[TenantSmtpConfig]:
        """The tenant's relay columns, or None when the tenant does not exist."""
        try:
            model = self.session.get(TenantModel, tenant_id)
            return model.smtp_config() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving SMTP config for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve SMTP config: {e}") from e

    def organization_context(self, tenant_id: str) -> Optional[Tuple[str, str]]:
        """(name, slug) for failure attribution, or None."""
        tenant = self.get(tenant_id)
        if tenant is None:
            return None
        return tenant.name, tenant.slug


class MemberRepository:
    """Repository for tenant membership queries."""

    def __init__(self, session: Session):
        self.session = session

    def list_admins(self, tenant_id: str) -> List[Recipient]:
        """Non-deleted admins of exactly ``tenant_id``.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(MemberModel)
                .where(
                    MemberModel.tenant_id == tenant_id,
                    MemberModel.is_admin.is_(True),
                    MemberModel.is_deleted.is_(False),
                )
                .order_by(MemberModel.email)
            )
            return [model.to_recipient() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing admins for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list admins: {e}") from e

    def get(self, tenant_id: str, member_id: str) -> Optional[Recipient]:
        try:
            stmt = select(MemberModel).where(
                MemberModel.tenant_id == tenant_id,
                MemberModel.id == member_id,
                MemberModel.is_deleted.is_(False),
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_recipient() if model else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving member {member_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve member: {e}") from e


class ExpiringRecordRepository:
    """Read-only queries for records with an expiry date.

    ``threshold`` is inclusive. ``after`` excludes records expiring on or
    before that day; ``not_before`` bounds how far back expired records go.
    """

    def __init__(self, session: Session):
        self.session = session

    def company_documents(
        self,
        tenant_id: str,
        threshold: date,
        after: Optional[date] = None,
        not_before: Optional[date] = None,
    ) -> List[ExpiringRecord]:
        try:
            stmt = (
                select(CompanyDocumentModel, AssetModel)
                .outerjoin(
                    AssetModel,
                    (AssetModel.id == CompanyDocumentModel.asset_id)
                    & (AssetModel.tenant_id == CompanyDocumentModel.tenant_id),
                )
                .where(CompanyDocumentModel.tenant_id == tenant_id)
                .where(CompanyDocumentModel.expiry_date <= threshold)
            )
            if after is not None:
                stmt = stmt.where(CompanyDocumentModel.expiry_date > after)
            if not_before is not None:
                stmt = stmt.where(CompanyDocumentModel.expiry_date >= not_before)
            stmt = stmt.order_by(CompanyDocumentModel.expiry_date, CompanyDocumentModel.id)

            return [
                ExpiringRecord(
                    id=doc.id,
                    tenant_id=doc.tenant_id,
                    kind=RecordKind.COMPANY_DOCUMENT,
                    subject_name=doc.document_type,
                    expiry_date=doc.expiry_date,
                    reference_label=doc.reference_number,
                    asset_info=asset.describe() if asset else None,
                )
                for doc, asset in self.session.execute(stmt).all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error scanning company documents for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to scan company documents: {e}") from e

    def employee_documents(
        self,
        tenant_id: str,
        threshold: date,
        after: Optional[date] = None,
        not_before: Optional[date] = None,
    ) -> List[ExpiringRecord]:
        """Documents of non-deleted employees, with owner name and email."""
        try:
            stmt = (
                select(EmployeeDocumentModel, MemberModel)
                .join(MemberModel, MemberModel.id == EmployeeDocumentModel.member_id)
                .where(EmployeeDocumentModel.tenant_id == tenant_id)
                .where(MemberModel.tenant_id == tenant_id)
                .where(MemberModel.is_deleted.is_(False))
                .where(EmployeeDocumentModel.expiry_date <= threshold)
            )
            if after is not None:
                stmt = stmt.where(EmployeeDocumentModel.expiry_date > after)
            if not_before is not None:
                stmt = stmt.where(EmployeeDocumentModel.expiry_date >= not_before)
            stmt = stmt.order_by(
                MemberModel.id, EmployeeDocumentModel.expiry_date, EmployeeDocumentModel.id
            )

            return [
                ExpiringRecord(
                    id=doc.id,
                    tenant_id=doc.tenant_id,
                    kind=RecordKind.EMPLOYEE_DOCUMENT,
                    subject_name=doc.document_type,
                    expiry_date=doc.expiry_date,
                    reference_label=doc.document_number,
                    owner_id=member.id,
                    owner_name=member.name,
                    owner_email=member.email,
                )
                for doc, member in self.session.execute(stmt).all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error scanning employee documents for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to scan employee documents: {e}") from e

    def asset_warranties(
        self,
        tenant_id: str,
        threshold: date,
        after: Optional[date] = None,
        not_before: Optional[date] = None,
    ) -> List[ExpiringRecord]:
        """Assets with a warranty date, excluding disposed assets."""
        try:
            stmt = (
                select(AssetModel)
                .where(AssetModel.tenant_id == tenant_id)
                .where(AssetModel.warranty_expiry.is_not(None))
                .where(AssetModel.status != ASSET_STATUS_DISPOSED)
                .where(AssetModel.warranty_expiry <= threshold)
            )
            if after is not None:
                stmt = stmt.where(AssetModel.warranty_expiry > after)
            if not_before is not None:
                stmt = stmt.where(AssetModel.warranty_expiry >= not_before)
            stmt = stmt.order_by(AssetModel.warranty_expiry, AssetModel.id)

            return [
                ExpiringRecord(
                    id=asset.id,
                    tenant_id=asset.tenant_id,
                    kind=RecordKind.ASSET_WARRANTY,
                    subject_name=asset.describe(),
                    expiry_date=asset.warranty_expiry,
                    reference_label=asset.asset_tag,
                    asset_info=asset.type,
                )
                for asset in self.session.execute(stmt).scalars().all()
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error scanning asset warranties for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to scan asset warranties: {e}") from e


class NotificationRepository:
    """Repository for in-app notification records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, notification: NotificationRecord) -> NotificationRecord:
        """Insert a notification; ``created_at`` defaults to now.

        Raises:
            DataIntegrityError: If a constraint is violated
            PersistenceError: If database error occurs
        """
        if notification.created_at is None:
            notification = notification.model_copy(update={"created_at": utc_now()})

        try:
            model = NotificationModel.from_domain(notification)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            logger.error(f"Integrity error creating notification: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to create notification: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create notification: {e}") from e

    def exists_for_key(
        self,
        recipient_id: str,
        record_id: str,
        alert_day: int,
        since: datetime,
        notification_type: NotificationType = NotificationType.DOCUMENT_EXPIRY_WARNING,
    ) -> bool:
        """True if a notification with this dedup key was created at or after ``since``."""
        try:
            stmt = (
                select(func.count())
                .select_from(NotificationModel)
                .where(
                    NotificationModel.recipient_id == recipient_id,
                    NotificationModel.record_id == record_id,
                    NotificationModel.alert_day == alert_day,
                    NotificationModel.type == notification_type.value,
                    NotificationModel.created_at >= to_storage(since),
                )
            )
            return self.session.execute(stmt).scalar_one() > 0
        except SQLAlchemyError as e:
            logger.error(f"Error checking notification dedup key: {e}", exc_info=True)
            raise PersistenceError(f"Failed to check notification: {e}") from e

    def list_for_tenant(self, tenant_id: str) -> List[NotificationRecord]:
        try:
            stmt = (
                select(NotificationModel)
                .where(NotificationModel.tenant_id == tenant_id)
                .order_by(NotificationModel.id)
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing notifications for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list notifications: {e}") from e

    def count_older_than(self, cutoff: datetime) -> int:
        try:
            stmt = (
                select(func.count())
                .select_from(NotificationModel)
                .where(NotificationModel.created_at < to_storage(cutoff))
            )
            return self.session.execute(stmt).scalar_one()
        except SQLAlchemyError as e:
            logger.error(f"Error counting stale notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to count notifications: {e}") from e

    def delete_older_than_batch(self, cutoff: datetime, batch_size: int) -> int:
        """Delete up to ``batch_size`` notifications created before ``cutoff``.

        Returns:
            Number of rows deleted (0 when none remain)
        """
        try:
            ids = (
                self.session.execute(
                    select(NotificationModel.id)
                    .where(NotificationModel.created_at < to_storage(cutoff))
                    .order_by(NotificationModel.id)
                    .limit(batch_size)
                )
                .scalars()
                .all()
            )
            if not ids:
                return 0

            result = self.session.execute(
                delete(NotificationModel).where(NotificationModel.id.in_(ids))
            )
            self.session.flush()
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Error deleting stale notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to delete notifications: {e}") from e


class EmailFailureRepository:
    """Repository for email_failure_logs."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, record: EmailFailureRecord) -> EmailFailureRecord:
        if record.created_at is None:
            record = record.model_copy(update={"created_at": utc_now()})

        try:
            model = EmailFailureModel.from_domain(record)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error persisting email failure: {e}", exc_info=True)
            raise PersistenceError(f"Failed to persist email failure: {e}") from e

    def list_for_tenant(self, tenant_id: str) -> List[EmailFailureRecord]:
        try:
            stmt = (
                select(EmailFailureModel)
                .where(EmailFailureModel.tenant_id == tenant_id)
                .order_by(EmailFailureModel.id)
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error listing email failures for tenant {tenant_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list email failures: {e}") from e
