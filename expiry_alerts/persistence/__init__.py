"""Persistence layer for the tenant-scoped store.

Public API:
    # Connection lifecycle (one instance per job invocation)
    - Database(database_url).session() -> ContextManager[Session]
    - Database.close()

    # Repository classes
    - TenantRepository: active tenants, relay config, organization context
    - MemberRepository: tenant admins
    - ExpiringRecordRepository: company documents, employee documents, warranties
    - NotificationRepository: in-app notifications, dedup lookup, batch purge
    - EmailFailureRepository: delivery failure log

    # Exceptions
    - PersistenceError and subclasses

Example usage:
    >>> from expiry_alerts.persistence import Database, TenantRepository
    >>>
    >>> with Database("sqlite:///./data/expiry_alerts.db") as db:
    ...     with db.session() as session:
    ...         tenants = TenantRepository(session).list_active()
"""

from .database import Database
from .exceptions import (
    DataIntegrityError,
    DatabaseConnectionError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    EmailFailureRepository,
    ExpiringRecordRepository,
    MemberRepository,
    NotificationRepository,
    TenantRepository,
)
from .schema import (
    AssetModel,
    Base,
    CompanyDocumentModel,
    EmailFailureModel,
    EmployeeDocumentModel,
    MemberModel,
    NotificationModel,
    TenantModel,
    create_schema,
)

__all__ = [
    "Database",
    "TenantRepository",
    "MemberRepository",
    "ExpiringRecordRepository",
    "NotificationRepository",
    "EmailFailureRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
    "Base",
    "TenantModel",
    "MemberModel",
    "AssetModel",
    "CompanyDocumentModel",
    "EmployeeDocumentModel",
    "NotificationModel",
    "EmailFailureModel",
    "create_schema",
]
