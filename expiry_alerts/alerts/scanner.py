"""Tenant-scoped candidate selection for expiry alerts."""

from datetime import timedelta
from typing import Callable, Dict, List, Optional

from expiry_alerts.domain.models import ExpiringRecord, RecordKind
from expiry_alerts.logging import get_logger
from expiry_alerts.persistence.repositories import ExpiringRecordRepository

from .clock import BusinessClock

logger = get_logger(__name__, component="scanner")


class TenantScanner:
    """Selects one tenant's records of one kind whose expiry falls inside the widest window.

    Data-store errors propagate as PersistenceError; the orchestrator decides
    what to abandon.
    """

    def __init__(self, records: ExpiringRecordRepository, kind: RecordKind, clock: BusinessClock):
        self.records = records
        self.kind = kind
        self.clock = clock
        self._queries: Dict[RecordKind, Callable[..., List[ExpiringRecord]]] = {
            RecordKind.COMPANY_DOCUMENT: records.company_documents,
            RecordKind.EMPLOYEE_DOCUMENT: records.employee_documents,
            RecordKind.ASSET_WARRANTY: records.asset_warranties,
        }

    def scan(
        self,
        tenant_id: str,
        max_window_days: int,
        include_expired: bool = True,
        expired_lookback_days: Optional[int] = None,
    ) -> List[ExpiringRecord]:
        """Records with ``expiry_date <= today + max_window_days``.

        Args:
            tenant_id: The only tenant whose rows may be returned
            max_window_days: Widest alert window of the calling job
            include_expired: When False, also require ``expiry_date > today``
            expired_lookback_days: Oldest expired record to consider, in days
                before today (None means no lower bound)
        """
        if not tenant_id:
            raise ValueError("tenant_id is required for a scan")
        if max_window_days < 0:
            raise ValueError("max_window_days must be non-negative")

        today = self.clock.today
        threshold = self.clock.threshold(max_window_days)
        after = None if include_expired else today
        not_before = None
        if include_expired and expired_lookback_days is not None:
            not_before = today - timedelta(days=expired_lookback_days)

        records = self._queries[self.kind](
            tenant_id, threshold, after=after, not_before=not_before
        )

        logger.debug(
            f"Scanned {len(records)} {self.kind.value} candidate(s) for tenant {tenant_id}",
            extra={
                "event": "scanner.scan.completed",
                "tenant_id": tenant_id,
                "kind": self.kind.value,
                "threshold": threshold.isoformat(),
                "include_expired": include_expired,
                "candidates": len(records),
            },
        )
        return records
