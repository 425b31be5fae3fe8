"""Per-record decision: is an alert due today?"""

from datetime import date
from typing import Iterable, Optional

from expiry_alerts.domain.models import AlertDecision, AlertStatus, ExpiringRecord, NotificationType
from expiry_alerts.logging import get_logger
from expiry_alerts.persistence.repositories import NotificationRepository

from .clock import BusinessClock, classify, days_remaining

logger = get_logger(__name__, component="gate")


class AlertGate:
    """Fires on exact window days, and on expired records when enabled.

    With a notification repository, ``should_alert`` also suppresses an
    in-app alert whose dedup key ``(recipient_id, record_id, alert_day)``
    was already written since the start of today.
    """

    def __init__(
        self,
        windows: Iterable[int],
        clock: BusinessClock,
        alert_on_expired: bool = True,
        notifications: Optional[NotificationRepository] = None,
        notification_type: NotificationType = NotificationType.DOCUMENT_EXPIRY_WARNING,
    ):
        self.windows = frozenset(windows)
        self.clock = clock
        self.alert_on_expired = alert_on_expired
        self.notifications = notifications
        self.notification_type = notification_type

    def evaluate(self, record: ExpiringRecord, today: Optional[date] = None) -> Optional[AlertDecision]:
        """Window/expiry check only; no store access."""
        reference = today if today is not None else self.clock.today
        days = days_remaining(reference, record.expiry_date, self.clock.tz)
        status = classify(days)

        if status == AlertStatus.EXPIRED:
            if not self.alert_on_expired:
                return None
        elif days not in self.windows:
            return None

        return AlertDecision(record=record, days_remaining=days, status=status)

    def should_alert(
        self,
        record: ExpiringRecord,
        today: Optional[date] = None,
        recipient_id: Optional[str] = None,
    ) -> Optional[AlertDecision]:
        decision = self.evaluate(record, today)
        if decision is None:
            return None
        if recipient_id and self.is_duplicate(decision, recipient_id):
            return None
        return decision

    def is_duplicate(self, decision: AlertDecision, recipient_id: str) -> bool:
        """True if this recipient already has today's notification for this record and window day."""
        if self.notifications is None:
            return False

        record = decision.record
        already_sent = self.notifications.exists_for_key(
            recipient_id=recipient_id,
            record_id=record.id,
            alert_day=decision.days_remaining,
            since=self.clock.start_of_today(),
            notification_type=self.notification_type,
        )
        if already_sent:
            logger.debug(
                f"Suppressed duplicate alert for record {record.id}",
                extra={
                    "event": "gate.duplicate_suppressed",
                    "record_id": record.id,
                    "recipient_id": recipient_id,
                    "alert_day": decision.days_remaining,
                },
            )
        return already_sent
