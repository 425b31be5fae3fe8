"""Unit tests for domain models."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from expiry_alerts.domain.models import (
    AlertDecision,
    AlertStatus,
    DeliveryChannel,
    DeliveryOutcome,
    ExpiringRecord,
    FailureContext,
    NotificationRecord,
    NotificationType,
    OutboundEmail,
    Recipient,
    RecordKind,
    TenantSmtpConfig,
)


class TestExpiringRecord:
    def test_datetime_expiry_truncated_to_utc_day(self):
        instant = datetime(2025, 3, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

        record = ExpiringRecord(
            id="doc-1",
            tenant_id="acme",
            kind=RecordKind.COMPANY_DOCUMENT,
            subject_name="Trade License",
            expiry_date=instant,
        )

        assert record.expiry_date == date(2025, 3, 10)

    def test_frozen(self):
        record = ExpiringRecord(
            id="doc-1",
            tenant_id="acme",
            kind=RecordKind.COMPANY_DOCUMENT,
            subject_name="Trade License",
            expiry_date=date(2025, 3, 9),
        )

        with pytest.raises(ValidationError):
            record.subject_name = "Other"

    def test_requires_tenant(self):
        with pytest.raises(ValidationError):
            ExpiringRecord(
                id="doc-1",
                kind=RecordKind.COMPANY_DOCUMENT,
                subject_name="Trade License",
                expiry_date=date(2025, 3, 9),
            )


class TestAlertDecision:
    def test_is_expired(self):
        record = ExpiringRecord(
            id="doc-1",
            tenant_id="acme",
            kind=RecordKind.EMPLOYEE_DOCUMENT,
            subject_name="Passport",
            expiry_date=date(2025, 1, 1),
        )

        assert AlertDecision(record=record, days_remaining=-1, status=AlertStatus.EXPIRED).is_expired
        assert not AlertDecision(record=record, days_remaining=0, status=AlertStatus.EXPIRING).is_expired


class TestRecipients:
    def test_display_name_falls_back_to_email(self):
        assert Recipient(email="amy@acme.test").display_name == "amy@acme.test"
        assert Recipient(email="amy@acme.test", name="Amy").display_name == "Amy"


class TestOutboundEmail:
    def test_single_address_wrapped(self):
        email = OutboundEmail(to="amy@acme.test", subject="s", html="h", text="t", action="test")

        assert email.to == ["amy@acme.test"]
        assert email.module == "other"

    def test_action_required(self):
        with pytest.raises(ValidationError):
            OutboundEmail(to=["amy@acme.test"], subject="s", html="h", text="t")


class TestDeliveryOutcome:
    def test_defaults(self):
        outcome = DeliveryOutcome(success=False, error="boom")

        assert outcome.channel == DeliveryChannel.NONE
        assert outcome.skipped is False
        assert outcome.message_id is None


class TestFailureContext:
    def test_alert_key(self):
        context = FailureContext(
            module="hr",
            action="document-expiry-alert",
            tenant_id="acme",
            organization_name="Acme",
            organization_slug="acme",
            recipient_email="amy@acme.test",
            email_subject="Document Alert",
            error="boom",
        )

        assert context.alert_key == "acme:hr:document-expiry-alert:amy@acme.test"


class TestNotificationRecord:
    def test_naive_created_at_is_utc(self):
        notification = NotificationRecord(
            tenant_id="acme",
            recipient_id="m1",
            type=NotificationType.GENERAL,
            title="t",
            message="m",
            created_at=datetime(2025, 1, 1, 12, 0),
        )

        assert notification.created_at.tzinfo == timezone.utc


class TestTenantSmtpConfig:
    def test_complete(self):
        config = TenantSmtpConfig(
            host="smtp.acme.test",
            port=587,
            user="mailer",
            secret="iv:tag:ct",
            from_address="hr@acme.test",
        )

        assert config.is_complete

    @pytest.mark.parametrize("missing", ["host", "port", "user", "secret", "from_address"])
    def test_incomplete(self, missing):
        fields = dict(
            host="smtp.acme.test",
            port=587,
            user="mailer",
            secret="iv:tag:ct",
            from_address="hr@acme.test",
        )
        fields[missing] = None

        assert not TenantSmtpConfig(**fields).is_complete
