"""Integration tests for the expiry jobs end to end.

Tests end-to-end flow:
- Scan -> gate -> render -> channel selection -> transport
- Relay failures recorded, admins notified, super-admin escalated
- In-app notification idempotency across runs on the same day
- Real SQLite database (file-backed, so nested sessions use separate connections)
- Mocked provider session and SMTP factory
"""

import smtplib
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock, Mock

import pytest

from expiry_alerts.alerts import BusinessClock
from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.config.models import AppConfig, JobName
from expiry_alerts.domain.models import NotificationType
from expiry_alerts.jobs import run_job, run_jobs
from expiry_alerts.notifications import SMTPClient
from expiry_alerts.persistence import Database, EmailFailureRepository, NotificationRepository
from expiry_alerts.security import encrypt_secret
from tests.helpers import add_company_document, add_employee_document, add_member, add_tenant

TODAY = date(2025, 1, 1)
KEY = "integration-key"


@pytest.fixture
def database(tmp_path):
    db = Database(f"sqlite:///{tmp_path / 'alerts.db'}")
    with db.session() as session:
        add_tenant(session, "acme", name="Acme")
        add_member(session, "acme", "a-admin", "boss@acme.test", name="Boss", is_admin=True)
        add_member(session, "acme", "a1", "amy@acme.test", name="Amy")
        add_member(session, "acme", "a2", "nologin-a2@acme.internal", name="Placeholder")
        add_employee_document(session, "acme", "a1-passport", "a1", TODAY + timedelta(days=7))
        add_employee_document(session, "acme", "a2-visa", "a2", TODAY + timedelta(days=30))
        add_company_document(session, "acme", "a-license", TODAY + timedelta(days=30))

        add_tenant(
            session,
            "relay",
            name="Relay Co",
            custom_smtp_host="smtp.relay.test",
            custom_smtp_port=587,
            custom_smtp_user="mailer",
            custom_smtp_password=encrypt_secret("relay-pass", KEY),
            custom_email_from="hr@relay.test",
        )
        add_member(session, "relay", "r-admin", "boss@relay.test", is_admin=True)
        add_company_document(session, "relay", "r-license", TODAY + timedelta(days=14))
    yield db
    db.close()


@pytest.fixture
def env():
    return EnvironmentConfig(
        email_provider_api_key="re_test",
        app_domain="app.example.com",
        super_admin_email="root@example.com",
        smtp_encryption_key=KEY,
    )


@pytest.fixture
def clock():
    return BusinessClock(now=datetime(2025, 1, 1, 6, 0, tzinfo=timezone.utc))


@pytest.fixture
def provider():
    client = Mock()
    client.send.return_value = "msg_platform"
    return client


@pytest.fixture
def relay_smtp():
    connection = MagicMock()
    connection.send_message.side_effect = smtplib.SMTPRecipientsRefused(
        {"boss@relay.test": (550, b"mailbox unavailable")}
    )
    return connection


def _sent_to(provider):
    return sorted(addr for c in provider.send.call_args_list for addr in c[0][0].to)


class TestExpiryFlow:
    def test_company_documents_across_channels(self, database, env, clock, provider, relay_smtp):
        smtp_client = SMTPClient(smtp_factory=Mock(return_value=relay_smtp))

        (result,) = run_jobs(
            [JobName.COMPANY_DOCUMENTS],
            AppConfig(),
            env,
            database=database,
            clock=clock,
            provider=provider,
            smtp_client=smtp_client,
        )

        assert result.tenants_processed == 2
        assert result.admin_sent == 1
        assert result.failed == 1
        assert result.had_errors is False

        # acme via platform, plus the escalation for relay's failure
        assert _sent_to(provider) == ["boss@acme.test", "root@example.com"]
        escalation = [c[0][0] for c in provider.send.call_args_list if c[0][0].to == ["root@example.com"]][0]
        assert escalation.subject == "Email Delivery Failure: Relay Co - company-documents"

        with database.session() as session:
            failures = EmailFailureRepository(session).list_for_tenant("relay")
            notices = NotificationRepository(session).list_for_tenant("relay")

        assert len(failures) == 1
        assert failures[0].recipient_email == "boss@relay.test"
        assert failures[0].metadata["channel"] == "tenant_smtp"
        assert [(n.recipient_id, n.type) for n in notices] == [("r-admin", NotificationType.EMAIL_FAILURE)]

    def test_employee_documents_skip_placeholders(self, database, env, clock, provider):
        result = run_job(
            JobName.EMPLOYEE_DOCUMENTS,
            AppConfig(),
            env,
            tenant_id="acme",
            database=database,
            clock=clock,
            provider=provider,
        )

        assert result.alerted == 2
        assert result.sent == 1
        assert result.skipped == 1
        assert result.admin_sent == 1
        assert _sent_to(provider) == ["amy@acme.test", "boss@acme.test"]

    def test_notifications_idempotent_across_runs(self, database, env, clock):
        first = run_job(JobName.EMPLOYEE_NOTIFICATIONS, AppConfig(), env, database=database, clock=clock)
        second = run_job(JobName.EMPLOYEE_NOTIFICATIONS, AppConfig(), env, database=database, clock=clock)

        assert first.sent == 2
        assert second.sent == 0
        assert second.skipped == 2

        with database.session() as session:
            notices = NotificationRepository(session).list_for_tenant("acme")
        assert sorted((n.record_id, n.alert_day) for n in notices) == [
            ("a1-passport", 7),
            ("a2-visa", 30),
        ]

    def test_development_mode_sends_nothing(self, database, clock):
        env = EnvironmentConfig(app_domain="app.example.com")

        result = run_job(
            JobName.COMPANY_DOCUMENTS, AppConfig(), env, tenant_id="acme", database=database, clock=clock
        )

        assert result.admin_sent == 1
        assert result.failed == 0
