"""Unit tests for notification template rendering.

Tests the TemplateRenderer for:
- Every template set rendering with a builder-produced context
- Subject wording and single-line subjects
- HTML escaping in bodies only
- Strict undefined variable detection
"""

from datetime import date, datetime, timezone

import pytest

from expiry_alerts.config.environment import EnvironmentConfig
from expiry_alerts.domain.models import (
    AlertDecision,
    AlertStatus,
    FailureContext,
    Recipient,
    RecordKind,
    Tenant,
)
from expiry_alerts.notifications import (
    ADMIN_DOCUMENT_SUMMARY,
    COMPANY_DOCUMENT_ALERT,
    EMAIL_FAILURE_ALERT,
    EMPLOYEE_DOCUMENT_ALERT,
    WARRANTY_ALERT,
    NotificationTemplateError,
    TemplateRenderer,
)
from expiry_alerts.notifications.payloads import (
    admin_summary_context,
    company_documents_context,
    employee_alert_context,
    failure_alert_context,
    warranty_context,
)
from tests.helpers import make_record

TENANT = Tenant(id="acme", name="Acme & Sons", slug="acme")
ENV = EnvironmentConfig(app_domain="app.example.com")


def _decision(days, record_id="doc-1", **fields):
    record = make_record(date(2025, 1, 1), record_id=record_id, **fields)
    status = AlertStatus.EXPIRED if days < 0 else AlertStatus.EXPIRING
    return AlertDecision(record=record, days_remaining=days, status=status)


@pytest.fixture(scope="module")
def renderer():
    return TemplateRenderer()


class TestEmployeeDocumentAlert:
    def test_mixed_subject(self, renderer):
        decisions = [_decision(-2, "d1"), _decision(7, "d2")]
        context = employee_alert_context(Recipient(email="amy@acme.test", name="Amy"), decisions, TENANT, ENV)

        rendered = renderer.render(EMPLOYEE_DOCUMENT_ALERT, context)

        assert rendered.subject == "Document Alert: 1 Expired, 1 Expiring Soon"
        assert "Dear Amy" in rendered.text
        assert "Expired 2 days ago" in rendered.text
        assert "7 days remaining" in rendered.html
        assert "https://acme.app.example.com/profile" in rendered.html

    def test_expired_only_subject(self, renderer):
        context = employee_alert_context(Recipient(email="a@acme.test"), [_decision(-1)], TENANT, ENV)

        assert renderer.render(EMPLOYEE_DOCUMENT_ALERT, context).subject == "Document Alert: 1 Document(s) Expired"

    def test_expiring_only_subject(self, renderer):
        context = employee_alert_context(
            Recipient(email="a@acme.test"), [_decision(30, "d1"), _decision(14, "d2")], TENANT, ENV
        )

        assert (
            renderer.render(EMPLOYEE_DOCUMENT_ALERT, context).subject
            == "Document Alert: 2 Document(s) Expiring Soon"
        )


class TestOtherTemplateSets:
    def test_admin_summary(self, renderer):
        decisions = [
            _decision(-1, "d1", owner_id="m1", owner_name="Amy", owner_email="amy@acme.test"),
            _decision(7, "d2", owner_id="m1", owner_name="Amy", owner_email="amy@acme.test"),
            _decision(14, "d3", owner_id="m2", owner_name="Bob", owner_email="bob@acme.test"),
        ]

        rendered = renderer.render(ADMIN_DOCUMENT_SUMMARY, admin_summary_context(decisions, TENANT, ENV))

        assert rendered.subject == "Document Expiry Summary: 1 Expired, 2 Expiring Soon"
        assert "2 Employee(s) Affected" in rendered.text
        assert "bob@acme.test" in rendered.html

    def test_company_documents(self, renderer):
        decisions = [
            _decision(30, "c1", kind=RecordKind.COMPANY_DOCUMENT, subject_name="Trade License", asset_info="Van"),
        ]

        rendered = renderer.render(COMPANY_DOCUMENT_ALERT, company_documents_context(decisions, TENANT, ENV))

        assert rendered.subject == "Company Document Alert: 0 Expired, 1 Expiring Soon"
        assert "Trade License" in rendered.html
        assert "Van" in rendered.html

    def test_warranty(self, renderer):
        decisions = [_decision(60, "a1", kind=RecordKind.ASSET_WARRANTY, subject_name="Dell Latitude 5440")]

        rendered = renderer.render(WARRANTY_ALERT, warranty_context(decisions, TENANT, ENV))

        assert rendered.subject == "Warranty Alert: 1 Asset(s) With Expiring Warranty"
        assert "Dell Latitude 5440" in rendered.text

    def test_email_failure(self, renderer):
        context = FailureContext(
            module="hr",
            action="document-expiry-alert",
            tenant_id="acme",
            organization_name="Acme",
            organization_slug="acme",
            recipient_email="amy@acme.test",
            email_subject="Document Alert",
            error="550 mailbox unavailable",
            error_code="550",
            metadata={"channel": "tenant_smtp"},
        )

        rendered = renderer.render(EMAIL_FAILURE_ALERT, failure_alert_context(context, ENV))

        assert rendered.subject == "Email Delivery Failure: Acme - hr"
        assert "550 mailbox unavailable" in rendered.text
        assert "channel: tenant_smtp" in rendered.text
        assert "https://app.example.com/super-admin/email-failures" in rendered.html


class TestRendering:
    def test_html_escaped_text_literal(self, renderer):
        context = employee_alert_context(
            Recipient(email="a@acme.test", name="<Amy>"), [_decision(7)], TENANT, ENV
        )

        rendered = renderer.render(EMPLOYEE_DOCUMENT_ALERT, context)

        assert "&lt;Amy&gt;" in rendered.html
        assert "Acme &amp; Sons" in rendered.html
        assert "Dear <Amy>" in rendered.text
        assert "Acme & Sons" in rendered.text

    def test_subject_is_single_line(self, renderer):
        context = employee_alert_context(Recipient(email="a@acme.test"), [_decision(7)], TENANT, ENV)

        assert "\n" not in renderer.render(EMPLOYEE_DOCUMENT_ALERT, context).subject

    def test_missing_variable_raises(self, renderer):
        with pytest.raises(NotificationTemplateError):
            renderer.render(WARRANTY_ALERT, {"org_name": "Acme"})

    def test_unknown_template_set(self, renderer):
        with pytest.raises(NotificationTemplateError, match="Unknown template set"):
            renderer.render("job_alert", {})
