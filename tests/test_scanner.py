"""Unit tests for the tenant scanner and recipient resolver."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from expiry_alerts.alerts import BusinessClock, RecipientResolver, TenantScanner
from expiry_alerts.domain.models import AlertDecision, AlertStatus, Recipient, RecordKind
from expiry_alerts.persistence import Database, ExpiringRecordRepository, MemberRepository
from tests.helpers import (
    add_asset,
    add_company_document,
    add_employee_document,
    add_member,
    add_tenant,
    make_record,
)

TODAY = date(2025, 1, 1)


@pytest.fixture
def clock():
    return BusinessClock(now=datetime(2025, 1, 1, 6, 0, tzinfo=timezone.utc))


@pytest.fixture
def db():
    database = Database("sqlite:///:memory:")
    with database.session() as session:
        add_tenant(session, "acme")
        add_tenant(session, "globex")
    yield database
    database.close()


class TestTenantScanner:
    def test_threshold_is_inclusive(self, db, clock):
        with db.session() as session:
            add_company_document(session, "acme", "edge", TODAY + timedelta(days=30))
            add_company_document(session, "acme", "beyond", TODAY + timedelta(days=31))

        with db.session() as session:
            scanner = TenantScanner(ExpiringRecordRepository(session), RecordKind.COMPANY_DOCUMENT, clock)
            records = scanner.scan("acme", 30)

        assert [r.id for r in records] == ["edge"]

    def test_tenant_isolation(self, db, clock):
        with db.session() as session:
            add_company_document(session, "acme", "mine", TODAY + timedelta(days=7))
            add_company_document(session, "globex", "theirs", TODAY + timedelta(days=7))

        with db.session() as session:
            scanner = TenantScanner(ExpiringRecordRepository(session), RecordKind.COMPANY_DOCUMENT, clock)
            records = scanner.scan("acme", 30)

        assert {r.tenant_id for r in records} == {"acme"}
        assert [r.id for r in records] == ["mine"]

    def test_include_expired_false_skips_today_and_past(self, db, clock):
        with db.session() as session:
            add_member(session, "acme", "m1", "amy@acme.test")
            add_employee_document(session, "acme", "past", "m1", TODAY - timedelta(days=2))
            add_employee_document(session, "acme", "today", "m1", TODAY)
            add_employee_document(session, "acme", "soon", "m1", TODAY + timedelta(days=1))

        with db.session() as session:
            scanner = TenantScanner(ExpiringRecordRepository(session), RecordKind.EMPLOYEE_DOCUMENT, clock)
            upcoming = scanner.scan("acme", 30, include_expired=False)
            everything = scanner.scan("acme", 30)

        assert [r.id for r in upcoming] == ["soon"]
        assert [r.id for r in everything] == ["past", "today", "soon"]

    def test_expired_lookback(self, db, clock):
        with db.session() as session:
            add_company_document(session, "acme", "ancient", TODAY - timedelta(days=400))
            add_company_document(session, "acme", "recent", TODAY - timedelta(days=10))

        with db.session() as session:
            scanner = TenantScanner(ExpiringRecordRepository(session), RecordKind.COMPANY_DOCUMENT, clock)
            records = scanner.scan("acme", 30, expired_lookback_days=90)

        assert [r.id for r in records] == ["recent"]

    def test_warranty_kind(self, db, clock):
        with db.session() as session:
            add_asset(session, "acme", "a1", TODAY + timedelta(days=60))

        with db.session() as session:
            scanner = TenantScanner(ExpiringRecordRepository(session), RecordKind.ASSET_WARRANTY, clock)
            records = scanner.scan("acme", 60)

        assert [r.kind for r in records] == [RecordKind.ASSET_WARRANTY]

    def test_requires_tenant(self, clock):
        scanner = TenantScanner(Mock(), RecordKind.COMPANY_DOCUMENT, clock)

        with pytest.raises(ValueError):
            scanner.scan("", 30)

    def test_rejects_negative_window(self, clock):
        scanner = TenantScanner(Mock(), RecordKind.COMPANY_DOCUMENT, clock)

        with pytest.raises(ValueError):
            scanner.scan("acme", -1)


def _decision(record):
    return AlertDecision(record=record, days_remaining=7, status=AlertStatus.EXPIRING)


class TestRecipientResolver:
    def test_owner_and_admins(self, db):
        with db.session() as session:
            add_member(session, "acme", "admin", "boss@acme.test", name="Boss", is_admin=True)
            add_member(session, "globex", "other", "boss@globex.test", is_admin=True)

        record = make_record(
            TODAY + timedelta(days=7),
            owner_id="m1",
            owner_name="Amy",
            owner_email="amy@acme.test",
        )
        with db.session() as session:
            resolved = RecipientResolver(MemberRepository(session)).resolve("acme", _decision(record))

        assert resolved.individual == [Recipient(email="amy@acme.test", name="Amy", member_id="m1")]
        assert [a.email for a in resolved.admins] == ["boss@acme.test"]

    def test_company_documents_have_no_individual(self, db):
        record = make_record(TODAY, kind=RecordKind.COMPANY_DOCUMENT, owner_email="x@acme.test")

        with db.session() as session:
            resolved = RecipientResolver(MemberRepository(session)).resolve("acme", _decision(record))

        assert resolved.individual == []
        assert resolved.admins == []

    def test_cross_tenant_record_rejected(self):
        record = make_record(TODAY, tenant_id="globex")

        with pytest.raises(ValueError):
            RecipientResolver(Mock()).resolve("acme", _decision(record))

    def test_static_admins_replace_lookup(self):
        members = Mock()
        resolver = RecipientResolver(members, static_admins=["ops@example.com", ""])

        admins = resolver.resolve_admins("acme")

        assert [a.email for a in admins] == ["ops@example.com"]
        members.list_admins.assert_not_called()

    def test_resolve_individual_skips_admin_lookup(self):
        members = Mock()
        record = make_record(TODAY, owner_id="m1", owner_email="amy@acme.test")

        individual = RecipientResolver(members).resolve_individual("acme", _decision(record))

        assert [r.email for r in individual] == ["amy@acme.test"]
        members.list_admins.assert_not_called()
