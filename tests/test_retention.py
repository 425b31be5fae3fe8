"""Tests for the batched notification retention purge."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from expiry_alerts.alerts import BusinessClock
from expiry_alerts.config.models import JobName
from expiry_alerts.jobs import RetentionJob, RetentionPurger
from expiry_alerts.jobs.base import run_lock
from expiry_alerts.persistence import Database, NotificationRepository
from tests.helpers import add_notification, add_tenant

NOW = datetime(2025, 6, 1, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return BusinessClock(now=NOW)


@pytest.fixture
def db():
    database = Database("sqlite:///:memory:")
    with database.session() as session:
        add_tenant(session, "acme")
    yield database
    database.close()


def _seed(db, old, recent):
    with db.session() as session:
        for i in range(old):
            add_notification(session, "acme", f"m{i}", NOW - timedelta(days=120))
        for i in range(recent):
            add_notification(session, "acme", f"r{i}", NOW - timedelta(days=5))


def _remaining(db):
    with db.session() as session:
        return len(NotificationRepository(session).list_for_tenant("acme"))


class TestRetentionPurger:
    def test_purges_only_old_rows(self, db, clock):
        _seed(db, old=5, recent=2)

        deleted = RetentionPurger(db, clock, batch_size=2).purge(90)

        assert deleted == 5
        assert _remaining(db) == 2

    def test_exact_multiple_of_batch_size(self, db, clock):
        _seed(db, old=6, recent=1)

        deleted = RetentionPurger(db, clock, batch_size=3).purge(90)

        assert deleted == 6
        assert _remaining(db) == 1

    def test_nothing_to_purge(self, db, clock):
        _seed(db, old=0, recent=3)

        assert RetentionPurger(db, clock).purge(90) == 0
        assert _remaining(db) == 3

    def test_boundary_row_is_kept(self, db, clock):
        with db.session() as session:
            add_notification(session, "acme", "edge", NOW - timedelta(days=90))
            add_notification(session, "acme", "older", NOW - timedelta(days=90, seconds=1))

        assert RetentionPurger(db, clock).purge(90) == 1
        assert _remaining(db) == 1

    def test_rejects_invalid_batch_size(self, db, clock):
        with pytest.raises(ValueError):
            RetentionPurger(db, clock, batch_size=0)

    def test_rejects_invalid_retention(self, db, clock):
        with pytest.raises(ValueError):
            RetentionPurger(db, clock).purge(0)


class TestRetentionJob:
    def test_run_reports_deleted(self, db, clock):
        _seed(db, old=3, recent=1)

        result = RetentionJob(db, clock, retention_days=90, batch_size=2).run()

        assert result.job == JobName.NOTIFICATION_RETENTION.value
        assert result.deleted == 3
        assert result.had_errors is False

    def test_skipped_while_running(self, clock):
        lock = run_lock(JobName.NOTIFICATION_RETENTION)
        lock.acquire()
        try:
            result = RetentionJob(Mock(), clock, retention_days=90).run()
        finally:
            lock.release()

        assert result.skipped_run is True
        assert result.deleted == 0
