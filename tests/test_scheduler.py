"""Unit tests for the scheduler service.

Tests the SchedulerService including:
- Job defaults (max_instances=1, coalesce, misfire grace)
- Crontab registration in the business timezone
- Start/shutdown lifecycle
- Trigger now functionality
"""

import threading
import time
from datetime import datetime
from unittest.mock import Mock

import pytest

from expiry_alerts.scheduler import SchedulerService
from expiry_alerts.scheduler.service import MISFIRE_GRACE_SECONDS


class TestSchedulerService:
    """Test suite for SchedulerService."""

    def test_scheduler_initialization(self):
        shutdown_event = threading.Event()

        scheduler = SchedulerService(timezone_name="Asia/Qatar", shutdown_event=shutdown_event)

        assert scheduler.timezone == "Asia/Qatar"
        assert scheduler.shutdown_event == shutdown_event
        assert scheduler.job_ids == []
        assert not scheduler.is_running()

    def test_job_defaults_prevent_overlap(self):
        scheduler = SchedulerService()

        assert scheduler.scheduler._job_defaults["max_instances"] == 1
        assert scheduler.scheduler._job_defaults["coalesce"] is True
        assert scheduler.scheduler._job_defaults["misfire_grace_time"] == MISFIRE_GRACE_SECONDS

    def test_register_crontab_job(self):
        scheduler = SchedulerService(timezone_name="Asia/Qatar")

        scheduler.register("company-document-expiry", Mock(), "0 6 * * *")

        assert scheduler.job_ids == ["company-document-expiry"]
        job = scheduler.scheduler.get_job("company-document-expiry")
        assert job is not None
        assert str(job.trigger.timezone) == "Asia/Qatar"

    def test_register_replaces_existing(self):
        scheduler = SchedulerService()

        scheduler.register("asset-warranty-expiry", Mock(), "0 6 * * *")
        scheduler.register("asset-warranty-expiry", Mock(), "30 7 * * *")

        assert scheduler.job_ids == ["asset-warranty-expiry"]

    def test_register_invalid_crontab(self):
        scheduler = SchedulerService()

        with pytest.raises(ValueError):
            scheduler.register("broken", Mock(), "not a schedule")

    def test_scheduler_start_and_shutdown(self):
        shutdown_event = threading.Event()
        scheduler = SchedulerService(shutdown_event=shutdown_event)
        scheduler.register("notification-retention", Mock(), "0 3 * * *")

        scheduler.start()
        assert scheduler.is_running()

        time.sleep(0.1)

        next_run = scheduler.get_next_run_time("notification-retention")
        assert isinstance(next_run, datetime)
        assert (next_run.hour, next_run.minute) == (3, 0)

        scheduler.shutdown(wait=False)
        assert not scheduler.is_running()
        assert shutdown_event.is_set()

    def test_shutdown_without_start(self):
        scheduler = SchedulerService(shutdown_event=None)

        scheduler.shutdown(wait=False)

        assert not scheduler.is_running()

    def test_trigger_now_executes_immediately(self):
        call_count = [0]

        def counting_callable():
            call_count[0] += 1

        scheduler = SchedulerService()
        scheduler.register("employee-document-expiry", counting_callable, "15 6 * * *")

        # Don't start scheduler, just trigger manually
        scheduler.trigger_now("employee-document-expiry")

        assert call_count[0] == 1

    def test_trigger_unknown_job(self):
        scheduler = SchedulerService()

        with pytest.raises(KeyError):
            scheduler.trigger_now("job-alerts")

    def test_get_next_run_time_unknown_job(self):
        scheduler = SchedulerService()

        assert scheduler.get_next_run_time("missing") is None
