"""Unit tests for day-offset arithmetic and the business clock."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from expiry_alerts.alerts.clock import BusinessClock, classify, days_remaining, to_business_date
from expiry_alerts.domain.models import AlertStatus


class TestDaysRemaining:
    @pytest.mark.parametrize(
        "expiry,expected",
        [
            (date(2025, 1, 8), 7),
            (date(2025, 1, 1), 0),
            (date(2024, 12, 29), -3),
            (date(2025, 3, 2), 60),
        ],
    )
    def test_whole_day_offsets(self, expiry, expected):
        assert days_remaining(date(2025, 1, 1), expiry) == expected

    def test_time_of_day_is_ignored(self):
        morning = datetime(2025, 1, 1, 0, 5, tzinfo=timezone.utc)
        evening = datetime(2025, 1, 1, 23, 55, tzinfo=timezone.utc)

        assert days_remaining(morning, date(2025, 1, 8)) == 7
        assert days_remaining(evening, date(2025, 1, 8)) == 7

    def test_instant_truncated_in_business_timezone(self):
        # 22:00 UTC on Jan 1 is already Jan 2 in Doha (UTC+3)
        late_utc = datetime(2025, 1, 1, 22, 0, tzinfo=timezone.utc)

        assert days_remaining(late_utc, date(2025, 1, 8), ZoneInfo("Asia/Qatar")) == 6
        assert days_remaining(late_utc, date(2025, 1, 8)) == 7


class TestClassify:
    def test_negative_is_expired(self):
        assert classify(-1) == AlertStatus.EXPIRED

    def test_zero_is_expiring(self):
        assert classify(0) == AlertStatus.EXPIRING


class TestToBusinessDate:
    def test_date_passthrough(self):
        assert to_business_date(date(2025, 5, 1), ZoneInfo("Asia/Qatar")) == date(2025, 5, 1)

    def test_naive_datetime_is_utc(self):
        assert to_business_date(datetime(2025, 5, 1, 23, 0), ZoneInfo("Asia/Qatar")) == date(2025, 5, 2)


class TestBusinessClock:
    def test_today_in_business_timezone(self):
        clock = BusinessClock("Asia/Qatar", now=datetime(2025, 1, 1, 22, 0, tzinfo=timezone.utc))

        assert clock.today == date(2025, 1, 2)

    def test_now_is_captured_once(self):
        clock = BusinessClock()

        assert clock.now == clock.now
        assert clock.now.tzinfo == timezone.utc

    def test_start_of_today_in_utc(self):
        clock = BusinessClock("Asia/Qatar", now=datetime(2025, 1, 2, 10, 0, tzinfo=timezone.utc))

        assert clock.start_of_today() == datetime(2025, 1, 1, 21, 0, tzinfo=timezone.utc)

    def test_threshold_and_days_until(self):
        clock = BusinessClock(now=datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))

        assert clock.threshold(30) == date(2025, 1, 31)
        assert clock.days_until(date(2025, 1, 15)) == 14

    def test_cutoff(self):
        clock = BusinessClock(now=datetime(2025, 4, 1, 0, 0, tzinfo=timezone.utc))

        assert clock.cutoff(90) == datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)

    def test_naive_now_treated_as_utc(self):
        clock = BusinessClock(now=datetime(2025, 1, 1, 9, 0))

        assert clock.now.tzinfo == timezone.utc

    def test_repr(self):
        clock = BusinessClock(now=datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc))

        assert repr(clock) == "BusinessClock(timezone='UTC', today=2025-01-01)"
