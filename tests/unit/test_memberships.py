"""Membership date arithmetic and lazy expiry."""

from datetime import datetime, timedelta, timezone

import pytest

from whbjj.db.models import Membership
from whbjj.memberships.service import add_months, as_utc, effective_status, is_membership_valid

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def _membership(status: str = "active", end: datetime | None = None) -> Membership:
    return Membership(
        user_id=1,
        status=status,
        start_date=NOW - timedelta(days=30),
        end_date=end or NOW + timedelta(days=1),
        membership_type="monthly",
    )


class TestAddMonths:
    @pytest.mark.parametrize(
        ("start", "months", "expected"),
        [
            (datetime(2026, 1, 15), 1, datetime(2026, 2, 15)),
            (datetime(2026, 1, 31), 1, datetime(2026, 2, 28)),
            (datetime(2028, 1, 31), 1, datetime(2028, 2, 29)),
            (datetime(2026, 11, 30), 3, datetime(2027, 2, 28)),
            (datetime(2026, 3, 31), -1, datetime(2026, 2, 28)),
            (datetime(2026, 5, 1), 12, datetime(2027, 5, 1)),
        ],
    )
    def test_clamps_to_month_end(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_keeps_time_and_zone(self):
        start = datetime(2026, 1, 31, 8, 30, tzinfo=timezone.utc)
        assert add_months(start, 1) == datetime(2026, 2, 28, 8, 30, tzinfo=timezone.utc)


class TestAsUtc:
    def test_naive_is_taken_as_utc(self):
        assert as_utc(datetime(2026, 1, 1, 10)) == datetime(2026, 1, 1, 10, tzinfo=timezone.utc)

    def test_offset_is_converted(self):
        hst = timezone(timedelta(hours=-10))
        converted = as_utc(datetime(2026, 1, 1, 10, tzinfo=hst))
        assert converted.tzinfo == timezone.utc
        assert converted.hour == 20


class TestValidity:
    def test_none_is_invalid(self):
        assert is_membership_valid(None, NOW) is False

    def test_active_in_window(self):
        assert is_membership_valid(_membership(), NOW) is True

    def test_end_date_is_inclusive(self):
        assert is_membership_valid(_membership(end=NOW), NOW) is True

    def test_active_past_end_is_invalid(self):
        assert is_membership_valid(_membership(end=NOW - timedelta(seconds=1)), NOW) is False

    def test_cancelled_in_window_is_invalid(self):
        assert is_membership_valid(_membership(status="cancelled"), NOW) is False

    def test_naive_end_date_from_store(self):
        naive_end = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert is_membership_valid(_membership(end=naive_end), NOW) is True


class TestEffectiveStatus:
    def test_active_past_end_reads_expired(self):
        assert effective_status(_membership(end=NOW - timedelta(days=1)), NOW) == "expired"

    def test_active_in_window_stays_active(self):
        assert effective_status(_membership(), NOW) == "active"

    def test_cancelled_is_kept(self):
        assert effective_status(_membership(status="cancelled", end=NOW - timedelta(days=1)), NOW) == "cancelled"
