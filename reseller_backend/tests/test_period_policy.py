"""
Settlement period policy tests.

Pure date math: no database.
"""

from datetime import date, datetime, timezone

import pytest

from reseller_backend.app.core.exceptions import InvalidPeriodError
from reseller_backend.app.domain.settlement import period_policy
from reseller_backend.app.domain.settlement.period_policy import Period


def test_last_week_from_monday_midnight():
    """The scheduled run (Monday 00:00) settles the Monday-Sunday that just ended."""
    period = period_policy.last_week_period(datetime(2024, 1, 15, 0, 0, 0))
    assert period == Period(start=date(2024, 1, 8), end=date(2024, 1, 14))
    assert period.days == 7


def test_last_week_from_midweek():
    period = period_policy.last_week_period(datetime(2024, 1, 18, 13, 45))
    assert period.start == date(2024, 1, 8)
    assert period.end == date(2024, 1, 14)


def test_last_week_from_sunday_late_night():
    """Sunday still belongs to the current week."""
    period = period_policy.last_week_period(datetime(2024, 1, 14, 23, 59, 59))
    assert period == Period(start=date(2024, 1, 1), end=date(2024, 1, 7))


def test_last_week_across_year_boundary():
    period = period_policy.last_week_period(date(2024, 1, 3))
    assert period == Period(start=date(2023, 12, 25), end=date(2023, 12, 31))


def test_this_week_period():
    period = period_policy.this_week_period(date(2024, 1, 10))
    assert period == Period(start=date(2024, 1, 8), end=date(2024, 1, 14))


def test_validate_accepts_dates_datetimes_and_strings():
    assert period_policy.validate(date(2024, 1, 1), date(2024, 1, 7)) == Period(date(2024, 1, 1), date(2024, 1, 7))
    assert period_policy.validate(
        datetime(2024, 1, 1, 0, 0), datetime(2024, 1, 7, 23, 59, 59)
    ) == Period(date(2024, 1, 1), date(2024, 1, 7))
    assert period_policy.validate("2024-01-01", "2024-01-07T23:59:59") == Period(date(2024, 1, 1), date(2024, 1, 7))


def test_validate_single_day_period():
    period = period_policy.validate("2024-02-29", "2024-02-29")
    assert period.days == 1


def test_validate_aware_datetime_uses_its_own_date():
    start = datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)
    period = period_policy.validate(start, "2024-01-02")
    assert period.start == date(2024, 1, 1)


def test_validate_accepts_utc_suffix_and_offsets():
    period = period_policy.validate("2024-01-01T00:00:00Z", "2024-01-07T23:59:59Z")
    assert period == Period(date(2024, 1, 1), date(2024, 1, 7))

    # the offset is not applied, the written calendar day wins
    assert period_policy.validate("2024-01-01T23:30:00-05:00", "2024-01-02").start == date(2024, 1, 1)


def test_validate_rejects_inverted_range():
    with pytest.raises(InvalidPeriodError) as exc_info:
        period_policy.validate("2024-01-08", "2024-01-07")
    assert exc_info.value.error_code == "ERR_SETTLEMENT_INVALID_PERIOD"
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("start,end", [
    ("not-a-date", "2024-01-07"),
    ("2024-01-01", "2024-02-30"),
    (None, "2024-01-07"),
    ("2024-01-01", ""),
    (20240101, "2024-01-07"),
])
def test_validate_rejects_malformed_values(start, end):
    with pytest.raises(InvalidPeriodError):
        period_policy.validate(start, end)


def test_period_as_dict():
    assert Period(date(2024, 1, 1), date(2024, 1, 7)).as_dict() == {"start": "2024-01-01", "end": "2024-01-07"}
