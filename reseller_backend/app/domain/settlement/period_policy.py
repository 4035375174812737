"""
Settlement period policy.

Pure date math for settlement periods. A period is a closed range of
calendar days: both start and end are billed in full.

Weeks run Monday through Sunday. The scheduler fires at the start of
Monday and settles the week that just ended.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Union

from pydantic import TypeAdapter, ValidationError

from reseller_backend.app.core.exceptions import InvalidPeriodError

DateLike = Union[date, datetime, str]

_DATE = TypeAdapter(date)
_DATETIME = TypeAdapter(datetime)


@dataclass(frozen=True)
class Period:
    """Inclusive settlement period."""
    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def as_dict(self) -> Dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def _as_date(value: DateLike, field: str) -> date:
    if value is None or value == "":
        raise InvalidPeriodError(f"{field} is required", details={"field": field})
    # datetime is a subclass of date, check it first
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return _DATE.validate_python(text)
        except ValidationError:
            pass
        # Timestamps with an offset or a Z suffix keep their own calendar day
        try:
            return _DATETIME.validate_python(text).date()
        except ValidationError:
            raise InvalidPeriodError(
                f"{field} is not a valid ISO-8601 date: {value!r}",
                details={"field": field, "value": value},
            )
    raise InvalidPeriodError(
        f"{field} must be a date, got {type(value).__name__}",
        details={"field": field},
    )


def validate(start: DateLike, end: DateLike) -> Period:
    """Normalize a caller-supplied range into a Period.

    Raises:
        InvalidPeriodError: if either bound is missing or unparseable,
            or if start is after end.
    """
    start_date = _as_date(start, "period_start")
    end_date = _as_date(end, "period_end")

    if start_date > end_date:
        raise InvalidPeriodError(
            f"period_start {start_date} is after period_end {end_date}",
            details={"period_start": start_date.isoformat(), "period_end": end_date.isoformat()},
        )
    return Period(start=start_date, end=end_date)


def _week_start(now: Union[date, datetime]) -> date:
    today = now.date() if isinstance(now, datetime) else now
    return today - timedelta(days=today.weekday())


def last_week_period(now: Union[date, datetime]) -> Period:
    """Monday through Sunday of the week before ``now``'s week."""
    this_monday = _week_start(now)
    return Period(start=this_monday - timedelta(days=7), end=this_monday - timedelta(days=1))


def this_week_period(now: Union[date, datetime]) -> Period:
    """Monday through Sunday of ``now``'s week."""
    this_monday = _week_start(now)
    return Period(start=this_monday, end=this_monday + timedelta(days=6))
