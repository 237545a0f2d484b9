"""
Calendar helpers.

Days and months are evaluated in the configured ledger timezone;
the returned boundaries are always aware UTC datetimes so they can
be compared with stored timestamps directly.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo


def local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar day `moment` falls on in `tz`."""
    return moment.astimezone(tz).date()


def day_start(day: date, tz: tzinfo) -> datetime:
    """First instant of `day` in `tz`, as UTC."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def period_key_for(moment: datetime, tz: tzinfo) -> str:
    """YYYY-MM key of the month `moment` falls in."""
    return local_date(moment, tz).strftime("%Y-%m")


def parse_period_key(period_key: str) -> tuple[int, int]:
    year, month = period_key.split("-")
    return int(year), int(month)


def shift_month(period_key: str, offset: int) -> str:
    """Month `offset` months after (or before, if negative) `period_key`."""
    year, month = parse_period_key(period_key)
    index = year * 12 + (month - 1) + offset
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_window(period_key: str, tz: tzinfo) -> tuple[datetime, datetime]:
    """
    Inclusive [start, end] of a calendar month.

    `end` is one microsecond before the next month starts.
    """
    year, month = parse_period_key(period_key)
    next_year, next_month = parse_period_key(shift_month(period_key, 1))
    start = day_start(date(year, month, 1), tz)
    end = day_start(date(next_year, next_month, 1), tz) - timedelta(microseconds=1)
    return start, end


def year_window(year: int, tz: tzinfo) -> tuple[datetime, datetime]:
    start = day_start(date(year, 1, 1), tz)
    end = day_start(date(year + 1, 1, 1), tz) - timedelta(microseconds=1)
    return start, end
