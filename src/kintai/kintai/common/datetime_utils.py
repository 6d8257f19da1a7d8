from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: str) -> time:
    """Parse HH:MM (or HH:MM:SS) into time."""
    value = value.strip()
    fmt = "%H:%M:%S" if value.count(":") == 2 else "%H:%M"
    return datetime.strptime(value, fmt).time()


def parse_iso_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).replace(tzinfo=None)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now()


def add_months(d: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(d: date, years: int) -> date:
    return add_months(d, years * 12)


def month_range(year: int, month: int) -> tuple[date, date]:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last)


def iter_dates(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def span_minutes(start: time, end: time) -> int:
    """Minutes between two wall-clock times; an end before start means the next day."""
    start_min = start.hour * 60 + start.minute
    end_min = end.hour * 60 + end.minute
    if end_min < start_min:
        end_min += 24 * 60
    return end_min - start_min


def combine_span(work_date: date, start: time, end: time) -> tuple[datetime, datetime]:
    begin = datetime.combine(work_date, start)
    finish = datetime.combine(work_date, end)
    if finish < begin:
        finish += timedelta(days=1)
    return begin, finish


def format_work_hours(minutes: Optional[int]) -> str:
    """Render minutes as "H時間M分"."""
    if not minutes or minutes <= 0:
        return "0時間0分"
    return f"{minutes // 60}時間{minutes % 60}分"


def to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000)
