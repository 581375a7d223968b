"""
Period index: split a date range into calendar-aligned buckets.

Buckets are inclusive date intervals [start, end]. A "month" bucket runs from
the 1st to the last day of the month (the same window as [1st, next 1st));
the first and last buckets are clipped to the requested range.

    >>> [b.label for b in build_buckets(date(2024, 1, 15), date(2024, 3, 2), "month")]
    ['2024-01', '2024-02', '2024-03']
"""
import calendar
from dataclasses import dataclass
from datetime import date, timedelta


GRANULARITY_ORDER = ["day", "week", "month", "year"]


class InvalidRangeError(ValueError):
    """end < start was supplied to a range-taking operation"""
    pass


@dataclass(frozen=True)
class Bucket:
    start: date
    end: date  # inclusive
    label: str

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def validate_range(start: date, end: date) -> None:
    if end < start:
        raise InvalidRangeError(f"end ({end.isoformat()}) is before start ({start.isoformat()})")


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int) -> date:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    last = last_day_of_month(year, month)
    day = min(d.day, last)
    return date(year, month, day)


def bucket_label(d: date, granularity: str) -> str:
    """Canonical label of the bucket that contains d."""
    if granularity == "day":
        return d.isoformat()
    elif granularity == "week":
        iso_year, iso_week, _ = d.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    elif granularity == "month":
        return f"{d.year}-{d.month:02d}"
    elif granularity == "year":
        return str(d.year)
    raise ValueError(f"invalid granularity: {granularity}")


def _period_bounds(d: date, granularity: str) -> tuple[date, date]:
    """Unclipped calendar period containing d, as inclusive (first, last)."""
    if granularity == "day":
        return d, d
    elif granularity == "week":
        monday = d - timedelta(days=d.weekday())
        return monday, monday + timedelta(days=6)
    elif granularity == "month":
        return d.replace(day=1), d.replace(day=last_day_of_month(d.year, d.month))
    elif granularity == "year":
        return date(d.year, 1, 1), date(d.year, 12, 31)
    raise ValueError(f"invalid granularity: {granularity}")


def build_buckets(start: date, end: date, granularity: str) -> list[Bucket]:
    """Ordered, non-overlapping buckets covering [start, end]. Deterministic and pure."""
    if granularity not in GRANULARITY_ORDER:
        raise ValueError(f"invalid granularity: {granularity}")
    validate_range(start, end)

    buckets: list[Bucket] = []
    cursor = start
    while cursor <= end:
        _, period_last = _period_bounds(cursor, granularity)
        bucket_end = min(period_last, end)
        buckets.append(Bucket(cursor, bucket_end, bucket_label(cursor, granularity)))
        cursor = bucket_end + timedelta(days=1)
    return buckets
