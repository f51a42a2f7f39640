"""
Bucket naming and date arithmetic for the sample partitions.

A plan (day/week/month/year) fixes the width of every bucket under one
parent table. Buckets are half-open [start, end) ranges aligned on plan
boundaries, so walking forward from any aligned start by one plan at a
time yields a contiguous, non-overlapping sequence.

Naming convention:
    day    sample_y2012d153   (day of year)
    week   sample_y2012w22    (ISO year + ISO week)
    month  sample_y2012m06
    year   sample_y2012
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Union

from archive_partitions.errors import InvalidGranularity

PARENT_TABLE = "sample"

_NAME_RE = re.compile(r"^sample_y(?P<year>\d{4})(?:(?P<kind>[dwm])(?P<num>\d{2,3}))?$")


class Granularity(str, Enum):
    """Supported partition plans."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Union[str, "Granularity"]) -> "Granularity":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidGranularity(value) from None


PlanLike = Union[str, Granularity]


def to_naive_utc(ts: Union[datetime, date]) -> datetime:
    """Normalize to a naive UTC datetime (smpl_time is TIMESTAMP WITHOUT TIME ZONE)."""
    if not isinstance(ts, datetime):
        return datetime(ts.year, ts.month, ts.day)
    if ts.tzinfo is not None:
        return ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def truncate(ts: Union[datetime, date], plan: PlanLike) -> datetime:
    """Floor a timestamp to the start of its bucket (weeks start on Monday)."""
    plan = Granularity.parse(plan)
    day = to_naive_utc(ts).replace(hour=0, minute=0, second=0, microsecond=0)
    if plan is Granularity.DAY:
        return day
    if plan is Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if plan is Granularity.MONTH:
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def _add_months(ts: datetime, months: int) -> datetime:
    year, month0 = divmod(ts.year * 12 + (ts.month - 1) + months, 12)
    month = month0 + 1
    # Clamp like interval arithmetic: Jan 31 + 1 month -> Feb 28/29
    day = min(ts.day, calendar.monthrange(year, month)[1])
    return ts.replace(year=year, month=month, day=day)


def advance(ts: datetime, plan: PlanLike, count: int = 1) -> datetime:
    """Add `count` whole plan units to a timestamp."""
    plan = Granularity.parse(plan)
    if plan is Granularity.DAY:
        return ts + timedelta(days=count)
    if plan is Granularity.WEEK:
        return ts + timedelta(weeks=count)
    if plan is Granularity.MONTH:
        return _add_months(ts, count)
    return _add_months(ts, 12 * count)


def bucket_name(start: datetime, plan: PlanLike) -> str:
    plan = Granularity.parse(plan)
    if plan is Granularity.DAY:
        return f"{PARENT_TABLE}_y{start.year}d{start.timetuple().tm_yday:03d}"
    if plan is Granularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{PARENT_TABLE}_y{iso_year}w{iso_week:02d}"
    if plan is Granularity.MONTH:
        return f"{PARENT_TABLE}_y{start.year}m{start.month:02d}"
    return f"{PARENT_TABLE}_y{start.year}"


@dataclass(frozen=True, order=True)
class Bucket:
    """One time-bounded child table of the sample parent."""

    start: datetime
    end: datetime
    name: str
    plan: Granularity

    def contains(self, ts: datetime) -> bool:
        return self.start <= to_naive_utc(ts) < self.end

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "plan": self.plan.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


def make_bucket(start: datetime, plan: PlanLike) -> Bucket:
    """Build the bucket beginning at an aligned `start`."""
    plan = Granularity.parse(plan)
    return Bucket(start=start, end=advance(start, plan), name=bucket_name(start, plan), plan=plan)


def bucket_for(ts: Union[datetime, date], plan: PlanLike) -> Bucket:
    return make_bucket(truncate(ts, plan), plan)


def horizon(plan: PlanLike, now: Optional[datetime] = None) -> datetime:
    """Start of the bucket one plan ahead of `now`; the last bucket a run creates."""
    plan = Granularity.parse(plan)
    now = to_naive_utc(now) if now is not None else utcnow()
    return truncate(advance(now, plan), plan)


def bucket_sequence(
    begin_time: Union[datetime, date],
    plan: PlanLike,
    now: Optional[datetime] = None,
) -> List[Bucket]:
    """Buckets from truncate(begin_time) through truncate(now + 1 plan), ascending.

    An empty list is returned when begin_time lies beyond the horizon.
    """
    plan = Granularity.parse(plan)
    end = horizon(plan, now)
    cursor = truncate(begin_time, plan)
    buckets: List[Bucket] = []
    while cursor <= end:
        bucket = make_bucket(cursor, plan)
        buckets.append(bucket)
        cursor = bucket.end
    return buckets


def parse_bucket_name(name: str) -> Optional[Bucket]:
    """Recover the bucket from a table name, or None if it is not a bucket table."""
    match = _NAME_RE.match(name)
    if not match:
        return None
    year = int(match.group("year"))
    kind = match.group("kind")
    try:
        if kind is None:
            start, plan = datetime(year, 1, 1), Granularity.YEAR
        elif kind == "m":
            start, plan = datetime(year, int(match.group("num")), 1), Granularity.MONTH
        elif kind == "w":
            start, plan = datetime.fromisocalendar(year, int(match.group("num")), 1), Granularity.WEEK
        else:
            start = datetime(year, 1, 1) + timedelta(days=int(match.group("num")) - 1)
            plan = Granularity.DAY
    except ValueError:
        return None
    bucket = make_bucket(start, plan)
    # Reject non-canonical spellings, e.g. a day number past the year's end
    if bucket.name != name:
        return None
    return bucket
