"""
Streak tracking — pure functions, no DB access.
"""
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class CompletionEvent:
    completed_at: Any           # ISO string, datetime or date
    user_id: str | None = None


@dataclass(frozen=True)
class StreakResult:
    current_streak: int = 0
    longest_streak: int = 0
    is_first_of_month: bool = False


def parse_timestamp(value: Any) -> datetime | None:
    """Return a datetime for ISO strings, datetimes and dates, else None."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def local_day(ts: datetime, now: datetime) -> date | None:
    """
    Calendar day of ts as seen from now's timezone (host zone when naive).
    None when the shift pushes ts past the datetime range.
    """
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone(now.tzinfo)
        except OverflowError:
            return None
    return ts.date()


def _event_timestamp(event: Any) -> Any:
    if isinstance(event, Mapping):
        return event.get("completed_at") or event.get("completedAt")
    if isinstance(event, CompletionEvent):
        return event.completed_at
    return event


def distinct_days(events: Iterable[Any], now: datetime) -> list[date]:
    """Sorted unique local days; unparseable timestamps are dropped."""
    # Reduce to days before sorting: naive and aware datetimes don't compare.
    stamps = (parse_timestamp(_event_timestamp(e)) for e in events)
    days = (local_day(ts, now) for ts in stamps if ts is not None)
    return sorted({d for d in days if d is not None})


def compute_streaks(events: Iterable[Any], now: datetime) -> StreakResult:
    """
    Derive current streak, longest streak and the first-of-month flag.

    The current streak is anchored to the most recent active day, not to now:
    a user who stopped ten days ago still reports the run that ended then.
    """
    days = distinct_days(events, now)
    if not days:
        return StreakResult()

    one_day = timedelta(days=1)

    current = 1
    for later, earlier in zip(reversed(days), reversed(days[:-1])):
        gap = later - earlier
        if gap == one_day:
            current += 1
        elif gap > one_day:
            break

    longest = 0
    run = 1
    for prev, day in zip(days, days[1:]):
        if day - prev == one_day:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)

    today = now.date()
    this_month = [d for d in days if d.year == today.year and d.month == today.month]
    is_first = bool(this_month) and this_month[0] == today

    return StreakResult(current_streak=current, longest_streak=longest, is_first_of_month=is_first)
