"""
Daily completion rate — pure functions, no DB access.
"""
from datetime import date, datetime

from .streak import local_day, parse_timestamp


def local_day_string(now: datetime) -> str:
    """YYYY-MM-DD key for the local calendar day of now."""
    return now.strftime("%Y-%m-%d")


def compute_completion_rate(
    recommended_total: int,
    progress_rows: list[dict],
    day: date,
    now: datetime,
) -> dict:
    """
    Share of today's recommended poses the user has completed.
    Completed poses beyond the recommended total are not counted.
    """
    completed = 0
    for row in progress_rows:
        ts = parse_timestamp(row.get("completed_at"))
        if ts is None or local_day(ts, now) != day:
            continue
        poses = row.get("completed_poses")
        if isinstance(poses, list):
            completed += len(poses)

    total = max(recommended_total, 0)
    completed = min(completed, total)
    rate = round(completed / total * 100) if total > 0 else 0
    return {"date": day.isoformat(), "total": total, "completed": completed, "rate": rate}


def compute_daily_rollup(rows: list[dict], now: datetime) -> dict[str, dict]:
    """
    Group progress rows by local day into the daily_progress shape.
    Rows with unparseable timestamps are skipped.
    """
    days: dict[str, dict] = {}
    for row in rows:
        ts = parse_timestamp(row.get("completed_at"))
        day_of = local_day(ts, now) if ts is not None else None
        if day_of is None:
            continue
        key = day_of.isoformat()
        day = days.setdefault(key, {"day": key, "completion": True, "sessions": 0, "total_duration": 0})
        day["sessions"] += 1
        day["total_duration"] += row.get("duration") or 0
    return dict(sorted(days.items()))
