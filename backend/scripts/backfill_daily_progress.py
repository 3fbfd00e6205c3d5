"""
Rebuild a user's daily_progress rows from the raw user_progress rows in the
mirror database, and print the streak stats those rows produce.

Recomputes every day from scratch, so it is safe to run multiple times.

Usage:
    cd backend
    SUPABASE_URL=... SUPABASE_SERVICE_KEY=... python scripts/backfill_daily_progress.py <user_id> [--dry-run]

Or with a .env file in the working directory.
"""
import sys
from datetime import datetime

from dotenv import load_dotenv

from yogaflow.db import get_client, list_daily_progress
from yogaflow.engine.completion import compute_daily_rollup
from yogaflow.engine.streak import compute_streaks


PAGE_SIZE = 1000  # Supabase row limit per request


def fetch_all_progress(db, user_id: str) -> list[dict]:
    """Fetch all progress rows for a user in pages."""
    rows = []
    offset = 0
    while True:
        res = (
            db.table("user_progress")
            .select("completed_at, duration")
            .eq("user_id", user_id)
            .order("completed_at")
            .range(offset, offset + PAGE_SIZE - 1)
            .execute()
        )
        batch = res.data or []
        rows.extend(batch)
        print(f"  fetched {len(rows)} rows...", end="\r")
        if len(batch) < PAGE_SIZE:
            break
        offset += PAGE_SIZE
    print(f"  fetched {len(rows)} rows total          ")
    return rows


def run(user_id: str, dry_run: bool = False):
    print(f"\n🔍 Backfilling daily progress for user: {user_id[:8]}...\n")

    db = get_client()
    if db is None:
        print("❌ Mirror DB not configured (SUPABASE_URL / SUPABASE_SERVICE_KEY)")
        sys.exit(1)

    now = datetime.now().astimezone()
    current = {r["day"]: r for r in list_daily_progress(db, user_id, "0000-01-01")}
    print(f"  Existing daily rows: {len(current)}")

    print(f"\n  Fetching progress...")
    rows = fetch_all_progress(db, user_id)
    if not rows:
        print("  No progress found — nothing to backfill.")
        return

    rollup = compute_daily_rollup(rows, now)
    print(f"\n  Computed days (from {len(rows)} progress rows):")
    for key, day in rollup.items():
        was = current.get(key, {}).get("sessions", 0)
        marker = " ✅" if day["sessions"] == was else f" 📈 (was {was})"
        print(f"    {key}: {day['sessions']} sessions, {day['total_duration']}s{marker}")

    stats = compute_streaks(rows, now)
    print(f"\n  Current streak: {stats.current_streak}  Longest streak: {stats.longest_streak}")

    if dry_run:
        print("\n  DRY RUN — no changes written.")
        return

    stamp = now.isoformat()
    for day in rollup.values():
        existing = current.get(day["day"], {})
        db.table("daily_progress").upsert({
            "user_id": user_id,
            **day,
            "created_at": existing.get("created_at") or stamp,
            "updated_at": stamp,
        }, on_conflict="user_id,day").execute()
    print(f"\n✅ {len(rollup)} daily rows written!\n")


if __name__ == "__main__":
    load_dotenv()
    args = [a for a in sys.argv[1:] if a != "--dry-run"]
    dry = "--dry-run" in sys.argv

    if not args:
        print("Usage: python scripts/backfill_daily_progress.py <user_id> [--dry-run]")
        sys.exit(1)

    run(args[0], dry_run=dry)
