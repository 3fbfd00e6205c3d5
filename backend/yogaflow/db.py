import os
import logging
from datetime import datetime
from functools import lru_cache
from supabase import create_client, Client

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Client | None:
    """Mirror database client, or None when the mirror is not configured."""
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_KEY")
    if not url or not key:
        logger.info("Mirror DB not configured; set SUPABASE_URL and SUPABASE_SERVICE_KEY to enable it")
        return None
    return create_client(url, key)


def is_unique_violation(exc: Exception) -> bool:
    err_str = str(exc).lower()
    return "duplicate" in err_str or "unique" in err_str or "23505" in err_str


# ── Users ─────────────────────────────────────────────────────────────────────

def find_user(db: Client, username: str) -> dict | None:
    res = db.table("users").select("*").eq("username", username).execute()
    return res.data[0] if res.data else None


def insert_user(db: Client, row: dict) -> None:
    db.table("users").insert(row).execute()


def update_user(db: Client, username: str, updates: dict) -> None:
    db.table("users").update(updates).eq("username", username).execute()


def list_users_with_email(db: Client) -> list[dict]:
    res = db.table("users").select("id, username, email").not_.is_("email", "null").execute()
    return res.data or []


# ── Progress ──────────────────────────────────────────────────────────────────

def insert_progress(db: Client, row: dict) -> None:
    db.table("user_progress").insert(row).execute()


def list_progress(db: Client, user_id: str) -> list[dict]:
    res = db.table("user_progress").select("*").eq("user_id", user_id).order("completed_at").execute()
    return res.data or []


def get_daily_progress(db: Client, user_id: str, day: str) -> dict | None:
    res = db.table("daily_progress").select("*").eq("user_id", user_id).eq("day", day).execute()
    return res.data[0] if res.data else None


def list_daily_progress(db: Client, user_id: str, since: str) -> list[dict]:
    res = (
        db.table("daily_progress")
        .select("*")
        .eq("user_id", user_id)
        .gte("day", since)
        .order("day")
        .execute()
    )
    return res.data or []


def record_daily_progress(db: Client, user_id: str, day: str, duration: int, now: datetime) -> None:
    """Mark the day complete and bump its session count and total duration."""
    existing = get_daily_progress(db, user_id, day) or {}
    stamp = now.isoformat()
    db.table("daily_progress").upsert({
        "user_id": user_id,
        "day": day,
        "completion": True,
        "sessions": (existing.get("sessions") or 0) + 1,
        "total_duration": (existing.get("total_duration") or 0) + (duration or 0),
        "created_at": existing.get("created_at") or stamp,
        "updated_at": stamp,
    }, on_conflict="user_id,day").execute()


# ── Recommendations ───────────────────────────────────────────────────────────

def upsert_recommended_poses(db: Client, user_id: str, poses, now: datetime) -> None:
    db.table("recommended_poses").upsert(
        {"user_id": user_id, "poses": poses, "created_at": now.isoformat()},
        on_conflict="user_id",
    ).execute()


def get_recommended_poses(db: Client, user_id: str) -> list | None:
    res = (
        db.table("recommended_poses")
        .select("poses")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return res.data[0]["poses"] if res.data else None


# ── Diagnostics ───────────────────────────────────────────────────────────────

def ping(db: Client, now: datetime) -> dict:
    res = db.table("debug_ping").insert({"created_at": now.isoformat()}).execute()
    return res.data[0] if res.data else {}
