"""
Daily exercise reminder job.
"""
import logging
import os
from datetime import datetime
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .db import get_client, get_daily_progress
from .engine.completion import local_day_string
from .mailer import send_exercise_reminder
from .store import MemoryStore, get_store

logger = logging.getLogger(__name__)

DEFAULT_CRON_TIME = "0 9 * * *"  # 9:00 every day
JOB_ID = "daily_reminders"

scheduler = AsyncIOScheduler()


def cron_enabled() -> bool:
    return os.getenv("CRON_ENABLED", "").lower() in ("1", "true")


def _now() -> datetime:
    tz = os.getenv("TZ")
    return datetime.now(ZoneInfo(tz)) if tz else datetime.now()


async def send_daily_reminders(store: MemoryStore, db, now: datetime) -> dict:
    """Remind every user with an email who hasn't completed a routine today."""
    if db is None:
        logger.info("Mirror DB not configured; skipping reminders")
        return {"sent": 0, "total": 0}

    users = store.list_users()
    today = local_day_string(now)
    sent = 0
    for user in users:
        email = user.get("email")
        if not email:
            continue
        try:
            if get_daily_progress(db, user["id"], today):
                continue
            if await send_exercise_reminder(email, user["username"]):
                sent += 1
        except Exception:
            logger.exception("Reminder failed for %s...", user["id"][:8])

    logger.info("Reminders sent: %d/%d", sent, len(users))
    return {"sent": sent, "total": len(users)}


async def _run_daily_reminders() -> None:
    try:
        await send_daily_reminders(get_store(), get_client(), _now())
    except Exception:
        logger.exception("Reminder job failed")


def start_scheduler() -> bool:
    if not cron_enabled():
        logger.info("Cron disabled; set CRON_ENABLED=1 to enable daily reminders")
        return False

    expr = os.getenv("CRON_TIME") or DEFAULT_CRON_TIME
    tz = os.getenv("TZ") or None
    scheduler.add_job(
        _run_daily_reminders,
        CronTrigger.from_crontab(expr, timezone=tz),
        id=JOB_ID,
        replace_existing=True,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info("Scheduled daily reminders at '%s'%s", expr, f" (TZ={tz})" if tz else "")
    return True


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
