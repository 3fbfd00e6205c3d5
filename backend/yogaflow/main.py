"""
YogaFlow — FastAPI backend
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from typing import Optional

import httpx
from dotenv import load_dotenv
from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .db import (
    get_client, is_unique_violation,
    find_user, insert_user, update_user, list_users_with_email,
    insert_progress, list_progress, record_daily_progress, list_daily_progress,
    upsert_recommended_poses, get_recommended_poses, ping,
)
from .engine.catalog import all_poses, get_pose, poses_by_category, poses_by_difficulty
from .engine.completion import compute_completion_rate, local_day_string
from .engine.otp import PURPOSE_PASSWORD_CHANGE, codes_match, expires_at, generate_code, is_expired
from .engine.streak import compute_streaks
from .mailer import (
    MailNotConfigured, mail_enabled, submit, verify_mail_config,
    send_exercise_reminder, send_login_thanks, send_routine_completion,
    send_signup_code, send_test_email,
)
from .models import AssessmentIn, MailTestRequest, ProgressIn, SignupCodeRequest, SignupVerify, UserLogin, UserRegister
from .scheduler import shutdown_scheduler, start_scheduler
from .security import hash_password, verify_password
from .store import MemoryStore, get_store

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDER_URL = "https://web-production-ca02e.up.railway.app/recommend"


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_scheduler()
    try:
        yield
    finally:
        shutdown_scheduler()


limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="YogaFlow API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

ALLOWED_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5000,http://localhost:3000").split(",")
    if o.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type"],
)


def _now() -> datetime:
    """Current local time, timezone-aware."""
    return datetime.now().astimezone()


def _public(user: dict) -> dict:
    return {k: v for k, v in user.items() if k not in ("password", "_id")}


@app.get("/health")
def health():
    db = get_client()
    if db is None:
        return {"status": "ok", "db": "disabled"}
    try:
        db.table("users").select("id").limit(1).execute()
        return {"status": "ok", "db": "ok"}
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
        raise HTTPException(status_code=503, detail="DB unavailable")


# ── Auth ──────────────────────────────────────────────────────────────────────

def _registered_user(store: MemoryStore, db, username: str) -> dict | None:
    user = store.get_user_by_username(username)
    if user or db is None:
        return user
    try:
        return find_user(db, username)
    except Exception as e:
        logger.warning("Mirror user lookup failed: %s", e)
        return None


def _username_taken(store: MemoryStore, db, username: str) -> bool:
    return _registered_user(store, db, username) is not None


def _check_registered_email(store: MemoryStore, db, username: str, email: str) -> None:
    existing = _registered_user(store, db, username)
    if not existing:
        raise HTTPException(status_code=400, detail="User does not exist")
    if existing.get("email") != email:
        raise HTTPException(status_code=400, detail="Email does not match registered email")


def _mirror_user(db, user: dict, verified: bool = False) -> None:
    row = {
        "id": user["id"],
        "username": user["username"],
        "password": user["password"],
        "email": user.get("email"),
        "created_at": _now().isoformat(),
    }
    if verified:
        row["email_verified_at"] = row["created_at"]
    insert_user(db, row)


@app.post("/api/auth/signup/request-code")
@limiter.limit("10/minute")
def request_signup_code(
    request: Request,
    body: SignupCodeRequest,
    background_tasks: BackgroundTasks,
    store: MemoryStore = Depends(get_store),
):
    db = get_client()
    if body.purpose == PURPOSE_PASSWORD_CHANGE:
        _check_registered_email(store, db, body.username, body.email)
    elif _username_taken(store, db, body.username):
        raise HTTPException(status_code=400, detail="User already exists")

    code = generate_code()
    now = _now()
    store.put_pending_code(body.username, body.email, code, expires_at(now), purpose=body.purpose, now=now)
    submit(background_tasks, "Signup code email", send_signup_code, body.email, body.username, code)
    logger.info("Signup code issued for %s (%s)", body.username, body.purpose)
    return {"success": True}


@app.post("/api/auth/signup/verify")
@limiter.limit("20/minute")
def verify_signup_code(
    request: Request,
    body: SignupVerify,
    response: Response,
    store: MemoryStore = Depends(get_store),
):
    entry = store.get_pending_code(body.username, body.email)
    if not entry:
        raise HTTPException(status_code=400, detail="No code found for this user")
    if is_expired(entry, _now()):
        store.delete_pending_code(body.username, body.email)
        raise HTTPException(status_code=400, detail="Code expired")
    if not codes_match(entry["code"], body.code):
        raise HTTPException(status_code=400, detail="Invalid code")
    if entry.get("purpose") != body.purpose:
        raise HTTPException(status_code=400, detail="Code was issued for a different purpose")

    db = get_client()
    password_hash = hash_password(body.password)

    if body.purpose == PURPOSE_PASSWORD_CHANGE:
        _check_registered_email(store, db, body.username, body.email)
        store.update_password(body.username, password_hash)
        if db is not None:
            update_user(db, body.username, {"password": password_hash})
        store.delete_pending_code(body.username, body.email)
        logger.info("Password changed for %s", body.username)
        return {"success": True}

    if _username_taken(store, db, body.username):
        raise HTTPException(status_code=400, detail="Username already taken")

    user = store.create_user(body.username, password_hash, body.email)
    if db is not None:
        try:
            _mirror_user(db, user, verified=True)
        except Exception as e:
            logger.warning("Mirror user insert failed after signup: %s", e)
    store.delete_pending_code(body.username, body.email)
    logger.info("User verified and registered: %s", body.username)
    response.status_code = 201
    return _public(user)


@app.post("/api/auth/register", status_code=201)
@limiter.limit("10/minute")
def register(request: Request, body: UserRegister, store: MemoryStore = Depends(get_store)):
    db = get_client()
    if _username_taken(store, db, body.username):
        raise HTTPException(status_code=400, detail="Username already taken")

    user = store.create_user(body.username, hash_password(body.password), body.email)
    if db is not None:
        try:
            _mirror_user(db, user)
        except Exception as e:
            if is_unique_violation(e):
                raise HTTPException(status_code=400, detail="Username already taken")
            logger.warning("Mirror user insert failed: %s", e)

    logger.info("User registered: %s", body.username)
    return _public(user)


@app.post("/api/auth/login")
@limiter.limit("30/minute")
def login(
    request: Request,
    body: UserLogin,
    background_tasks: BackgroundTasks,
    store: MemoryStore = Depends(get_store),
):
    db = get_client()
    user = store.get_user_by_username(body.username)
    if not user and db is not None:
        try:
            user = find_user(db, body.username)
        except Exception as e:
            logger.warning("Mirror login lookup failed: %s", e)
    if not user or not verify_password(body.password, user.get("password")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if db is not None:
        try:
            update_user(db, body.username, {"last_login_at": _now().isoformat()})
        except Exception as e:
            logger.warning("Mirror last_login_at update failed: %s", e)

    public = {"id": user.get("id"), "username": user["username"], "email": user.get("email")}
    if public["email"]:
        submit(background_tasks, "Login thanks email", send_login_thanks, public["email"], public["username"])
    else:
        logger.info("Login ok for %s, no email on file", body.username)
    return {"message": "Login successful", "user": public}


# ── Assessment ────────────────────────────────────────────────────────────────

def _fetch_recommendations(payload: dict):
    url = os.getenv("RECOMMENDER_URL") or DEFAULT_RECOMMENDER_URL
    res = httpx.post(url, json=payload, timeout=15)
    res.raise_for_status()
    return res.json()


@app.post("/api/assessment")
def create_assessment(body: AssessmentIn, store: MemoryStore = Depends(get_store)):
    data = body.model_dump(exclude={"username"})
    try:
        recommendations = _fetch_recommendations(data)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Recommender call failed: %s", e)
        raise HTTPException(status_code=502, detail="Recommendation service failed")

    assessment = store.create_assessment(data)

    owner = body.user_id or body.username
    db = get_client()
    if db is not None and owner:
        poses = recommendations.get("recommendations", recommendations) if isinstance(recommendations, dict) else recommendations
        try:
            upsert_recommended_poses(db, owner, poses, _now())
        except Exception as e:
            logger.warning("Mirror recommended_poses upsert failed: %s", e)

    return {"assessment": assessment, "recommendations": recommendations}


@app.get("/api/assessment/{user_id}")
def get_assessment(user_id: str, store: MemoryStore = Depends(get_store)):
    assessment = store.get_assessment_by_user(user_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    return assessment


# ── Routines & poses ──────────────────────────────────────────────────────────

@app.get("/api/routines")
def list_routines(username: Optional[str] = None, store: MemoryStore = Depends(get_store)):
    db = get_client()
    if db is not None and username:
        return get_recommended_poses(db, username) or []
    return store.list_routines()


@app.get("/api/routines/difficulty/{difficulty}")
def list_routines_by_difficulty(difficulty: str, store: MemoryStore = Depends(get_store)):
    return store.list_routines_by_difficulty(difficulty)


@app.get("/api/routines/{routine_id}")
def get_routine(routine_id: str, store: MemoryStore = Depends(get_store)):
    routine = store.get_routine(routine_id)
    if not routine:
        raise HTTPException(status_code=404, detail="Routine not found")
    return routine


@app.get("/api/poses")
def list_poses():
    return all_poses()


@app.get("/api/poses/category/{category}")
def list_poses_by_category(category: str):
    return poses_by_category(category)


@app.get("/api/poses/difficulty/{difficulty}")
def list_poses_by_difficulty(difficulty: str):
    return poses_by_difficulty(difficulty)


@app.get("/api/poses/{index}")
def get_pose_by_index(index: int):
    pose = get_pose(index)
    if not pose:
        raise HTTPException(status_code=404, detail="Pose not found")
    return pose


@app.post("/api/recommendations")
def generate_recommendations():
    raise HTTPException(status_code=501, detail="Recommendations are served by the external recommender")


# ── Progress ──────────────────────────────────────────────────────────────────

def _history(db, store: MemoryStore, user_id: str) -> list[dict]:
    """Progress rows for a user: the mirror when configured, else memory."""
    if db is not None:
        return list_progress(db, user_id)
    return store.list_progress(user_id)


@app.post("/api/progress")
def record_progress(
    body: ProgressIn,
    background_tasks: BackgroundTasks,
    store: MemoryStore = Depends(get_store),
):
    now = _now()
    row = store.create_progress(body.model_dump(), now)
    result = compute_streaks(store.list_progress(body.user_id), now)

    db = get_client()
    if db is not None:
        try:
            record_daily_progress(db, body.user_id, local_day_string(now), body.duration, now)
            insert_progress(db, {**row, "completed_poses": body.completed_poses or []})
        except Exception as e:
            logger.warning("Mirror progress write failed for %s...: %s", body.user_id[:8], e)

    user = store.get_user(body.user_id)
    if user and user.get("email"):
        routine = store.get_routine(body.routine_id) if body.routine_id else None
        submit(
            background_tasks, "Routine completion email", send_routine_completion,
            user["email"], user["username"],
            routine_name=routine["name"] if routine else body.routine_id,
            duration=body.duration,
            streak=result.current_streak,
            is_first_of_month=result.is_first_of_month,
        )

    logger.info("Progress for %s...: streak %d", body.user_id[:8], result.current_streak)
    return {**row, "streak": result.current_streak, "is_first_of_month": result.is_first_of_month}


@app.get("/api/progress/stats/{user_id}")
def progress_stats(user_id: str, store: MemoryStore = Depends(get_store)):
    """Current streak, longest streak and first-of-month flag."""
    result = compute_streaks(_history(get_client(), store, user_id), _now())
    return {
        "current_streak": result.current_streak,
        "longest_streak": result.longest_streak,
        "is_first_of_month": result.is_first_of_month,
    }


@app.get("/api/progress/daily/{user_id}")
def daily_completion(
    user_id: str,
    day: Optional[date] = Query(None, alias="date"),
    store: MemoryStore = Depends(get_store),
):
    """Completed share of the user's recommended poses for one day (default today)."""
    now = _now()
    db = get_client()
    total = len(get_recommended_poses(db, user_id) or []) if db is not None else 0
    return compute_completion_rate(total, _history(db, store, user_id), day or now.date(), now)


@app.get("/api/progress/summary/{user_id}")
def daily_summary(user_id: str, days: int = Query(30, ge=1)):
    db = get_client()
    if db is None:
        raise HTTPException(status_code=501, detail="Mirror DB not configured")
    since = (_now().date() - timedelta(days=days)).isoformat()
    return list_daily_progress(db, user_id, since)


@app.get("/api/progress/{user_id}")
def list_user_progress(user_id: str, store: MemoryStore = Depends(get_store)):
    return _history(get_client(), store, user_id)


# ── Notifications ─────────────────────────────────────────────────────────────

@app.post("/api/notify/reminders")
async def notify_reminders(store: MemoryStore = Depends(get_store)):
    """Send an exercise reminder to every user with an email address."""
    users = store.list_users()
    db = get_client()
    if db is not None:
        try:
            users = list_users_with_email(db)
        except Exception as e:
            logger.warning("Mirror users fetch failed, using memory store: %s", e)

    recipients = [u for u in users if u.get("email")]
    results = await asyncio.gather(
        *(send_exercise_reminder(u["email"], u["username"]) for u in recipients),
        return_exceptions=True,
    )
    sent = 0
    for user, outcome in zip(recipients, results):
        if isinstance(outcome, Exception):
            logger.error("Reminder to %s failed: %s", user["email"], outcome)
        elif outcome:
            sent += 1
    return {"sent": sent, "total": len(users)}


# ── Diagnostics ───────────────────────────────────────────────────────────────

@app.get("/api/debug/mail")
async def debug_mail():
    return {
        "host": os.getenv("SMTP_HOST") or "<missing>",
        "port": os.getenv("SMTP_PORT") or "<default 587>",
        "user": "<set>" if os.getenv("SMTP_USER") else "<missing>",
        "from": os.getenv("MAIL_FROM") or os.getenv("SMTP_USER") or "no-reply@example.com",
        "enabled": mail_enabled(),
        "verify": await verify_mail_config(),
    }


@app.post("/api/debug/mail/test")
async def debug_mail_test(to: Optional[str] = None, body: Optional[MailTestRequest] = None):
    recipient = to or (body.to if body else None)
    if not recipient:
        raise HTTPException(status_code=400, detail="Provide recipient via query ?to= or JSON { to }")
    try:
        await send_test_email(recipient)
    except MailNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error("Test email to %s failed: %s", recipient, e)
        raise HTTPException(status_code=500, detail=str(e) or type(e).__name__)
    return {"sent": True, "to": recipient}


@app.get("/api/debug/db")
def debug_db():
    db = get_client()
    if db is None:
        return {"connected": False, "reason": "No mirror DB (set SUPABASE_URL and SUPABASE_SERVICE_KEY)"}
    try:
        row = ping(db, _now())
    except Exception as e:
        logger.error("Mirror write probe failed: %s", e)
        raise HTTPException(status_code=500, detail=f"Mirror write failed: {e}")
    return {"connected": True, "can_write": True, "inserted_id": row.get("id")}
