"""
In-memory repository for users, assessments, routines, progress and pending
signup codes. Seeded with the sample routines; everything else is created at
runtime and lost on restart (the optional mirror in db.py keeps a copy).
"""
import copy
import threading
import uuid
from datetime import datetime, timezone
from functools import lru_cache

from .engine.catalog import SAMPLE_ROUTINES


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryStore:
    def __init__(self, seed_routines: bool = True):
        self._lock = threading.Lock()
        self._users: dict[str, dict] = {}
        self._assessments: dict[str, dict] = {}
        self._routines: dict[str, dict] = {}
        self._progress: dict[str, dict] = {}
        self._pending_codes: dict[tuple[str, str], dict] = {}
        if seed_routines:
            for routine in SAMPLE_ROUTINES:
                self.create_routine(copy.deepcopy(routine))

    # ── Users ─────────────────────────────────────────────────────────────────

    def get_user(self, user_id: str) -> dict | None:
        return self._users.get(user_id)

    def get_user_by_username(self, username: str) -> dict | None:
        with self._lock:
            return next((u for u in self._users.values() if u["username"] == username), None)

    def list_users(self) -> list[dict]:
        with self._lock:
            return list(self._users.values())

    def create_user(self, username: str, password_hash: str, email: str | None = None) -> dict:
        user = {"id": str(uuid.uuid4()), "username": username, "password": password_hash, "email": email}
        with self._lock:
            self._users[user["id"]] = user
        return user

    def update_password(self, username: str, password_hash: str) -> bool:
        user = self.get_user_by_username(username)
        if not user:
            return False
        user["password"] = password_hash
        return True

    # ── Assessments ───────────────────────────────────────────────────────────

    def create_assessment(self, data: dict) -> dict:
        assessment = {
            **data,
            "user_id": data.get("user_id") or None,
            "health_conditions": data.get("health_conditions") or None,
            "id": str(uuid.uuid4()),
            "created_at": _now_iso(),
        }
        with self._lock:
            self._assessments[assessment["id"]] = assessment
        return assessment

    def get_assessment_by_user(self, user_id: str) -> dict | None:
        with self._lock:
            return next((a for a in self._assessments.values() if a["user_id"] == user_id), None)

    # ── Routines ──────────────────────────────────────────────────────────────

    def list_routines(self) -> list[dict]:
        with self._lock:
            return list(self._routines.values())

    def list_routines_by_difficulty(self, difficulty: str) -> list[dict]:
        return [r for r in self.list_routines() if r["difficulty"] == difficulty]

    def get_routine(self, routine_id: str) -> dict | None:
        return self._routines.get(routine_id)

    def create_routine(self, data: dict) -> dict:
        routine = {**data, "id": str(uuid.uuid4()), "created_at": _now_iso()}
        with self._lock:
            self._routines[routine["id"]] = routine
        return routine

    # ── Progress ──────────────────────────────────────────────────────────────

    def create_progress(self, data: dict, now: datetime | None = None) -> dict:
        row = {
            **data,
            "routine_id": data.get("routine_id") or None,
            "rating": data.get("rating") or None,
            "completed_poses": data.get("completed_poses"),
            "id": str(uuid.uuid4()),
            "completed_at": (now or datetime.now(timezone.utc)).isoformat(),
        }
        with self._lock:
            self._progress[row["id"]] = row
        return row

    def list_progress(self, user_id: str) -> list[dict]:
        with self._lock:
            return [p for p in self._progress.values() if p.get("user_id") == user_id]

    def list_progress_by_routine(self, user_id: str, routine_id: str) -> list[dict]:
        return [p for p in self.list_progress(user_id) if p.get("routine_id") == routine_id]

    # ── Pending signup codes ──────────────────────────────────────────────────

    def put_pending_code(
        self,
        username: str,
        email: str,
        code: str,
        expires_at: datetime,
        purpose: str = "signup",
        now: datetime | None = None,
    ) -> None:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            # one outstanding code per username: a new request replaces the old one
            stale = [
                k for k, entry in self._pending_codes.items()
                if k[0] == username or entry["expires_at"] < now
            ]
            for key in stale:
                del self._pending_codes[key]
            self._pending_codes[(username, email)] = {
                "code": code, "expires_at": expires_at, "purpose": purpose,
            }

    def get_pending_code(self, username: str, email: str) -> dict | None:
        return self._pending_codes.get((username, email))

    def delete_pending_code(self, username: str, email: str) -> None:
        with self._lock:
            self._pending_codes.pop((username, email), None)


@lru_cache(maxsize=1)
def get_store() -> MemoryStore:
    return MemoryStore()
