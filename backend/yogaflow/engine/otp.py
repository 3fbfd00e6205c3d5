"""
Signup verification codes — pure functions, no DB access.
"""
import secrets
from datetime import datetime, timedelta

OTP_TTL = timedelta(minutes=10)

PURPOSE_SIGNUP = "signup"
PURPOSE_PASSWORD_CHANGE = "password-change"


def generate_code() -> str:
    """Six-digit numeric code, never starting with 0."""
    return str(100000 + secrets.randbelow(900000))


def expires_at(now: datetime) -> datetime:
    return now + OTP_TTL


def is_expired(entry: dict, now: datetime) -> bool:
    return now > entry["expires_at"]


def codes_match(expected: str, given: str) -> bool:
    return secrets.compare_digest(expected.encode(), (given or "").encode())
