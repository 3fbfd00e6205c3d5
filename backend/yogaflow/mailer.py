"""
Outgoing email over SMTP. Sending is disabled (logged no-op) when SMTP_HOST is unset.
"""
import html
import logging
import os
from email.message import EmailMessage

import aiosmtplib
from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)

BRAND = "YogaFlow"


class MailNotConfigured(RuntimeError):
    pass


def _settings() -> dict:
    user = os.getenv("SMTP_USER")
    return {
        "host": os.getenv("SMTP_HOST"),
        "port": int(os.getenv("SMTP_PORT") or 587),
        "user": user,
        "password": os.getenv("SMTP_PASS"),
        "sender": os.getenv("MAIL_FROM") or user or "no-reply@example.com",
    }


def mail_enabled() -> bool:
    return bool(os.getenv("SMTP_HOST"))


def build_message(to: str, subject: str, text: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = _settings()["sender"]
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text)
    msg.add_alternative(html_body, subtype="html")
    return msg


async def _send(msg: EmailMessage) -> None:
    cfg = _settings()
    await aiosmtplib.send(
        msg,
        hostname=cfg["host"],
        port=cfg["port"],
        username=cfg["user"] if cfg["user"] and cfg["password"] else None,
        password=cfg["password"] if cfg["user"] and cfg["password"] else None,
        use_tls=cfg["port"] == 465,
        timeout=10,
    )


async def _deliver(kind: str, to: str, msg: EmailMessage) -> bool:
    if not mail_enabled():
        logger.info("Mail disabled; skipping %s to %s", kind, to)
        return False
    logger.info("Sending %s to %s", kind, to)
    await _send(msg)
    logger.info("%s sent to %s", kind, to)
    return True


# ── Templates ─────────────────────────────────────────────────────────────────

def login_thanks_message(to: str, username: str) -> EmailMessage:
    name = html.escape(username)
    return build_message(
        to,
        f"Thanks for logging in to {BRAND}",
        f"Hi {username},\n\nThanks for logging in! Keep your wellness streak going, "
        f"your next routine awaits.\n\nNamaste,\n{BRAND}",
        f"<p>Hi <b>{name}</b>,</p><p>Thanks for logging in! Keep your wellness streak going, "
        f"your next routine awaits.</p><p>Namaste,<br/>{BRAND}</p>",
    )


def reminder_message(to: str, username: str) -> EmailMessage:
    name = html.escape(username)
    return build_message(
        to,
        f"Friendly reminder: Your {BRAND} routine",
        f"Hi {username},\n\nTake a mindful break and complete your routine today. "
        f"Your body and mind will thank you.\n\nNamaste,\n{BRAND}",
        f"<p>Hi <b>{name}</b>,</p><p>Take a mindful break and complete your routine today. "
        f"Your body and mind will thank you.</p><p>Namaste,<br/>{BRAND}</p>",
    )


def signup_code_message(to: str, username: str, code: str) -> EmailMessage:
    name = html.escape(username)
    return build_message(
        to,
        f"Your {BRAND} verification code",
        f"Hi {username},\n\nYour verification code is: {code}\nIt expires in 10 minutes.\n\n"
        "If you didn't request this, you can ignore this email.",
        f"<p>Hi <b>{name}</b>,</p><p>Your verification code is:</p>"
        f'<p style="font-size:20px;font-weight:700;letter-spacing:3px;">{code}</p>'
        "<p>This code expires in <b>10 minutes</b>.</p>"
        "<p>If you didn't request this, you can ignore this email.</p>",
    )


def completion_summary(
    routine_name: str | None,
    duration: int | None,
    streak: int | None,
    is_first_of_month: bool | None,
) -> str:
    """One-line summary, e.g. '🧘 Morning Flow  •  ⏱️ 15 min  •  🔥 Streak: 3'."""
    mins = round(duration / 60) if duration else None
    parts = [
        f"🧘 {routine_name}" if routine_name else None,
        f"⏱️ {mins} min" if mins else None,
        f"🔥 Streak: {streak}" if isinstance(streak, int) else None,
        "🌟 First of the month!" if is_first_of_month else None,
    ]
    return "  •  ".join(p for p in parts if p)


def routine_completion_message(
    to: str,
    username: str,
    routine_name: str | None = None,
    duration: int | None = None,
    streak: int | None = None,
    is_first_of_month: bool | None = None,
) -> EmailMessage:
    name = html.escape(username)
    subtitle = completion_summary(routine_name, duration, streak, is_first_of_month)
    text = f"Hey {username}!\n\nGreat job completing your routine today ✅\n"
    if subtitle:
        text += f"\n{subtitle}\n"
    text += f"\nKeep the momentum going, your body and mind thank you 🙏\n\n— {BRAND}"
    subtitle_html = (
        f'<p style="margin:12px 0; font-size:14px; color:#374151">{html.escape(subtitle)}</p>'
        if subtitle else ""
    )
    return build_message(
        to,
        f"🎉 Nice work, {username}! Routine complete",
        text,
        '<div style="font-family:system-ui,-apple-system,Segoe UI,Roboto,Helvetica,Arial,sans-serif;'
        'line-height:1.6;color:#111">'
        f"<h2>🎉 Nice work, {name}!</h2>"
        "<p>Great job completing your routine today <b>✅</b></p>"
        f"{subtitle_html}"
        "<p>Keep the momentum going, your body and mind thank you 🙏</p>"
        f'<p style="margin-top:20px;color:#6b7280">— {BRAND}</p>'
        "</div>",
    )


# ── Senders ───────────────────────────────────────────────────────────────────

async def send_login_thanks(to: str, username: str) -> bool:
    return await _deliver("login-thanks", to, login_thanks_message(to, username))


async def send_exercise_reminder(to: str, username: str) -> bool:
    return await _deliver("reminder", to, reminder_message(to, username))


async def send_signup_code(to: str, username: str, code: str) -> bool:
    return await _deliver("signup code", to, signup_code_message(to, username, code))


async def send_routine_completion(to: str, username: str, **info) -> bool:
    return await _deliver("routine-complete", to, routine_completion_message(to, username, **info))


async def send_test_email(to: str) -> None:
    if not mail_enabled():
        raise MailNotConfigured("SMTP not configured (missing SMTP_HOST)")
    await _send(build_message(
        to,
        f"{BRAND} test email",
        f"This is a test email from the {BRAND} server to verify SMTP settings.",
        f"<p>This is a <b>test email</b> from the {BRAND} server to verify SMTP settings.</p>",
    ))


async def verify_mail_config() -> dict:
    """Connect (and log in, when credentials are set) without sending anything."""
    cfg = _settings()
    if not cfg["host"]:
        return {"ok": False, "reason": "SMTP_HOST not set (email disabled)"}
    try:
        smtp = aiosmtplib.SMTP(hostname=cfg["host"], port=cfg["port"], use_tls=cfg["port"] == 465, timeout=10)
        async with smtp:
            if cfg["user"] and cfg["password"]:
                await smtp.login(cfg["user"], cfg["password"])
        return {"ok": True}
    except Exception as e:
        return {"ok": False, "reason": str(e) or type(e).__name__}


# ── Fire-and-forget ───────────────────────────────────────────────────────────

async def deliver_logged(label: str, sender, *args, **kwargs) -> None:
    """Await a sender and log its failure instead of propagating it."""
    try:
        await sender(*args, **kwargs)
    except Exception:
        logger.exception("%s failed", label)


def submit(background_tasks: BackgroundTasks, label: str, sender, *args, **kwargs) -> None:
    """Run a sender after the response has been sent; failures end up in the log."""
    background_tasks.add_task(deliver_logged, label, sender, *args, **kwargs)
