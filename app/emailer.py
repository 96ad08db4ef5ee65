# app/emailer.py
import logging

from fastapi.concurrency import run_in_threadpool
import resend

from .config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.RESEND_API_KEY


async def _send(params: dict) -> bool:
    """Best-effort delivery: failures are logged, never raised to the caller."""
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set; skipping email %r", params.get("subject"))
        return False
    try:
        # Emails.send is SYNC; run it in threadpool so we can await safely
        await run_in_threadpool(resend.Emails.send, params)
    except Exception:
        logger.exception("failed to send email %r", params.get("subject"))
        return False
    return True


async def send_otp_email(to_email: str, code: str) -> bool:
    return await _send({
        "from": settings.MAIL_FROM,
        "to": [to_email],
        "subject": "Your Rayyan sign-in code",
        "text": f"Your code is {code}. It expires in {settings.OTP_EXP_MINUTES} minutes.",
    })


async def send_password_reset_email(to_email: str, name: str | None, reset_url: str) -> bool:
    greeting = f"Assalamu alaikum {name}," if name else "Assalamu alaikum,"
    return await _send({
        "from": settings.MAIL_FROM,
        "to": [to_email],
        "subject": "Reset your Rayyan password",
        "text": (
            f"{greeting}\n\n"
            f"Use the link below to choose a new password. It expires in "
            f"{settings.PASSWORD_RESET_EXP_MINUTES} minutes.\n\n{reset_url}\n\n"
            "If you did not ask for this, you can ignore this email."
        ),
    })


async def send_welcome_email(to_email: str, name: str | None) -> bool:
    return await _send({
        "from": settings.MAIL_FROM,
        "to": [to_email],
        "subject": "Welcome to Rayyan",
        "text": f"Welcome{', ' + name if name else ''}! Your account is ready.",
    })
