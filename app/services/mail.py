import asyncio
import smtplib
from email.message import EmailMessage
from html import escape

import structlog

from app.core.config import settings

logger = structlog.get_logger()


def _send(to: str, subject: str, html: str) -> None:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to
    msg.set_content(html, subtype="html")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=15) as server:
        server.starttls()
        if settings.SMTP_USER:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)


async def send_email(to: str, subject: str, html: str) -> bool:
    """Send an HTML email over SMTP. Returns False instead of raising."""
    if not settings.SMTP_HOST:
        logger.warning("email_not_configured", to=to, subject=subject)
        return False
    try:
        await asyncio.to_thread(_send, to, subject, html)
    except (OSError, smtplib.SMTPException) as e:
        logger.warning("email_failed", to=to, subject=subject, error=str(e))
        return False
    logger.info("email_sent", to=to, subject=subject)
    return True


async def send_verification_email(to: str, name: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/verify-email?token={token}"
    html = (
        f"<p>Hello {escape(name)},</p>"
        f"<p>Please verify your Khidmap account by clicking the link below:</p>"
        f'<p><a href="{link}">Verify email</a></p>'
    )
    return await send_email(to, "Verify your Khidmap account", html)


async def send_password_reset_email(to: str, name: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    html = (
        f"<p>Hello {escape(name)},</p>"
        f"<p>Use the link below to reset your password. It expires in "
        f"{settings.RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>"
        f'<p><a href="{link}">Reset password</a></p>'
        f"<p>If you did not request this, you can ignore this email.</p>"
    )
    return await send_email(to, "Reset your Khidmap password", html)
