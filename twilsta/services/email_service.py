"""Transactional email: verification and password reset links."""
import hashlib
import logging
from email.message import EmailMessage

import aiosmtplib

from twilsta.core.config import settings

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    return hashlib.sha256(email.lower().encode("utf-8")).hexdigest()[:12]


async def _send_email(to_email: str, subject: str, body_html: str) -> bool:
    """Send an email using configured SMTP settings. Never raises."""
    if not settings.SMTP_HOST:
        logger.warning("SMTP not configured, skipping email to %s", mask_email(to_email))
        return False

    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM_EMAIL
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body_html, subtype="html")

    # STARTTLS on 587, implicit TLS on 465
    start_tls = settings.SMTP_TLS and settings.SMTP_PORT == 587
    use_tls = settings.SMTP_TLS and settings.SMTP_PORT == 465
    try:
        await aiosmtplib.send(
            msg,
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            start_tls=start_tls,
            use_tls=use_tls,
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        logger.error("Failed to send email to %s: %s", mask_email(to_email), exc)
        return False
    logger.info("Email sent to %s", mask_email(to_email))
    return True


async def send_verification_email(email: str, username: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?token={token}"
    body = f"""
    <html>
        <body>
            <p>Hi {username},</p>
            <p>Welcome to {settings.APP_NAME}. Confirm your email address:</p>
            <p><a href="{link}">Verify email</a></p>
            <p>This link expires in {settings.VERIFICATION_TOKEN_TTL_HOURS} hours.</p>
        </body>
    </html>
    """
    return await _send_email(email, "Verify your email", body)


async def send_password_reset_email(email: str, username: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
    body = f"""
    <html>
        <body>
            <p>Hi {username},</p>
            <p>You requested a password reset. Click the link below to choose a new password:</p>
            <p><a href="{link}">Reset password</a></p>
            <p>If you did not request this, please ignore this email.</p>
        </body>
    </html>
    """
    return await _send_email(email, "Reset your password", body)
