from email.message import EmailMessage
from typing import Optional
import logging

import aiosmtplib

from app.config import settings

logger = logging.getLogger(__name__)


async def send_email_async(subject: str, email_to: str, body: str, html: Optional[str] = None):
    if not settings.MAIL_ENABLED:
        logger.info(f"Mail disabled, skipping '{subject}' to {email_to}")
        return

    message = EmailMessage()
    message["From"] = settings.MAIL_FROM
    message["To"] = email_to
    message["Subject"] = subject
    message.set_content(body)
    if html:
        message.add_alternative(html, subtype="html")

    await aiosmtplib.send(
        message,
        hostname=settings.MAIL_SERVER,
        port=settings.MAIL_PORT,
        username=settings.MAIL_USERNAME or None,
        password=settings.MAIL_PASSWORD or None,
        start_tls=settings.MAIL_STARTTLS,
    )
    logger.info(f"Email '{subject}' sent to {email_to}")


# ===========================
# TEMPLATES
# ===========================
async def send_password_reset_email(email_to: str, name: str, reset_link: str):
    body = (
        f"Hello, {name}!\n\n"
        "We received a request to reset the password of your Parsifal account.\n"
        f"Follow this link to choose a new password:\n{reset_link}\n\n"
        "The link is valid for 1 hour. If you did not request a reset, ignore this email."
    )
    html = (
        f"<h2>Hello, {name}!</h2>"
        "<p>We received a request to reset the password of your Parsifal account.</p>"
        f'<p><a href="{reset_link}">Reset password</a></p>'
        "<p>The link is valid for 1 hour. If you did not request a reset, ignore this email.</p>"
    )
    await send_email_async("Password reset", email_to, body, html)


async def send_welcome_email(email_to: str, name: str):
    body = (
        f"Welcome to Parsifal, {name}!\n\n"
        "Your account has been created. Find events nearby, invite friends and meet up.\n"
        f"{settings.FRONTEND_URL}"
    )
    html = (
        f"<h2>Welcome to Parsifal, {name}!</h2>"
        "<p>Your account has been created. Find events nearby, invite friends and meet up.</p>"
        f'<p><a href="{settings.FRONTEND_URL}">Open Parsifal</a></p>'
    )
    await send_email_async("Welcome to Parsifal", email_to, body, html)
