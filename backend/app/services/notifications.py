# outbound email — smtp sender for one-time codes
# sending is blocking smtplib, so it runs in a worker thread

import asyncio
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """raised when the smtp server rejects or cannot be reached"""


def _build_message(to: str, subject: str, body_text: str, body_html: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(body_text)
    if body_html:
        msg.add_alternative(body_html, subtype="html")
    return msg


def _send_via_smtp(msg: EmailMessage) -> None:
    context = ssl.create_default_context()
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
        if settings.SMTP_USE_TLS:
            server.starttls(context=context)
        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)


async def send_email(to: str, subject: str, body_text: str, body_html: Optional[str] = None) -> None:
    """send an email, or just log it when EMAIL_ENABLED is off"""
    if not settings.EMAIL_ENABLED:
        logger.info(f"Email disabled, not sending '{subject}' to {to}")
        return

    msg = _build_message(to, subject, body_text, body_html)
    try:
        await asyncio.to_thread(_send_via_smtp, msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning(f"Email sending to {to} failed: {e}")
        raise EmailDeliveryError("Failed to send email") from e
    logger.info(f"Email sent to {to}")


async def send_otp_email(to: str, code: str, purpose: str) -> None:
    if purpose == "reset_password":
        subject = "Your HEP2GO password reset code"
        intro = "Use this code to reset your password"
    else:
        subject = "Your HEP2GO verification code"
        intro = "Use this code to finish creating your account"
    minutes = settings.OTP_EXPIRE_MINUTES
    text = f"{intro}: {code}\nIt expires in {minutes} minutes."
    html = f"<p>{intro}:</p><h2>{code}</h2><p>It expires in {minutes} minutes.</p>"
    await send_email(to, subject, text, html)
