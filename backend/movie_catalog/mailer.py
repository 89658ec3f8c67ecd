"""
Outbound email over SMTP.

send_email is fire-and-forget: handlers queue it as a background task and a
delivery failure is logged, never reported back to the caller.
"""

import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Movie Database")


def build_message(to: str, subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f'"{MAIL_FROM_NAME}" <{SMTP_USER or "no-reply@localhost"}>'
    msg["To"] = to
    msg.set_content(body)
    return msg


def send_email(to: str, subject: str, body: str) -> bool:
    if not SMTP_HOST:
        logger.info("SMTP not configured, dropping email to %s: %s", to, subject)
        return False

    msg = build_message(to, subject, body)
    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as server:
            if SMTP_USE_TLS:
                server.starttls()
            if SMTP_USER and SMTP_PASS:
                server.login(SMTP_USER, SMTP_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email to %s", to)
        return False

    logger.info("Email sent to %s", to)
    return True
