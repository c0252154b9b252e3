"""
Account notification emails.

Sent as background tasks after the response, so delivery problems are
logged and never reach the client. Without SMTP_HOST configured the
messages are only logged.
"""

import logging
import smtplib
from email.message import EmailMessage
from taskmanager.core.config import settings

logger = logging.getLogger(__name__)


def _send(to: str, subject: str, body: str) -> None:
    if not settings.SMTP_HOST:
        logger.info(f"SMTP not configured; skipping email to {to}: {subject}")
        return

    message = EmailMessage()
    message["From"] = settings.EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as smtp:
            smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            smtp.send_message(message)
        logger.info(f"Sent email to {to}: {subject}")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to}: {str(e)}")


def send_welcome_email(email: str, name: str) -> None:
    _send(
        email,
        "Thanks for joining in!",
        f"Welcome to the app, {name}. Let me know how you get along with the app.",
    )


def send_goodbye_email(email: str, name: str) -> None:
    _send(
        email,
        "Sorry to see you go!",
        f"Goodbye, {name}. I hope to see you back sometime soon.",
    )
