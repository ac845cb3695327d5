"""SMTP delivery for founder mail (rejection and snooze follow-ups)."""

from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText

from dealflow.config import Settings, get_settings

logger = logging.getLogger(__name__)


def send_founder_email(
    recipient: str,
    subject: str,
    body: str,
    settings: Settings | None = None,
) -> bool:
    """Send a plain-text email to a founder.

    Returns True on success, False on any failure (never raises).
    """
    if settings is None:
        settings = get_settings()

    if not recipient:
        logger.warning("email_send_skipped: no recipient")
        return False

    smtp_host = getattr(settings, "smtp_host", "")
    if not smtp_host:
        logger.warning("email_send_skipped: SMTP host not configured")
        return False

    msg = MIMEText(body, "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = getattr(settings, "smtp_from", "")
    msg["To"] = recipient

    try:
        with smtplib.SMTP(smtp_host, getattr(settings, "smtp_port", 587)) as server:
            server.starttls()
            smtp_user = getattr(settings, "smtp_user", "")
            if smtp_user:
                server.login(smtp_user, getattr(settings, "smtp_password", ""))
            server.sendmail(msg["From"], [recipient], msg.as_string())
        logger.info("email_sent: recipient=%s subject=%s", recipient, subject)
        return True
    except smtplib.SMTPAuthenticationError:
        logger.error("email_auth_failed: could not authenticate with SMTP server")
        return False
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("email_send_failed: %s", exc)
        return False
