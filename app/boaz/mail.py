from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from flask import current_app

logger = logging.getLogger(__name__)


def mail_configured() -> bool:
    return bool(current_app.config.get("SMTP_HOST"))


def send_mail(to: str | list[str], subject: str, text: str, html: str | None = None) -> bool:
    """
    Best-effort outbound email. Returns True when the message was handed to SMTP.

    Never raises: callers treat email as a side effect of the primary request.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    recipients = [r.strip() for r in recipients if r and r.strip()]
    if not recipients:
        return False

    if not mail_configured():
        logger.info("SMTP not configured; skipping email subject=%r to=%s", subject, ",".join(recipients))
        return False

    cfg = current_app.config
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = cfg.get("SMTP_FROM") or "no-reply@boaz.local"
    msg["To"] = ", ".join(recipients)
    msg.set_content(text)
    if html:
        msg.add_alternative(html, subtype="html")

    try:
        with smtplib.SMTP(cfg["SMTP_HOST"], int(cfg.get("SMTP_PORT") or 587), timeout=15) as smtp:
            smtp.ehlo()
            if smtp.has_extn("starttls"):
                smtp.starttls()
                smtp.ehlo()
            if cfg.get("SMTP_USER"):
                smtp.login(cfg["SMTP_USER"], cfg.get("SMTP_PASSWORD") or "")
            smtp.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("Email send failed (subject=%r to=%s): %s", subject, ",".join(recipients), e)
        return False
