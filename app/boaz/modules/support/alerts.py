"""SLA alert sweep: emails about tickets that breached or are about to breach SLA."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.boaz.mail import send_mail
from app.boaz.modules.support.models import SupportTicket
from app.boaz.modules.support.service import ACTIVE_STATUSES

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 200


def find_alert_candidates(
    s: "Session", *, within_min: int, cooldown_min: int, now: datetime
) -> list[SupportTicket]:
    until = now + timedelta(minutes=within_min)
    cooldown_since = now - timedelta(minutes=cooldown_min)
    return (
        s.query(SupportTicket)
        .filter(
            SupportTicket.status.in_(ACTIVE_STATUSES),
            SupportTicket.sla_due_at.isnot(None),
            SupportTicket.sla_due_at <= until,
            or_(SupportTicket.last_sla_alert_at.is_(None), SupportTicket.last_sla_alert_at < cooldown_since),
        )
        .order_by(SupportTicket.sla_due_at.asc())
        .limit(CANDIDATE_LIMIT)
        .all()
    )


def alert_subject(t: SupportTicket, now: datetime) -> str:
    prefix = "SLA BREACHED" if t.sla_due_at and t.sla_due_at < now else "SLA Due Soon"
    return f"{prefix}: Ticket #{t.ticket_number} {t.short_description or ''}".rstrip()


def alert_body(t: SupportTicket) -> str:
    due = t.sla_due_at.strftime("%Y-%m-%d %H:%M UTC") if t.sla_due_at else "N/A"
    return (
        f"Ticket #{t.ticket_number}\n"
        f"Status: {t.status}\n"
        f"Priority: {t.priority}\n"
        f"Assignee: {t.assignee or '-'}\n"
        f"SLA Due: {due}\n\n"
        f"{t.description or ''}"
    )


def run_sla_alerts(s: "Session", config: dict, now: datetime | None = None) -> dict:
    """
    Email every candidate ticket once per cooldown window.

    A ticket is stamped with last_sla_alert_at only when its email went out,
    so tickets skipped by a mail outage are picked up by the next run.
    """
    now = now or datetime.utcnow()
    within_min = int(config.get("SLA_ALERT_WITHIN_MIN") or 60)
    cooldown_min = int(config.get("SLA_ALERT_COOLDOWN_MIN") or 360)
    candidates = find_alert_candidates(s, within_min=within_min, cooldown_min=cooldown_min, now=now)

    to = config.get("ALERT_TO") or config.get("SMTP_USER")
    sent = 0
    if not to:
        logger.info("SLA alerts: no ALERT_TO/SMTP_USER recipient configured; %s candidates skipped", len(candidates))
        return {"sent": 0, "candidates": len(candidates)}

    for t in candidates:
        if send_mail(to, alert_subject(t, now), alert_body(t)):
            t.last_sla_alert_at = now
            sent += 1
    logger.info("SLA alerts: sent=%s candidates=%s", sent, len(candidates))
    return {"sent": sent, "candidates": len(candidates)}
