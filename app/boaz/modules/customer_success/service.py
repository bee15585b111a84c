"""
Account health scoring.

Each account's risk score (0-100, higher is worse) is the sum of four
capped contributions: the latest survey score, open support tickets,
asset/license risk and StratFlow projects in trouble.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.modules.accounts.models import Account
from app.boaz.modules.assets.service import asset_risk_by_customer
from app.boaz.modules.customer_success.models import SurveyResponse
from app.boaz.modules.stratflow.service import projects_by_account
from app.boaz.modules.support.service import tickets_by_account

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.customer_success.schemas import SurveyResponseCreate

SCORE_CAP = 100
HIGH_THRESHOLD = 70
MEDIUM_THRESHOLD = 35
ASSET_WEIGHT = 0.4

# last survey score ceiling -> points
SURVEY_POINTS = ((6, 35), (7.5, 20), (8.5, 10))


def create_survey_response(s: "Session", payload: "SurveyResponseCreate", user: "User | None") -> SurveyResponse:
    if s.get(Account, payload.account_id) is None:
        raise ApiError("account_not_found", 404)
    resp = SurveyResponse(
        account_id=payload.account_id,
        score=payload.score,
        comment=(payload.comment or "").strip() or None,
        created_at=datetime.utcnow(),
    )
    s.add(resp)
    s.flush()
    record_event(
        s,
        actor=user,
        action="survey.response",
        entity_type="SurveyResponse",
        entity_id=str(resp.id),
        metadata={"account_id": resp.account_id, "score": resp.score},
    )
    return resp


def survey_status(s: "Session", account_ids: list[int] | None = None) -> dict[int, dict]:
    """Per account: response count, latest score and when it was given."""
    query = s.query(SurveyResponse)
    if account_ids:
        query = query.filter(SurveyResponse.account_id.in_(account_ids))
    out: dict[int, dict] = {}
    for r in query.order_by(SurveyResponse.created_at.asc(), SurveyResponse.id.asc()).all():
        row = out.setdefault(r.account_id, {"account_id": r.account_id, "response_count": 0})
        row["response_count"] += 1
        row["last_score"] = r.score
        row["last_at"] = r.created_at.isoformat()
    return out


def survey_points(last_score: float | None) -> int:
    if last_score is None:
        return 0
    for ceiling, points in SURVEY_POINTS:
        if last_score <= ceiling:
            return points
    return 0


def ticket_points(open_count: int, high: int, breached: int) -> int:
    return min(open_count * 4, 24) + min(high * 6, 18) + min(breached * 10, 30)


def project_points(troubled: int) -> int:
    return min(30, 10 * troubled)


def label_for(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return "High"
    if score >= MEDIUM_THRESHOLD:
        return "Medium"
    return "Low"


def account_health(s: "Session", account_ids: list[int] | None = None) -> list[dict]:
    query = s.query(Account.id, Account.name)
    if account_ids:
        query = query.filter(Account.id.in_(account_ids))
    accounts = query.all()
    ids = [a.id for a in accounts]
    if not ids:
        return []

    surveys = survey_status(s, ids)
    tickets = {r["account_id"]: r for r in tickets_by_account(s, ids)}
    assets = asset_risk_by_customer(s, ids)
    projects = {r["account_id"]: r for r in projects_by_account(s, ids)}

    results = []
    for acc_id, name in accounts:
        reasons = []
        score = 0

        survey = surveys.get(acc_id)
        pts = survey_points(survey["last_score"] if survey else None)
        if pts:
            score += pts
            reasons.append(f"Last survey score {survey['last_score']}/10 (+{pts})")

        t = tickets.get(acc_id)
        if t:
            pts = ticket_points(t["open"], t["high"], t["breached"])
            if pts:
                score += pts
                reasons.append(
                    f"{t['open']} open tickets, {t['high']} high priority, {t['breached']} SLA breached (+{pts})"
                )

        a = assets.get(acc_id)
        if a and a["score"]:
            pts = round(ASSET_WEIGHT * a["score"])
            score += pts
            reasons.append(
                f"Asset risk {a['score']}: {a['expired']} expired, "
                f"{a['expiring_30'] + a['expiring_60'] + a['expiring_90']} expiring licenses (+{pts})"
            )

        p = projects.get(acc_id)
        troubled = (p["at_risk"] + p["off_track"]) if p else 0
        if troubled:
            pts = project_points(troubled)
            score += pts
            reasons.append(f"{troubled} projects at risk or off track (+{pts})")

        score = min(SCORE_CAP, score)
        results.append(
            {
                "account_id": acc_id,
                "account_name": name,
                "score": score,
                "label": label_for(score),
                "reasons": reasons,
                "survey": survey,
                "tickets": t,
                "assets": a,
                "projects": p,
            }
        )
    results.sort(key=lambda r: (-r["score"], r["account_id"]))
    return results
