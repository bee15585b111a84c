from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.customer_success.schemas import SurveyResponseCreate
from app.boaz.modules.customer_success.service import account_health, create_survey_response, survey_status
from app.boaz.rbac import require_permission
from app.boaz.utils import arg_ids

bp = Blueprint("customer_success", __name__)


@bp.post("/surveys")
@require_permission("crm.edit")
def surveys_create():
    s = db_session()
    resp = create_survey_response(s, parse_body(SurveyResponseCreate), current_user())
    s.commit()
    return ok(resp.to_dict(), 201)


@bp.get("/surveys/status")
@require_permission("crm.view")
def surveys_status():
    rows = survey_status(db_session(), arg_ids("account_ids"))
    return ok({"items": list(rows.values())})


@bp.get("/health")
@require_permission("crm.view")
def health():
    return ok({"items": account_health(db_session(), arg_ids("account_ids"))})
