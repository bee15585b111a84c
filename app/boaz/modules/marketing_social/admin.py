from __future__ import annotations

from flask import Blueprint

from app.boaz.api import ApiError, current_user, get_or_404, ok, parse_body
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.modules.marketing_social.models import SocialAccount, SocialPost
from app.boaz.modules.marketing_social.schemas import (
    PostCreate,
    PostMetricsUpdate,
    PostUpdate,
    SocialAccountCreate,
    SocialAccountUpdate,
)
from app.boaz.modules.marketing_social.service import (
    analytics,
    connect_account,
    create_post,
    delete_post,
    list_posts,
    publish_post,
    set_metrics,
    update_post,
)
from app.boaz.rbac import require_permission
from app.boaz.utils import arg_str, parse_datetime

bp = Blueprint("marketing_social", __name__)


def _arg_datetime(name: str):
    try:
        return parse_datetime(arg_str(name))
    except ValueError:
        raise ApiError(f"invalid_{name}", 400)


# ---------- Accounts ----------
@bp.get("/accounts")
@require_permission("marketing.view")
def accounts_list():
    s = db_session()
    items = s.query(SocialAccount).order_by(SocialAccount.platform.asc(), SocialAccount.account_name.asc()).all()
    return ok({"items": [a.to_dict() for a in items]})


@bp.post("/accounts")
@require_permission("marketing.edit")
def accounts_create():
    s = db_session()
    account = connect_account(s, parse_body(SocialAccountCreate), current_user())
    s.commit()
    return ok(account.to_dict(), 201)


@bp.put("/accounts/<int:account_id>")
@require_permission("marketing.edit")
def account_update(account_id: int):
    s = db_session()
    account = get_or_404(s, SocialAccount, account_id)
    data = parse_body(SocialAccountUpdate).model_dump(exclude_unset=True)
    if data.get("account_name"):
        account.account_name = data["account_name"].strip()
    if "username" in data:
        account.username = (data["username"] or "").strip() or None
    if "access_token" in data:
        account.access_token = (data["access_token"] or "").strip() or None
    if data.get("status"):
        account.status = data["status"]
    record_event(
        s, actor=current_user(), action="social.account.edit", entity_type="SocialAccount", entity_id=str(account.id),
        metadata={"fields": sorted(k for k in data if k != "access_token")},
    )
    s.commit()
    return ok(account.to_dict())


@bp.delete("/accounts/<int:account_id>")
@require_permission("marketing.edit")
def account_delete(account_id: int):
    s = db_session()
    account = get_or_404(s, SocialAccount, account_id)
    record_event(
        s, actor=current_user(), action="social.account.disconnect", entity_type="SocialAccount",
        entity_id=str(account.id), metadata={"platform": account.platform},
    )
    s.delete(account)
    s.commit()
    return ok({"ok": True})


# ---------- Posts ----------
@bp.get("/posts")
@require_permission("marketing.view")
def posts_list():
    items = list_posts(
        db_session(),
        status=arg_str("status"),
        platform=arg_str("platform"),
        start=_arg_datetime("start_date"),
        end=_arg_datetime("end_date"),
    )
    return ok({"items": [p.to_dict() for p in items]})


@bp.post("/posts")
@require_permission("marketing.edit")
def posts_create():
    s = db_session()
    post = create_post(s, parse_body(PostCreate), current_user())
    s.commit()
    return ok(post.to_dict(), 201)


@bp.get("/posts/<int:post_id>")
@require_permission("marketing.view")
def post_detail(post_id: int):
    return ok(get_or_404(db_session(), SocialPost, post_id).to_dict())


@bp.put("/posts/<int:post_id>")
@require_permission("marketing.edit")
def post_update(post_id: int):
    s = db_session()
    post = get_or_404(s, SocialPost, post_id)
    update_post(s, post, parse_body(PostUpdate), current_user())
    s.commit()
    return ok(post.to_dict())


@bp.delete("/posts/<int:post_id>")
@require_permission("marketing.edit")
def post_delete(post_id: int):
    s = db_session()
    delete_post(s, get_or_404(s, SocialPost, post_id), current_user())
    s.commit()
    return ok({"ok": True})


@bp.put("/posts/<int:post_id>/metrics")
@require_permission("marketing.edit")
def post_metrics(post_id: int):
    s = db_session()
    post = get_or_404(s, SocialPost, post_id)
    payload = parse_body(PostMetricsUpdate)
    set_metrics(s, post, {k: v.model_dump() for k, v in payload.metrics.items()}, current_user())
    s.commit()
    return ok(post.to_dict())


@bp.post("/publish/<int:post_id>")
@require_permission("marketing.edit")
def publish(post_id: int):
    s = db_session()
    post = get_or_404(s, SocialPost, post_id, "post_not_found")
    outcome = publish_post(s, post, current_user())
    s.commit()
    if post.status == "failed":
        raise ApiError("publish_failed", 400, {"message": post.error, "results": outcome["results"]})
    dispatch_event(s, "social.post.published", post.to_dict(), source="marketing_social")
    return ok({"post": post.to_dict(), "results": outcome["results"]})


@bp.get("/analytics")
@require_permission("marketing.view")
def analytics_view():
    return ok(analytics(db_session(), start=_arg_datetime("start_date"), end=_arg_datetime("end_date")))
