from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.modules.marketing_social.models import SocialAccount, SocialPost
from app.boaz.modules.marketing_social.publishers import publish_to

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.marketing_social.schemas import PostCreate, PostUpdate, SocialAccountCreate

METRIC_FIELDS = ("likes", "shares", "comments", "clicks", "reach", "impressions")


# ---------- Accounts ----------
def connect_account(s: "Session", payload: "SocialAccountCreate", user: "User | None") -> SocialAccount:
    exists = (
        s.query(SocialAccount.id)
        .filter(SocialAccount.platform == payload.platform, SocialAccount.account_id == payload.account_id.strip())
        .first()
    )
    if exists:
        raise ApiError("account_already_connected", 400)
    account = SocialAccount(
        platform=payload.platform,
        account_name=payload.account_name.strip(),
        account_id=payload.account_id.strip(),
        username=(payload.username or "").strip() or None,
        access_token=(payload.access_token or "").strip() or None,
        status=payload.status,
        connected_at=datetime.utcnow(),
        created_by_user_id=user.id if user else None,
    )
    s.add(account)
    s.flush()
    record_event(
        s,
        actor=user,
        action="social.account.connect",
        entity_type="SocialAccount",
        entity_id=str(account.id),
        metadata={"platform": account.platform, "account_name": account.account_name},
    )
    return account


# ---------- Posts ----------
def list_posts(
    s: "Session",
    *,
    status: str = "",
    platform: str = "",
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
) -> list[SocialPost]:
    query = s.query(SocialPost)
    if status:
        query = query.filter(SocialPost.status == status)
    if start:
        query = query.filter(SocialPost.created_at >= start)
    if end:
        query = query.filter(SocialPost.created_at <= end)
    posts = query.order_by(SocialPost.created_at.desc(), SocialPost.id.desc()).limit(limit).all()
    if platform:
        posts = [p for p in posts if platform in (p.platforms or [])]
    return posts


def create_post(s: "Session", payload: "PostCreate", user: "User | None") -> SocialPost:
    if payload.status == "scheduled" and not payload.scheduled_for:
        raise ApiError("scheduled_for_required", 400)
    now = datetime.utcnow()
    post = SocialPost(
        content=payload.content,
        platforms=sorted(set(payload.platforms)),
        account_ids=list(dict.fromkeys(payload.account_ids)),
        images=payload.images,
        link=(payload.link or "").strip() or None,
        hashtags=payload.hashtags,
        status=payload.status,
        scheduled_for=payload.scheduled_for,
        metrics={},
        platform_post_ids={},
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id if user else None,
    )
    s.add(post)
    s.flush()
    record_event(s, actor=user, action="social.post.create", entity_type="SocialPost", entity_id=str(post.id))
    return post


def update_post(s: "Session", post: SocialPost, payload: "PostUpdate", user: "User | None") -> SocialPost:
    if post.status == "published":
        raise ApiError("cannot_edit_published_post", 400)
    data = payload.model_dump(exclude_unset=True)
    for field, value in data.items():
        if value is None and field in ("content", "status", "platforms", "account_ids", "images", "hashtags"):
            continue
        if field == "platforms":
            value = sorted(set(value))
        elif field == "account_ids":
            value = list(dict.fromkeys(value))
        setattr(post, field, value)
    if post.status == "scheduled" and not post.scheduled_for:
        raise ApiError("scheduled_for_required", 400)
    post.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="social.post.edit", entity_type="SocialPost", entity_id=str(post.id),
        metadata={"fields": sorted(data)},
    )
    return post


def delete_post(s: "Session", post: SocialPost, user: "User | None") -> None:
    if post.status == "published":
        raise ApiError("cannot_delete_published_post", 400)
    record_event(s, actor=user, action="social.post.delete", entity_type="SocialPost", entity_id=str(post.id))
    s.delete(post)


def publish_post(s: "Session", post: SocialPost, user: "User | None") -> dict:
    """
    Publish to every selected account. Returns ``{post, results}``; the caller
    commits and turns an all-failed outcome into an error response.
    """
    ids = post.account_ids or []
    accounts = (
        s.query(SocialAccount).filter(SocialAccount.id.in_(ids), SocialAccount.status == "active").all() if ids else []
    )
    if not accounts:
        raise ApiError("no_accounts_found", 400)

    now = datetime.utcnow()
    results = []
    post_ids = dict(post.platform_post_ids or {})
    for account in accounts:
        result = publish_to(account, post)
        results.append(
            {
                "account_id": account.id,
                "platform": account.platform,
                "ok": result.ok,
                "post_id": result.post_id,
                "error": result.error,
            }
        )
        if result.ok:
            account.last_used_at = now
            if result.post_id:
                post_ids[account.platform] = result.post_id

    errors = [r["error"] for r in results if not r["ok"]]
    post.platform_post_ids = post_ids
    post.updated_at = now
    if not errors:
        post.status = "published"
        post.published_at = now
        post.error = None
    elif len(errors) == len(results):
        post.status = "failed"
        post.error = "; ".join(errors)
    else:
        post.status = "published"
        post.published_at = now
        post.error = "Partial failure: " + "; ".join(errors)
    record_event(
        s,
        actor=user,
        action="social.post.publish",
        entity_type="SocialPost",
        entity_id=str(post.id),
        metadata={"status": post.status, "failed": len(errors), "attempted": len(results)},
    )
    return {"post": post, "results": results}


def set_metrics(s: "Session", post: SocialPost, metrics: dict, user: "User | None") -> SocialPost:
    merged = dict(post.metrics or {})
    for platform, values in metrics.items():
        merged[platform] = {k: int(values.get(k) or 0) for k in METRIC_FIELDS}
    post.metrics = merged
    post.updated_at = datetime.utcnow()
    return post


def analytics(s: "Session", *, start: datetime | None = None, end: datetime | None = None) -> dict:
    query = s.query(SocialPost).filter(SocialPost.status == "published")
    if start:
        query = query.filter(SocialPost.published_at >= start)
    if end:
        query = query.filter(SocialPost.published_at <= end)
    totals = {k: 0 for k in METRIC_FIELDS}
    by_platform: dict[str, dict] = {}
    posts = query.all()
    for post in posts:
        for platform in post.platforms or []:
            row = by_platform.setdefault(platform, {"posts": 0, **{k: 0 for k in METRIC_FIELDS}})
            row["posts"] += 1
        for platform, values in (post.metrics or {}).items():
            row = by_platform.setdefault(platform, {"posts": 0, **{k: 0 for k in METRIC_FIELDS}})
            for k in METRIC_FIELDS:
                n = int((values or {}).get(k) or 0)
                row[k] += n
                totals[k] += n
    return {"total_posts": len(posts), "totals": totals, "by_platform": by_platform}
