from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, get_or_404, ok, parse_body
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.modules.integrations.models import ApiKey, Webhook, WebhookDelivery
from app.boaz.modules.integrations.schemas import ApiKeyCreate, WebhookCreate, WebhookUpdate
from app.boaz.modules.integrations.service import (
    SUPPORTED_EVENTS,
    create_api_key,
    create_webhook,
    dispatch_event,
    revoke_api_key,
    update_webhook,
)
from app.boaz.rbac import SUPERUSER, require_permission

bp = Blueprint("integrations", __name__)


@bp.get("/events")
@require_permission(SUPERUSER)
def events_list():
    return ok({"events": list(SUPPORTED_EVENTS)})


# ---------- Webhooks ----------
@bp.get("/webhooks")
@require_permission(SUPERUSER)
def webhooks_list():
    s = db_session()
    hooks = s.query(Webhook).order_by(Webhook.created_at.desc()).all()
    return ok({"items": [h.to_dict() for h in hooks]})


@bp.post("/webhooks")
@require_permission(SUPERUSER)
def webhooks_create():
    s = db_session()
    hook = create_webhook(s, parse_body(WebhookCreate), current_user())
    s.commit()
    return ok(hook.to_dict(), 201)


@bp.put("/webhooks/<int:webhook_id>")
@require_permission(SUPERUSER)
def webhook_update(webhook_id: int):
    s = db_session()
    hook = get_or_404(s, Webhook, webhook_id)
    update_webhook(s, hook, parse_body(WebhookUpdate), current_user())
    s.commit()
    return ok(hook.to_dict())


@bp.delete("/webhooks/<int:webhook_id>")
@require_permission(SUPERUSER)
def webhook_delete(webhook_id: int):
    s = db_session()
    hook = get_or_404(s, Webhook, webhook_id)
    record_event(
        s, actor=current_user(), action="webhook.delete", entity_type="Webhook", entity_id=str(hook.id),
        metadata={"name": hook.name},
    )
    s.delete(hook)
    s.commit()
    return ok({"ok": True})


@bp.post("/webhooks/<int:webhook_id>/test")
@require_permission(SUPERUSER)
def webhook_test(webhook_id: int):
    s = db_session()
    hook = get_or_404(s, Webhook, webhook_id)
    u = current_user()
    payload = {"message": "Hello from Boaz Integrations", "requested_by": u.email}
    attempted = dispatch_event(s, "test.ping", payload, only_webhook_id=hook.id, source="manual_test")
    s.refresh(hook)
    return ok({"ok": True, "attempted": attempted, "webhook": hook.to_dict()})


@bp.get("/webhooks/<int:webhook_id>/deliveries")
@require_permission(SUPERUSER)
def webhook_deliveries(webhook_id: int):
    s = db_session()
    hook = get_or_404(s, Webhook, webhook_id)
    rows = (
        s.query(WebhookDelivery)
        .filter(WebhookDelivery.webhook_id == hook.id)
        .order_by(WebhookDelivery.created_at.desc())
        .limit(100)
        .all()
    )
    return ok({"items": [d.to_dict() for d in rows]})


# ---------- API keys ----------
@bp.get("/api-keys")
@require_permission(SUPERUSER)
def api_keys_list():
    s = db_session()
    keys = s.query(ApiKey).filter(ApiKey.revoked_at.is_(None)).order_by(ApiKey.created_at.desc()).all()
    return ok({"items": [k.to_dict() for k in keys]})


@bp.post("/api-keys")
@require_permission(SUPERUSER)
def api_keys_create():
    s = db_session()
    key, full = create_api_key(s, parse_body(ApiKeyCreate), current_user())
    s.commit()
    data = key.to_dict()
    data["api_key"] = full  # only returned once
    return ok(data, 201)


@bp.delete("/api-keys/<int:key_id>")
@require_permission(SUPERUSER)
def api_key_revoke(key_id: int):
    s = db_session()
    key = get_or_404(s, ApiKey, key_id)
    revoke_api_key(s, key, current_user())
    s.commit()
    return ok({"ok": True})
