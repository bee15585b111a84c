from __future__ import annotations

import hashlib
import hmac
import json
import logging
import secrets
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.boaz.audit import record_event
from app.boaz.modules.integrations.models import ApiKey, Webhook, WebhookDelivery
from app.boaz.modules.integrations.webhook_client import WebhookClient, WebhookError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.integrations.schemas import ApiKeyCreate, WebhookCreate, WebhookUpdate

logger = logging.getLogger(__name__)

API_KEY_PREFIX = "boaz_sk_"
RESPONSE_TEXT_LIMIT = 2000

SUPPORTED_EVENTS = (
    "support.ticket.created",
    "support.ticket.updated",
    "contract.signed",
    "contract.executed",
    "approval.decided",
    "accounting.expense.paid",
    "stratflow.issue.created",
    "social.post.published",
    "task.completed",
    "test.ping",
)


# ---------- Webhooks ----------
def create_webhook(s: "Session", payload: "WebhookCreate", user: "User | None") -> Webhook:
    now = datetime.utcnow()
    hook = Webhook(
        name=payload.name.strip(),
        url=payload.url,
        secret=(payload.secret or "").strip() or None,
        events=payload.events or ["*"],
        is_active=payload.is_active,
        created_at=now,
        updated_at=now,
    )
    s.add(hook)
    s.flush()
    record_event(
        s,
        actor=user,
        action="webhook.create",
        entity_type="Webhook",
        entity_id=str(hook.id),
        metadata={"name": hook.name, "url": hook.url, "events": hook.events},
    )
    return hook


def update_webhook(s: "Session", hook: Webhook, payload: "WebhookUpdate", user: "User | None") -> Webhook:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        hook.name = data["name"].strip()
    if data.get("url"):
        hook.url = data["url"]
    if data.get("is_active") is not None:
        hook.is_active = bool(data["is_active"])
    if data.get("events") is not None:
        hook.events = data["events"] or ["*"]
    if "secret" in data:
        hook.secret = (data["secret"] or "").strip() or None
    hook.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="webhook.edit",
        entity_type="Webhook",
        entity_id=str(hook.id),
        metadata={"fields": sorted(k for k in data if k != "secret")},
    )
    return hook


def compute_signature(secret: str, timestamp: str, body: str) -> str:
    """v1=<hex(hmac_sha256(secret, "<timestamp>.<body>"))>"""
    mac = hmac.new(secret.encode("utf-8"), f"{timestamp}.{body}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"v1={mac}"


def _client() -> WebhookClient:
    return WebhookClient(timeout_seconds=int(current_app.config.get("WEBHOOK_TIMEOUT_SECONDS") or 10))


def dispatch_event(
    s: "Session",
    event_type: str,
    data: Any,
    *,
    only_webhook_id: int | None = None,
    source: str | None = None,
) -> int:
    """
    Deliver an event envelope to every active webhook subscribed to it.

    Best-effort: delivery and bookkeeping failures are logged, never raised.
    Commits its own delivery records. Returns the number of attempted deliveries.
    """
    if not current_app.config.get("WEBHOOKS_ENABLED", True):
        return 0
    attempted = 0
    try:
        query = s.query(Webhook).filter(Webhook.is_active.is_(True))
        if only_webhook_id is not None:
            query = query.filter(Webhook.id == only_webhook_id)
        hooks = [h for h in query.all() if h.subscribed_to(event_type)]
        if not hooks:
            return 0

        now = datetime.utcnow()
        timestamp = str(int(time.time()))
        client = _client()
        for hook in hooks:
            delivery_id = f"wh_{secrets.token_hex(10)}"
            body = json.dumps(
                {"type": event_type, "occurred_at": now.isoformat() + "Z", "delivery_id": delivery_id, "data": data},
                default=str,
            )
            headers = {
                "X-Boaz-Event": event_type,
                "X-Boaz-Delivery": delivery_id,
                "X-Boaz-Timestamp": timestamp,
            }
            if hook.secret:
                headers["X-Boaz-Signature"] = compute_signature(hook.secret, timestamp, body)

            started = time.monotonic()
            ok = False
            status: int | None = None
            text: str | None = None
            err: str | None = None
            try:
                resp = client.post(hook.url, body.encode("utf-8"), headers)
                status, text, ok = resp.status, resp.text, resp.ok
            except WebhookError as e:
                err = str(e)[:512]
            duration_ms = int((time.monotonic() - started) * 1000)
            attempted += 1
            if not ok:
                logger.warning(
                    "Webhook delivery failed hook=%s event=%s status=%s error=%s", hook.id, event_type, status, err
                )

            s.add(
                WebhookDelivery(
                    id=delivery_id,
                    webhook_id=hook.id,
                    webhook_name=hook.name,
                    url=hook.url,
                    event_type=event_type,
                    source=source,
                    ok=ok,
                    status=status,
                    duration_ms=duration_ms,
                    response_text=text[:RESPONSE_TEXT_LIMIT] if text else None,
                    error=err,
                    created_at=datetime.utcnow(),
                )
            )
            hook.last_delivery_at = datetime.utcnow()
            hook.last_delivery_ok = ok
            hook.last_delivery_status = status
            hook.last_delivery_error = err
        s.commit()
    except SQLAlchemyError as e:
        s.rollback()
        logger.warning("Failed to record webhook deliveries for %s: %s", event_type, e)
    return attempted


# ---------- API keys ----------
def hash_api_key(full: str) -> str:
    return hashlib.sha256(full.encode("utf-8")).hexdigest()


def make_api_key() -> tuple[str, str, str]:
    """Returns (full key, sha256 hash, display prefix)."""
    full = API_KEY_PREFIX + secrets.token_urlsafe(32)
    return full, hash_api_key(full), full[:12]


def create_api_key(s: "Session", payload: "ApiKeyCreate", user: "User") -> tuple[ApiKey, str]:
    full, digest, prefix = make_api_key()
    key = ApiKey(
        name=payload.name.strip(),
        prefix=prefix,
        hash=digest,
        scopes=payload.scopes or ["*"],
        created_at=datetime.utcnow(),
        created_by_user_id=user.id,
        created_by_email=user.email,
    )
    s.add(key)
    s.flush()
    record_event(
        s,
        actor=user,
        action="api_key.create",
        entity_type="ApiKey",
        entity_id=str(key.id),
        metadata={"name": key.name, "prefix": prefix, "scopes": key.scopes},
    )
    return key, full


def revoke_api_key(s: "Session", key: ApiKey, user: "User | None") -> None:
    if key.revoked_at is None:
        key.revoked_at = datetime.utcnow()
    record_event(s, actor=user, action="api_key.revoke", entity_type="ApiKey", entity_id=str(key.id))


def resolve_api_key(s: "Session", raw: str) -> ApiKey | None:
    """Look up an unrevoked key by its hash; stamps last_used_at best-effort."""
    if not raw.startswith(API_KEY_PREFIX):
        return None
    key = s.query(ApiKey).filter(ApiKey.hash == hash_api_key(raw)).one_or_none()
    if key is None or key.revoked_at is not None:
        return None
    try:
        key.last_used_at = datetime.utcnow()
        s.commit()
    except SQLAlchemyError as e:
        s.rollback()
        logger.warning("Failed to stamp api key last_used_at (id=%s): %s", key.id, e)
    return key
