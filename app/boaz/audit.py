import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.boaz.models import AuditEvent, User


def _request_context() -> tuple[str | None, str | None]:
    """(request id, client ip) of the current request, if any."""
    if not has_request_context():
        return None, None
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return getattr(g, "request_id", None), forwarded or request.remote_addr


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Queue an append-only audit row on `s`; it is written with the caller's commit.

    `action` is a dotted verb such as ``ticket.create``. `metadata` is stored as
    sorted JSON, with non-JSON values stringified.
    """
    rid, client_ip = _request_context()
    ev = AuditEvent(
        request_id=request_id or rid,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=client_ip,
    )
    s.add(ev)
    return ev
