"""Unauthenticated signing endpoints reached from the emailed invite link."""
from __future__ import annotations

from flask import Blueprint, request

from app.boaz.api import ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.contracts.models import Contract
from app.boaz.modules.contracts.schemas import SignSubmit
from app.boaz.modules.contracts.service import resolve_invite, sign_contract
from app.boaz.modules.integrations.service import dispatch_event

bp = Blueprint("contracts_public", __name__)


@bp.get("/<token>")
def sign_view(token: str):
    s = db_session()
    invite = resolve_invite(s, token)
    contract = s.get(Contract, invite.contract_id)
    return ok(
        {
            "contract": contract.to_dict(public=True) if contract else None,
            "invite": {k: v for k, v in invite.to_dict().items() if k in ("role", "email", "name", "title", "expires_at")},
        }
    )


@bp.post("/<token>")
def sign_submit(token: str):
    s = db_session()
    invite = resolve_invite(s, token)
    payload = parse_body(SignSubmit)
    contract, fully_executed = sign_contract(
        s,
        invite,
        payload,
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=request.headers.get("User-Agent"),
    )
    s.commit()
    event = {"contract_id": contract.id, "contract_number": contract.contract_number, "role": invite.role}
    dispatch_event(s, "contract.signed", event, source="contracts")
    if fully_executed:
        dispatch_event(s, "contract.executed", contract.to_dict(public=True), source="contracts")
    return ok({"ok": True, "fully_executed": fully_executed, "status": contract.status})
