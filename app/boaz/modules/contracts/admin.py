from __future__ import annotations

from flask import Blueprint, request

from app.boaz.api import ApiError, current_user, get_or_404, ok, parse_body
from app.boaz.audit import record_event
from app.boaz.db import db_session
from app.boaz.models import Attachment
from app.boaz.modules.contracts.models import Contract, ContractTemplate, SignatureInvite
from app.boaz.modules.contracts.schemas import (
    ContractCreate,
    ContractUpdate,
    InviteCreate,
    TemplateCreate,
    TemplateUpdate,
)
from app.boaz.modules.contracts.service import (
    cancel_invite,
    contracts_by_account,
    create_contract,
    create_invite,
    create_template,
    list_contracts,
    send_invite_email,
    signing_url,
    update_contract,
    update_template,
)
from app.boaz.rbac import require_permission
from app.boaz.storage import list_attachments, send_attachment, store_upload
from app.boaz.utils import arg_ids, arg_int, arg_str

bp = Blueprint("contracts", __name__)


# ---------- Contracts ----------
@bp.get("/contracts")
@require_permission("contracts.view")
def contracts_list():
    items = list_contracts(
        db_session(), q=arg_str("q"), account_id=arg_int("account_id"), status=arg_str("status")
    )
    return ok({"items": [c.to_dict() for c in items]})


@bp.post("/contracts")
@require_permission("contracts.edit")
def contracts_create():
    s = db_session()
    contract = create_contract(s, parse_body(ContractCreate), current_user())
    s.commit()
    return ok(contract.to_dict(), 201)


@bp.get("/contracts/by-account")
@require_permission("contracts.view")
def contracts_by_account_view():
    return ok({"items": contracts_by_account(db_session(), arg_ids("account_ids"))})


@bp.get("/contracts/<int:contract_id>")
@require_permission("contracts.view")
def contract_detail(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    data = contract.to_dict()
    data["attachments"] = [a.to_dict() for a in list_attachments(s, "contract", contract.id)]
    return ok(data)


@bp.put("/contracts/<int:contract_id>")
@require_permission("contracts.edit")
def contract_update(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    update_contract(s, contract, parse_body(ContractUpdate), current_user())
    s.commit()
    return ok(contract.to_dict())


@bp.delete("/contracts/<int:contract_id>")
@require_permission("contracts.edit")
def contract_delete(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    record_event(
        s, actor=current_user(), action="contract.delete", entity_type="Contract", entity_id=str(contract.id),
        metadata={"contract_number": contract.contract_number},
    )
    s.delete(contract)
    s.commit()
    return ok({"ok": True})


# ---------- Invites ----------
@bp.get("/contracts/<int:contract_id>/invites")
@require_permission("contracts.view")
def invites_list(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    items = (
        s.query(SignatureInvite)
        .filter(SignatureInvite.contract_id == contract.id)
        .order_by(SignatureInvite.created_at.desc())
        .all()
    )
    return ok({"items": [i.to_dict() for i in items]})


@bp.post("/contracts/<int:contract_id>/invites")
@require_permission("contracts.edit")
def invites_create(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    invite = create_invite(s, contract, parse_body(InviteCreate), current_user())
    s.commit()
    emailed = send_invite_email(contract, invite)
    return ok({**invite.to_dict(), "signing_url": signing_url(invite.token), "emailed": emailed}, 201)


@bp.post("/contracts/<int:contract_id>/invites/<int:invite_id>/cancel")
@require_permission("contracts.edit")
def invite_cancel(contract_id: int, invite_id: int):
    s = db_session()
    invite = s.get(SignatureInvite, invite_id)
    if invite is None or invite.contract_id != contract_id:
        raise ApiError("not_found", 404)
    cancel_invite(s, invite, current_user())
    s.commit()
    return ok(invite.to_dict())


# ---------- Attachments ----------
@bp.get("/contracts/<int:contract_id>/attachments")
@require_permission("contracts.view")
def contract_attachments(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    return ok({"items": [a.to_dict() for a in list_attachments(s, "contract", contract.id)]})


@bp.post("/contracts/<int:contract_id>/attachments")
@require_permission("contracts.edit")
def contract_attachment_upload(contract_id: int):
    s = db_session()
    contract = get_or_404(s, Contract, contract_id)
    f = request.files.get("file")
    if not f or not f.filename:
        raise ApiError("file_required", 400)
    att = store_upload(s, entity_type="contract", entity_id=contract.id, upload=f, user=current_user())
    s.commit()
    return ok(att.to_dict(), 201)


@bp.get("/contracts/<int:contract_id>/attachments/<int:attachment_id>/download")
@require_permission("contracts.view")
def contract_attachment_download(contract_id: int, attachment_id: int):
    att = db_session().get(Attachment, attachment_id)
    if not att or att.entity_type != "contract" or att.entity_id != contract_id:
        raise ApiError("not_found", 404)
    return send_attachment(att)


# ---------- Templates ----------
@bp.get("/contract-templates")
@require_permission("contracts.view")
def templates_list():
    s = db_session()
    items = s.query(ContractTemplate).order_by(ContractTemplate.name.asc()).all()
    return ok({"items": [t.to_dict() for t in items]})


@bp.post("/contract-templates")
@require_permission("contracts.edit")
def templates_create():
    s = db_session()
    template = create_template(s, parse_body(TemplateCreate), current_user())
    s.commit()
    return ok(template.to_dict(), 201)


@bp.get("/contract-templates/<int:template_id>")
@require_permission("contracts.view")
def template_detail(template_id: int):
    return ok(get_or_404(db_session(), ContractTemplate, template_id).to_dict())


@bp.put("/contract-templates/<int:template_id>")
@require_permission("contracts.edit")
def template_update(template_id: int):
    s = db_session()
    template = get_or_404(s, ContractTemplate, template_id)
    update_template(s, template, parse_body(TemplateUpdate), current_user())
    s.commit()
    return ok(template.to_dict())


@bp.delete("/contract-templates/<int:template_id>")
@require_permission("contracts.edit")
def template_delete(template_id: int):
    s = db_session()
    template = get_or_404(s, ContractTemplate, template_id)
    record_event(
        s, actor=current_user(), action="contract_template.delete", entity_type="ContractTemplate",
        entity_id=str(template.id), metadata={"key": template.key},
    )
    s.delete(template)
    s.commit()
    return ok({"ok": True})
