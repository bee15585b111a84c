from __future__ import annotations

from flask import Blueprint

from app.boaz.api import current_user, get_or_404, ok, parse_body
from app.boaz.db import db_session
from app.boaz.modules.accounts.models import Account
from app.boaz.modules.accounts.schemas import AccountCreate, AccountUpdate
from app.boaz.modules.accounts.service import create_account, delete_account, list_accounts, update_account
from app.boaz.rbac import require_permission
from app.boaz.utils import arg_str, sort_dir_desc

bp = Blueprint("accounts", __name__)


@bp.get("")
@require_permission("crm.view")
def accounts_list():
    s = db_session()
    items = list_accounts(s, q=arg_str("q"), sort=arg_str("sort"), desc=sort_dir_desc())
    return ok({"items": [a.to_dict() for a in items]})


@bp.post("")
@require_permission("crm.edit")
def accounts_create():
    s = db_session()
    payload = parse_body(AccountCreate)
    account = create_account(s, payload, current_user())
    s.commit()
    return ok(account.to_dict(), 201)


@bp.get("/<int:account_id>")
@require_permission("crm.view")
def account_detail(account_id: int):
    s = db_session()
    account = get_or_404(s, Account, account_id)
    return ok(account.to_dict())


@bp.put("/<int:account_id>")
@require_permission("crm.edit")
def account_update(account_id: int):
    s = db_session()
    account = get_or_404(s, Account, account_id)
    payload = parse_body(AccountUpdate)
    update_account(s, account, payload, current_user())
    s.commit()
    return ok(account.to_dict())


@bp.delete("/<int:account_id>")
@require_permission("crm.edit")
def account_delete(account_id: int):
    s = db_session()
    account = get_or_404(s, Account, account_id)
    delete_account(s, account, current_user())
    s.commit()
    return ok({"ok": True})
