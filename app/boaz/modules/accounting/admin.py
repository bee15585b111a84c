from __future__ import annotations

from flask import Blueprint, request

from app.boaz.api import ApiError, current_user, get_or_404, ok, parse_body
from app.boaz.db import db_session
from app.boaz.models import Attachment
from app.boaz.modules.accounting.models import AccountingPeriod, ChartAccount, Expense, JournalEntry
from app.boaz.modules.accounting.schemas import (
    ChartAccountCreate,
    ChartAccountUpdate,
    ExpenseCreate,
    ExpenseSubmit,
    ExpenseUpdate,
    GenerateYear,
    JournalEntryCreate,
    PeriodCreate,
    ReverseEntry,
)
from app.boaz.modules.accounting.service import (
    approve_expense,
    create_chart_account,
    create_expense,
    create_period,
    expense_totals,
    generate_year,
    list_chart,
    list_expenses,
    list_journal_entries,
    list_periods,
    pay_expense,
    post_journal_entry,
    reverse_entry,
    seed_default_chart,
    set_period_lock,
    set_period_status,
    submit_expense,
    trial_balance,
    update_chart_account,
    update_expense,
    void_expense,
)
from app.boaz.modules.approvals.service import notify_approver
from app.boaz.modules.integrations.service import dispatch_event
from app.boaz.rbac import SUPERUSER, require_permission
from app.boaz.storage import list_attachments, send_attachment, store_upload
from app.boaz.utils import arg_int, arg_str, parse_date

bp = Blueprint("accounting", __name__)


def _arg_date(name: str):
    try:
        return parse_date(arg_str(name))
    except ValueError:
        raise ApiError(f"invalid_{name}", 400)


# ---------- Chart of accounts ----------
@bp.get("/accounts")
@require_permission("accounting.view")
def accounts_list():
    items = list_chart(db_session(), include_inactive=arg_str("include_inactive") == "1")
    return ok({"items": [a.to_dict() for a in items]})


@bp.post("/accounts")
@require_permission("accounting.edit")
def accounts_create():
    s = db_session()
    acct = create_chart_account(s, parse_body(ChartAccountCreate), current_user())
    s.commit()
    return ok(acct.to_dict(), 201)


@bp.put("/accounts/<int:account_id>")
@require_permission("accounting.edit")
def account_update(account_id: int):
    s = db_session()
    acct = get_or_404(s, ChartAccount, account_id)
    update_chart_account(s, acct, parse_body(ChartAccountUpdate), current_user())
    s.commit()
    return ok(acct.to_dict())


@bp.post("/accounts/seed-default")
@require_permission(SUPERUSER)
def accounts_seed_default():
    s = db_session()
    result = seed_default_chart(s, current_user())
    s.commit()
    return ok(result)


# ---------- Periods ----------
@bp.get("/periods")
@require_permission("accounting.view")
def periods_list():
    items = list_periods(db_session(), arg_int("fiscal_year"))
    return ok({"items": [p.to_dict() for p in items]})


@bp.post("/periods")
@require_permission("accounting.edit")
def periods_create():
    s = db_session()
    period = create_period(s, parse_body(PeriodCreate), current_user())
    s.commit()
    return ok(period.to_dict(), 201)


@bp.post("/periods/generate-year")
@require_permission("accounting.edit")
def periods_generate_year():
    s = db_session()
    payload = parse_body(GenerateYear)
    result = generate_year(s, payload.fiscal_year, current_user())
    s.commit()
    return ok(result)


@bp.post("/periods/<int:period_id>/close")
@require_permission("accounting.edit")
def period_close(period_id: int):
    s = db_session()
    period = get_or_404(s, AccountingPeriod, period_id)
    set_period_status(s, period, "closed", current_user())
    s.commit()
    return ok(period.to_dict())


@bp.post("/periods/<int:period_id>/reopen")
@require_permission("accounting.edit")
def period_reopen(period_id: int):
    s = db_session()
    period = get_or_404(s, AccountingPeriod, period_id)
    set_period_status(s, period, "open", current_user())
    s.commit()
    return ok(period.to_dict())


@bp.post("/periods/<int:period_id>/lock")
@require_permission(SUPERUSER)
def period_lock(period_id: int):
    s = db_session()
    period = get_or_404(s, AccountingPeriod, period_id)
    set_period_lock(s, period, True, current_user())
    s.commit()
    return ok(period.to_dict())


@bp.post("/periods/<int:period_id>/unlock")
@require_permission(SUPERUSER)
def period_unlock(period_id: int):
    s = db_session()
    period = get_or_404(s, AccountingPeriod, period_id)
    set_period_lock(s, period, False, current_user())
    s.commit()
    return ok(period.to_dict())


# ---------- Journal entries ----------
@bp.get("/journal-entries")
@require_permission("accounting.view")
def journal_list():
    items = list_journal_entries(
        db_session(), start=_arg_date("start"), end=_arg_date("end"), status=arg_str("status")
    )
    return ok({"items": [e.to_dict() for e in items]})


@bp.post("/journal-entries")
@require_permission("accounting.edit")
def journal_create():
    s = db_session()
    payload = parse_body(JournalEntryCreate)
    entry = post_journal_entry(
        s,
        entry_date=payload.entry_date,
        lines=[l.model_dump() for l in payload.lines],
        user=current_user(),
        description=payload.description,
        source_type=payload.source_type,
        source_id=payload.source_id,
    )
    s.commit()
    return ok(entry.to_dict(), 201)


@bp.get("/journal-entries/<int:entry_id>")
@require_permission("accounting.view")
def journal_detail(entry_id: int):
    return ok(get_or_404(db_session(), JournalEntry, entry_id).to_dict())


@bp.post("/journal-entries/<int:entry_id>/reverse")
@require_permission("accounting.edit")
def journal_reverse(entry_id: int):
    s = db_session()
    entry = get_or_404(s, JournalEntry, entry_id)
    payload = parse_body(ReverseEntry)
    reversal = reverse_entry(s, entry, current_user(), on=payload.reversal_date, reason=payload.reason)
    s.commit()
    return ok({"original": entry.to_dict(), "reversal": reversal.to_dict()}, 201)


@bp.get("/trial-balance")
@require_permission("accounting.view")
def trial_balance_view():
    return ok(trial_balance(db_session(), _arg_date("as_of")))


# ---------- Expenses ----------
@bp.get("/expenses")
@require_permission("accounting.view")
def expenses_list():
    s = db_session()
    items = list_expenses(s, status=arg_str("status"), q=arg_str("q"))
    return ok({"items": [e.to_dict() for e in items], "totals": expense_totals(s)})


@bp.post("/expenses")
@require_permission("accounting.edit")
def expenses_create():
    s = db_session()
    expense = create_expense(s, parse_body(ExpenseCreate), current_user())
    s.commit()
    return ok(expense.to_dict(), 201)


@bp.get("/expenses/<int:expense_id>")
@require_permission("accounting.view")
def expense_detail(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    data = expense.to_dict()
    data["attachments"] = [a.to_dict() for a in list_attachments(s, "expense", expense.id)]
    return ok(data)


@bp.put("/expenses/<int:expense_id>")
@require_permission("accounting.edit")
def expense_update(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    update_expense(s, expense, parse_body(ExpenseUpdate), current_user())
    s.commit()
    return ok(expense.to_dict())


@bp.post("/expenses/<int:expense_id>/submit")
@require_permission("accounting.edit")
def expense_submit(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    payload = parse_body(ExpenseSubmit)
    req = submit_expense(s, expense, str(payload.approver_email), current_user())
    s.commit()
    notify_approver(req)
    return ok({"expense": expense.to_dict(), "approval_request": req.to_dict()})


@bp.post("/expenses/<int:expense_id>/approve")
@require_permission("accounting.edit")
def expense_approve(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    approve_expense(s, expense, current_user())
    s.commit()
    return ok(expense.to_dict())


@bp.post("/expenses/<int:expense_id>/pay")
@require_permission("accounting.edit")
def expense_pay(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    entry = pay_expense(s, expense, current_user())
    s.commit()
    dispatch_event(s, "accounting.expense.paid", expense.to_dict(), source="accounting")
    return ok({"expense": expense.to_dict(), "journal_entry": entry.to_dict()})


@bp.post("/expenses/<int:expense_id>/void")
@require_permission("accounting.edit")
def expense_void(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    void_expense(s, expense, current_user())
    s.commit()
    return ok(expense.to_dict())


@bp.post("/expenses/<int:expense_id>/attachments")
@require_permission("accounting.edit")
def expense_attachment_upload(expense_id: int):
    s = db_session()
    expense = get_or_404(s, Expense, expense_id)
    f = request.files.get("file")
    if not f or not f.filename:
        raise ApiError("file_required", 400)
    att = store_upload(s, entity_type="expense", entity_id=expense.id, upload=f, user=current_user())
    s.commit()
    return ok(att.to_dict(), 201)


@bp.get("/expenses/<int:expense_id>/attachments/<int:attachment_id>/download")
@require_permission("accounting.view")
def expense_attachment_download(expense_id: int, attachment_id: int):
    att = db_session().get(Attachment, attachment_id)
    if not att or att.entity_type != "expense" or att.entity_id != expense_id:
        raise ApiError("not_found", 404)
    return send_attachment(att)
