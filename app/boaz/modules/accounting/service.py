from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.boaz.api import ApiError
from app.boaz.audit import record_event
from app.boaz.counters import assign_number
from app.boaz.modules.accounting.defaults import DEFAULT_CHART
from app.boaz.modules.accounting.models import AccountingPeriod, ChartAccount, Expense, JournalEntry

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.accounting.schemas import (
        ChartAccountCreate,
        ChartAccountUpdate,
        ExpenseCreate,
        ExpenseUpdate,
        PeriodCreate,
    )

JOURNAL_NUMBER_START = 10001
EXPENSE_NUMBER_START = 1001
BALANCE_TOLERANCE = 0.01
CASH_ACCOUNT_NUMBER = "1010"
DEBIT_NORMAL_TYPES = ("Asset", "Expense")


def _money(v: float) -> float:
    return round(float(v or 0), 2)


def normal_balance_for(account_type: str) -> str:
    return "Debit" if account_type in DEBIT_NORMAL_TYPES else "Credit"


# ---------- Chart of accounts ----------
def list_chart(s: "Session", *, include_inactive: bool = False) -> list[ChartAccount]:
    query = s.query(ChartAccount)
    if not include_inactive:
        query = query.filter(ChartAccount.is_active.is_(True))
    return query.order_by(ChartAccount.account_number.asc()).all()


def create_chart_account(s: "Session", payload: "ChartAccountCreate", user: "User | None") -> ChartAccount:
    if s.query(ChartAccount.id).filter(ChartAccount.account_number == payload.account_number).first():
        raise ApiError("account_number_exists", 400)
    now = datetime.utcnow()
    acct = ChartAccount(
        account_number=payload.account_number,
        name=payload.name,
        type=payload.type,
        sub_type=(payload.sub_type or "").strip() or None,
        normal_balance=payload.normal_balance or normal_balance_for(payload.type),
        description=payload.description,
        is_active=payload.is_active,
        created_at=now,
        updated_at=now,
    )
    s.add(acct)
    s.flush()
    record_event(
        s,
        actor=user,
        action="chart_account.create",
        entity_type="ChartAccount",
        entity_id=str(acct.id),
        metadata={"account_number": acct.account_number, "name": acct.name},
    )
    return acct


def update_chart_account(
    s: "Session", acct: ChartAccount, payload: "ChartAccountUpdate", user: "User | None"
) -> ChartAccount:
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        acct.name = data["name"].strip()
    if "sub_type" in data:
        acct.sub_type = (data["sub_type"] or "").strip() or None
    if "description" in data:
        acct.description = data["description"]
    if data.get("is_active") is not None:
        acct.is_active = bool(data["is_active"])
    acct.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="chart_account.edit",
        entity_type="ChartAccount",
        entity_id=str(acct.id),
        metadata={"fields": sorted(data)},
    )
    return acct


def seed_default_chart(s: "Session", user: "User | None") -> dict:
    """Create the standard chart; accounts whose number already exists are left alone."""
    existing = {n for (n,) in s.query(ChartAccount.account_number).all()}
    now = datetime.utcnow()
    created = 0
    for number, name, acct_type, sub_type, normal in DEFAULT_CHART:
        if number in existing:
            continue
        s.add(
            ChartAccount(
                account_number=number,
                name=name,
                type=acct_type,
                sub_type=sub_type,
                normal_balance=normal or normal_balance_for(acct_type),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
        )
        created += 1
    s.flush()
    record_event(s, actor=user, action="chart_account.seed_default", metadata={"created": created})
    return {"created": created, "skipped": len(DEFAULT_CHART) - created}


# ---------- Periods ----------
def _month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def list_periods(s: "Session", fiscal_year: int | None = None) -> list[AccountingPeriod]:
    query = s.query(AccountingPeriod)
    if fiscal_year:
        query = query.filter(AccountingPeriod.fiscal_year == fiscal_year)
    return query.order_by(AccountingPeriod.fiscal_year.desc(), AccountingPeriod.fiscal_month.asc()).all()


def create_period(s: "Session", payload: "PeriodCreate", user: "User | None") -> AccountingPeriod:
    exists = (
        s.query(AccountingPeriod.id)
        .filter(
            AccountingPeriod.fiscal_year == payload.fiscal_year,
            AccountingPeriod.fiscal_month == payload.fiscal_month,
        )
        .first()
    )
    if exists:
        raise ApiError("period_exists", 409)
    start, end = _month_bounds(payload.fiscal_year, payload.fiscal_month)
    period = AccountingPeriod(
        fiscal_year=payload.fiscal_year,
        fiscal_month=payload.fiscal_month,
        name=(payload.name or "").strip() or f"{calendar.month_name[payload.fiscal_month]} {payload.fiscal_year}",
        start_date=payload.start_date or start,
        end_date=payload.end_date or end,
        status="open",
        locked=False,
    )
    s.add(period)
    s.flush()
    record_event(
        s, actor=user, action="period.create", entity_type="AccountingPeriod", entity_id=str(period.id),
        metadata={"name": period.name},
    )
    return period


def generate_year(s: "Session", fiscal_year: int, user: "User | None") -> dict:
    existing = {
        m for (m,) in s.query(AccountingPeriod.fiscal_month).filter(AccountingPeriod.fiscal_year == fiscal_year).all()
    }
    created = 0
    for month in range(1, 13):
        if month in existing:
            continue
        start, end = _month_bounds(fiscal_year, month)
        s.add(
            AccountingPeriod(
                fiscal_year=fiscal_year,
                fiscal_month=month,
                name=f"{calendar.month_name[month]} {fiscal_year}",
                start_date=start,
                end_date=end,
                status="open",
                locked=False,
            )
        )
        created += 1
    s.flush()
    record_event(s, actor=user, action="period.generate_year", metadata={"fiscal_year": fiscal_year, "created": created})
    return {"created": created, "skipped": 12 - created}


def set_period_status(s: "Session", period: AccountingPeriod, status: str, user: "User | None") -> AccountingPeriod:
    if period.locked:
        raise ApiError("period_locked", 400)
    period.status = status
    if status == "closed":
        period.closed_at = datetime.utcnow()
        period.closed_by = user.email if user else None
    else:
        period.closed_at = None
        period.closed_by = None
    record_event(
        s, actor=user, action=f"period.{'close' if status == 'closed' else 'reopen'}",
        entity_type="AccountingPeriod", entity_id=str(period.id),
    )
    return period


def set_period_lock(s: "Session", period: AccountingPeriod, locked: bool, user: "User | None") -> AccountingPeriod:
    period.locked = locked
    record_event(
        s, actor=user, action="period.lock" if locked else "period.unlock",
        entity_type="AccountingPeriod", entity_id=str(period.id),
    )
    return period


def open_period_for(s: "Session", on: date) -> AccountingPeriod:
    period = (
        s.query(AccountingPeriod)
        .filter(AccountingPeriod.start_date <= on, AccountingPeriod.end_date >= on)
        .order_by(AccountingPeriod.id.asc())
        .first()
    )
    if period is None:
        raise ApiError("no_open_period", 400)
    if period.status != "open":
        raise ApiError("period_closed", 400)
    return period


# ---------- Journal entries ----------
def post_journal_entry(
    s: "Session",
    *,
    entry_date: date,
    lines: list[dict[str, Any]],
    user: "User | None",
    description: str | None = None,
    source_type: str = "manual",
    source_id: str | None = None,
    audit_action: str = "posted",
) -> JournalEntry:
    """
    Validate and post a balanced entry.

    ``lines`` are ``{account_number, debit, credit, description}`` dicts; each
    line carries exactly one non-negative side.
    """
    if len(lines) < 2:
        raise ApiError("at_least_two_lines", 400)
    for line in lines:
        debit, credit = float(line.get("debit") or 0), float(line.get("credit") or 0)
        if debit < 0 or credit < 0 or (debit > 0) == (credit > 0):
            raise ApiError("invalid_line", 400)
    total_debit = _money(sum(float(l.get("debit") or 0) for l in lines))
    total_credit = _money(sum(float(l.get("credit") or 0) for l in lines))
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise ApiError("debits_credits_mismatch", 400, {"debits": total_debit, "credits": total_credit})

    numbers = {str(l["account_number"]) for l in lines}
    accounts = {
        a.account_number: a
        for a in s.query(ChartAccount)
        .filter(ChartAccount.account_number.in_(numbers), ChartAccount.is_active.is_(True))
        .all()
    }
    missing = sorted(numbers - set(accounts))
    if missing:
        raise ApiError("invalid_account", 400, {"account_numbers": missing})

    period = open_period_for(s, entry_date)
    now = datetime.utcnow()
    stored_lines = [
        {
            "account_number": str(l["account_number"]),
            "account_name": accounts[str(l["account_number"])].name,
            "debit": _money(l.get("debit") or 0),
            "credit": _money(l.get("credit") or 0),
            "description": l.get("description"),
        }
        for l in lines
    ]

    def build(number: int) -> JournalEntry:
        return JournalEntry(
            entry_number=number,
            entry_date=entry_date,
            period_id=period.id,
            description=description,
            source_type=source_type,
            source_id=source_id,
            lines=stored_lines,
            total_debit=total_debit,
            total_credit=total_credit,
            status="posted",
            audit=[{"action": audit_action, "by": user.email if user else "system", "at": now.isoformat()}],
            created_at=now,
            created_by_user_id=user.id if user else None,
        )

    entry = assign_number(
        s, build, counter="journalEntryNumber", start=JOURNAL_NUMBER_START, column=JournalEntry.entry_number
    )
    record_event(
        s,
        actor=user,
        action="journal_entry.post",
        entity_type="JournalEntry",
        entity_id=str(entry.id),
        metadata={"entry_number": entry.entry_number, "total": total_debit, "source_type": source_type},
    )
    return entry


def list_journal_entries(
    s: "Session", *, start: date | None = None, end: date | None = None, status: str = "", limit: int = 200
) -> list[JournalEntry]:
    query = s.query(JournalEntry)
    if start:
        query = query.filter(JournalEntry.entry_date >= start)
    if end:
        query = query.filter(JournalEntry.entry_date <= end)
    if status:
        query = query.filter(JournalEntry.status == status)
    return query.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc()).limit(limit).all()


def reverse_entry(
    s: "Session", entry: JournalEntry, user: "User | None", *, on: date | None = None, reason: str | None = None
) -> JournalEntry:
    if entry.status == "reversed":
        raise ApiError("already_reversed", 400)
    if entry.status != "posted":
        raise ApiError("can_only_reverse_posted", 400)

    swapped = [
        {
            "account_number": l["account_number"],
            "debit": l.get("credit") or 0,
            "credit": l.get("debit") or 0,
            "description": l.get("description"),
        }
        for l in entry.lines or []
    ]
    reversal = post_journal_entry(
        s,
        entry_date=on or date.today(),
        lines=swapped,
        user=user,
        description=f"Reversal of JE #{entry.entry_number}" + (f": {reason}" if reason else ""),
        source_type="adjustment",
        source_id=str(entry.id),
        audit_action="reversal",
    )
    reversal.reverses_entry_id = entry.id
    entry.status = "reversed"
    entry.reversed_by_entry_id = reversal.id
    entry.audit = [
        *(entry.audit or []),
        {"action": "reversed", "by": user.email if user else "system", "at": datetime.utcnow().isoformat(), "reason": reason},
    ]
    return reversal


def trial_balance(s: "Session", as_of: date | None = None) -> dict:
    """Debit/credit totals per account over every entry dated on or before `as_of`."""
    query = s.query(JournalEntry)
    if as_of:
        query = query.filter(JournalEntry.entry_date <= as_of)
    totals: dict[str, dict[str, float]] = {}
    for entry in query.all():
        for line in entry.lines or []:
            t = totals.setdefault(line["account_number"], {"debit": 0.0, "credit": 0.0})
            t["debit"] += float(line.get("debit") or 0)
            t["credit"] += float(line.get("credit") or 0)

    accounts = {a.account_number: a for a in s.query(ChartAccount).all()}
    rows = []
    for number in sorted(totals):
        t = totals[number]
        acct = accounts.get(number)
        normal = acct.normal_balance if acct else "Debit"
        debit, credit = _money(t["debit"]), _money(t["credit"])
        rows.append(
            {
                "account_number": number,
                "account_name": acct.name if acct else None,
                "type": acct.type if acct else None,
                "normal_balance": normal,
                "debit": debit,
                "credit": credit,
                "balance": _money(debit - credit if normal == "Debit" else credit - debit),
            }
        )
    total_debit = _money(sum(r["debit"] for r in rows))
    total_credit = _money(sum(r["credit"] for r in rows))
    return {
        "as_of": as_of.isoformat() if as_of else None,
        "rows": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "is_balanced": abs(total_debit - total_credit) <= BALANCE_TOLERANCE,
    }


# ---------- Expenses ----------
def _expense_lines(lines) -> tuple[list[dict], float]:
    out = [
        {"account_number": l.account_number.strip(), "amount": _money(l.amount), "description": l.description}
        for l in lines
    ]
    return out, _money(sum(l["amount"] for l in out))


def list_expenses(s: "Session", *, status: str = "", q: str = "", limit: int = 200) -> list[Expense]:
    query = s.query(Expense)
    if status:
        query = query.filter(Expense.status == status)
    if q:
        like = f"%{q}%"
        query = query.filter((Expense.vendor.ilike(like)) | (Expense.memo.ilike(like)))
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).limit(limit).all()


def create_expense(s: "Session", payload: "ExpenseCreate", user: "User | None") -> Expense:
    lines, total = _expense_lines(payload.lines)
    now = datetime.utcnow()

    def build(number: int) -> Expense:
        return Expense(
            expense_number=number,
            vendor=(payload.vendor or "").strip() or None,
            expense_date=payload.date,
            memo=payload.memo,
            lines=lines,
            total=total,
            status="draft",
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
        )

    expense = assign_number(s, build, counter="expenseNumber", start=EXPENSE_NUMBER_START, column=Expense.expense_number)
    record_event(
        s, actor=user, action="expense.create", entity_type="Expense", entity_id=str(expense.id),
        metadata={"expense_number": expense.expense_number, "total": total},
    )
    return expense


def update_expense(s: "Session", expense: Expense, payload: "ExpenseUpdate", user: "User | None") -> Expense:
    if expense.status in ("paid", "void"):
        raise ApiError("expense_finalized", 400)
    data = payload.model_dump(exclude_unset=True)
    if "vendor" in data:
        expense.vendor = (data["vendor"] or "").strip() or None
    if data.get("date"):
        expense.expense_date = data["date"]
    if "memo" in data:
        expense.memo = data["memo"]
    if payload.lines is not None:
        expense.lines, expense.total = _expense_lines(payload.lines)
    if expense.status == "rejected":
        expense.status = "draft"
    expense.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="expense.edit", entity_type="Expense", entity_id=str(expense.id),
        metadata={"fields": sorted(data)},
    )
    return expense


def submit_expense(s: "Session", expense: Expense, approver_email: str, user: "User"):
    from app.boaz.modules.approvals.service import create_request

    if expense.status not in ("draft", "rejected"):
        raise ApiError("can_only_submit_draft", 400)
    req = create_request(
        s,
        subject_type="expense",
        subject_id=expense.id,
        approver_email=approver_email,
        requester=user,
        title=f"Expense #{expense.expense_number}" + (f" - {expense.vendor}" if expense.vendor else ""),
        amount=expense.total,
    )
    expense.status = "pending_approval"
    expense.approver_email = req.approver_email
    expense.approval_request_id = req.id
    expense.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="expense.submit", entity_type="Expense", entity_id=str(expense.id),
        metadata={"approver": req.approver_email},
    )
    return req


def approve_expense(s: "Session", expense: Expense, user: "User | None") -> Expense:
    if expense.status not in ("draft", "pending_approval"):
        raise ApiError("can_only_approve_pending", 400)
    expense.status = "approved"
    expense.approved_at = datetime.utcnow()
    expense.approved_by = user.email if user else None
    expense.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="expense.approve", entity_type="Expense", entity_id=str(expense.id))
    return expense


def pay_expense(s: "Session", expense: Expense, user: "User | None") -> JournalEntry:
    """Post DR expense lines / CR cash and mark the expense paid."""
    if expense.status != "approved":
        raise ApiError("must_be_approved", 400)
    cash = (
        s.query(ChartAccount)
        .filter(ChartAccount.account_number == CASH_ACCOUNT_NUMBER, ChartAccount.is_active.is_(True))
        .one_or_none()
    )
    if cash is None:
        raise ApiError("cash_account_missing", 400)

    lines: list[dict[str, Any]] = [
        {"account_number": l["account_number"], "debit": l["amount"], "credit": 0, "description": l.get("description")}
        for l in expense.lines or []
    ]
    lines.append(
        {
            "account_number": cash.account_number,
            "debit": 0,
            "credit": expense.total,
            "description": f"Payment for expense #{expense.expense_number}",
        }
    )
    entry = post_journal_entry(
        s,
        entry_date=expense.expense_date,
        lines=lines,
        user=user,
        description=f"Expense #{expense.expense_number}" + (f" - {expense.vendor}" if expense.vendor else ""),
        source_type="expense",
        source_id=str(expense.id),
        audit_action="auto_posted",
    )
    expense.status = "paid"
    expense.paid_at = datetime.utcnow()
    expense.journal_entry_id = entry.id
    expense.updated_at = datetime.utcnow()
    record_event(
        s, actor=user, action="expense.pay", entity_type="Expense", entity_id=str(expense.id),
        metadata={"journal_entry_number": entry.entry_number},
    )
    return entry


def void_expense(s: "Session", expense: Expense, user: "User | None") -> Expense:
    if expense.status == "paid":
        raise ApiError("cannot_void_paid", 400)
    if expense.status == "void":
        return expense
    expense.status = "void"
    expense.voided_at = datetime.utcnow()
    expense.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="expense.void", entity_type="Expense", entity_id=str(expense.id))
    return expense


def expense_totals(s: "Session") -> dict:
    rows = s.query(Expense.status, func.count(Expense.id), func.coalesce(func.sum(Expense.total), 0)).group_by(Expense.status).all()
    return {status: {"count": int(n), "total": _money(t)} for status, n, t in rows}
