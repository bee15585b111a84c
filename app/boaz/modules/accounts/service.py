from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.boaz.audit import record_event
from app.boaz.counters import assign_number
from app.boaz.modules.accounts.models import Account

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.boaz.models import User
    from app.boaz.modules.accounts.schemas import AccountCreate, AccountUpdate


ACCOUNT_NUMBER_START = 998801
SORT_FIELDS = {
    "name": Account.name,
    "company_name": Account.company_name,
    "account_number": Account.account_number,
    "created_at": Account.created_at,
}


def list_accounts(s: "Session", *, q: str = "", sort: str = "", desc: bool = False, limit: int = 200) -> list[Account]:
    query = s.query(Account)
    if q:
        like = f"%{q}%"
        query = query.filter(
            (Account.name.ilike(like))
            | (Account.company_name.ilike(like))
            | (Account.primary_contact_name.ilike(like))
            | (Account.primary_contact_email.ilike(like))
        )
    col = SORT_FIELDS.get(sort, Account.created_at)
    if sort not in SORT_FIELDS:
        desc = True
    query = query.order_by(col.desc() if desc else col.asc(), Account.id.asc())
    return query.limit(limit).all()


def create_account(s: "Session", payload: "AccountCreate", user: "User | None") -> Account:
    now = datetime.utcnow()

    def build(number: int) -> Account:
        return Account(
            account_number=number,
            name=payload.name.strip(),
            company_name=(payload.company_name or "").strip() or None,
            primary_contact_name=(payload.primary_contact_name or "").strip() or None,
            primary_contact_email=str(payload.primary_contact_email).lower() if payload.primary_contact_email else None,
            primary_contact_phone=(payload.primary_contact_phone or "").strip() or None,
            notes=payload.notes,
            custom_fields=payload.custom_fields or {},
            created_at=now,
            updated_at=now,
            created_by_user_id=user.id if user else None,
        )

    account = assign_number(
        s, build, counter="accountNumber", start=ACCOUNT_NUMBER_START, column=Account.account_number
    )
    record_event(
        s,
        actor=user,
        action="account.create",
        entity_type="Account",
        entity_id=str(account.id),
        metadata={"name": account.name, "account_number": account.account_number},
    )
    return account


def update_account(s: "Session", account: Account, payload: "AccountUpdate", user: "User | None") -> Account:
    changes = {}
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "primary_contact_email" and value:
            value = str(value).lower()
        if isinstance(value, str):
            value = value.strip() or None
        if field == "name" and not value:
            continue
        old = getattr(account, field)
        if old != value:
            changes[field] = {"old": old, "new": value}
            setattr(account, field, value)

    account.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="account.edit",
        entity_type="Account",
        entity_id=str(account.id),
        metadata={"name": account.name, "changes": changes},
    )
    return account


def delete_account(s: "Session", account: Account, user: "User | None") -> None:
    record_event(
        s,
        actor=user,
        action="account.delete",
        entity_type="Account",
        entity_id=str(account.id),
        metadata={"name": account.name, "account_number": account.account_number},
    )
    s.delete(account)


def account_names(s: "Session", ids: list[int]) -> dict[int, str]:
    if not ids:
        return {}
    rows = s.query(Account.id, Account.name).filter(Account.id.in_(ids)).all()
    return {r[0]: r[1] for r in rows}
