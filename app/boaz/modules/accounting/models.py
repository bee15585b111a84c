from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso

Money = Numeric(14, 2, asdecimal=False)


class ChartAccount(Base):
    __tablename__ = "acct_chart_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_number: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # Asset|Liability|Equity|Revenue|Expense
    sub_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    normal_balance: Mapped[str] = mapped_column(String(8), nullable=False)  # Debit|Credit
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_number": self.account_number,
            "name": self.name,
            "type": self.type,
            "sub_type": self.sub_type,
            "normal_balance": self.normal_balance,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class AccountingPeriod(Base):
    __tablename__ = "acct_periods"
    __table_args__ = (UniqueConstraint("fiscal_year", "fiscal_month", name="uq_acct_periods_year_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    fiscal_month: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fiscal_year": self.fiscal_year,
            "fiscal_month": self.fiscal_month,
            "name": self.name,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "status": self.status,
            "locked": self.locked,
            "closed_at": iso(self.closed_at),
            "closed_by": self.closed_by,
        }


class JournalEntry(Base):
    """
    Double-entry journal entry. Lines are stored inline as
    ``[{account_number, account_name, debit, credit, description}]``.
    """

    __tablename__ = "acct_journal_entries"
    __table_args__ = (Index("idx_acct_journal_entries_date", "entry_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entry_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    period_id: Mapped[int] = mapped_column(ForeignKey("acct_periods.id"), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_type: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    source_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    lines: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    total_debit: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    total_credit: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="posted")  # posted|reversed
    reversed_by_entry_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reverses_entry_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    audit: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_number": self.entry_number,
            "entry_date": iso(self.entry_date),
            "period_id": self.period_id,
            "description": self.description,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "lines": list(self.lines or []),
            "total_debit": self.total_debit,
            "total_credit": self.total_credit,
            "status": self.status,
            "reversed_by_entry_id": self.reversed_by_entry_id,
            "reverses_entry_id": self.reverses_entry_id,
            "audit": list(self.audit or []),
            "created_at": iso(self.created_at),
        }


class Expense(Base):
    __tablename__ = "acct_expenses"
    __table_args__ = (Index("idx_acct_expenses_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    expense_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)
    lines: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)  # [{account_number, amount, description}]
    total: Mapped[float] = mapped_column(Money, nullable=False, default=0)
    # draft -> pending_approval -> approved -> paid; rejected; void
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")

    approver_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    approval_request_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    journal_entry_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expense_number": self.expense_number,
            "vendor": self.vendor,
            "date": iso(self.expense_date),
            "memo": self.memo,
            "lines": list(self.lines or []),
            "total": self.total,
            "status": self.status,
            "approver_email": self.approver_email,
            "approval_request_id": self.approval_request_id,
            "approved_at": iso(self.approved_at),
            "approved_by": self.approved_by,
            "paid_at": iso(self.paid_at),
            "journal_entry_id": self.journal_entry_id,
            "voided_at": iso(self.voided_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
