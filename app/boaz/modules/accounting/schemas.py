"""Accounting API schemas."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

AccountType = Literal["Asset", "Liability", "Equity", "Revenue", "Expense"]


class ChartAccountCreate(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=16)
    name: str = Field(..., min_length=1, max_length=255)
    type: AccountType
    sub_type: str | None = Field(default=None, max_length=64)
    normal_balance: Literal["Debit", "Credit"] | None = None
    description: str | None = None
    is_active: bool = True

    @field_validator("account_number", "name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("required")
        return v


class ChartAccountUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    sub_type: str | None = Field(default=None, max_length=64)
    description: str | None = None
    is_active: bool | None = None


class PeriodCreate(BaseModel):
    fiscal_year: int = Field(..., ge=1900, le=2999)
    fiscal_month: int = Field(..., ge=1, le=12)
    name: str | None = Field(default=None, max_length=64)
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class GenerateYear(BaseModel):
    fiscal_year: int = Field(..., ge=1900, le=2999)


class JournalLineIn(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=16)
    debit: float = Field(default=0, ge=0)
    credit: float = Field(default=0, ge=0)
    description: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _one_side(self):
        if (self.debit > 0) == (self.credit > 0):
            raise ValueError("each line needs exactly one of debit or credit")
        return self


class JournalEntryCreate(BaseModel):
    entry_date: dt.date
    description: str | None = Field(default=None, max_length=2000)
    lines: list[JournalLineIn] = Field(..., min_length=2)
    source_type: str = Field(default="manual", max_length=32)
    source_id: str | None = Field(default=None, max_length=64)


class ReverseEntry(BaseModel):
    reversal_date: dt.date | None = None
    reason: str | None = Field(default=None, max_length=500)


class ExpenseLineIn(BaseModel):
    account_number: str = Field(..., min_length=1, max_length=16)
    amount: float = Field(..., gt=0)
    description: str | None = Field(default=None, max_length=500)


class ExpenseCreate(BaseModel):
    vendor: str | None = Field(default=None, max_length=255)
    date: dt.date
    memo: str | None = None
    lines: list[ExpenseLineIn] = Field(..., min_length=1)


class ExpenseUpdate(BaseModel):
    vendor: str | None = Field(default=None, max_length=255)
    date: dt.date | None = None
    memo: str | None = None
    lines: list[ExpenseLineIn] | None = Field(default=None, min_length=1)


class ExpenseSubmit(BaseModel):
    approver_email: EmailStr
