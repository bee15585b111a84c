"""Contract, template and e-signature API schemas."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

ContractType = Literal["support", "subscription", "project", "other"]
ContractStatus = Literal["draft", "sent", "active", "expired", "scheduled", "cancelled"]
SignerRole = Literal["customer_signer", "provider_signer"]


class ContractCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    account_id: int | None = None
    type: ContractType = "support"
    status: ContractStatus = "draft"
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    renewal_date: dt.date | None = None
    auto_renew: bool = False
    response_target_minutes: int | None = Field(default=None, ge=0)
    resolution_target_minutes: int | None = Field(default=None, ge=0)
    entitlements: str | None = None
    notes: str | None = None
    billing_company_name: str | None = Field(default=None, max_length=255)
    billing_address: str | None = None
    billing_email: EmailStr | None = None
    billing_phone: str | None = Field(default=None, max_length=64)
    internal_owner_user_id: int | None = None
    template_id: int | None = None
    html_body: str | None = None


class ContractUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    account_id: int | None = None
    type: ContractType | None = None
    status: ContractStatus | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    renewal_date: dt.date | None = None
    auto_renew: bool | None = None
    response_target_minutes: int | None = Field(default=None, ge=0)
    resolution_target_minutes: int | None = Field(default=None, ge=0)
    entitlements: str | None = None
    notes: str | None = None
    billing_company_name: str | None = Field(default=None, max_length=255)
    billing_address: str | None = None
    billing_email: EmailStr | None = None
    billing_phone: str | None = Field(default=None, max_length=64)
    internal_owner_user_id: int | None = None
    html_body: str | None = None


class InviteCreate(BaseModel):
    role: SignerRole
    email: EmailStr
    name: str | None = Field(default=None, max_length=255)
    title: str | None = Field(default=None, max_length=255)
    expires_in_days: int = Field(default=14, ge=1, le=90)


class SignSubmit(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    title: str | None = Field(default=None, max_length=255)
    email: EmailStr


class TemplateCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    html_body: str = ""


class TemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    html_body: str | None = None
