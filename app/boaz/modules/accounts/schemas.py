"""Account API schemas."""

from pydantic import BaseModel, EmailStr, Field


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    company_name: str | None = Field(default=None, max_length=255)
    primary_contact_name: str | None = Field(default=None, max_length=255)
    primary_contact_email: EmailStr | None = None
    primary_contact_phone: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    custom_fields: dict | None = None


class AccountUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    company_name: str | None = Field(default=None, max_length=255)
    primary_contact_name: str | None = Field(default=None, max_length=255)
    primary_contact_email: EmailStr | None = None
    primary_contact_phone: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    custom_fields: dict | None = None
