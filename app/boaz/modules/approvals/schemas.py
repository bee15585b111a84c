"""Approval request API schemas."""

from typing import Literal

from pydantic import BaseModel, EmailStr, Field

SubjectType = Literal["quote", "deal", "expense", "contract"]


class ApprovalRequestCreate(BaseModel):
    subject_type: SubjectType
    subject_id: int
    approver_email: EmailStr
    title: str | None = Field(default=None, max_length=255)
    amount: float | None = None


class ApprovalDecision(BaseModel):
    review_notes: str | None = Field(default=None, max_length=4000)
