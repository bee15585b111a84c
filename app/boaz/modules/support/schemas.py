"""Support ticket and knowledge base API schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from app.boaz.utils import UtcDateTime

MAX_DESCRIPTION = 2500

TicketStatus = Literal["open", "pending", "in_progress", "resolved", "closed"]
TicketPriority = Literal["low", "normal", "high", "urgent", "p1"]


def _legacy_title(data: Any) -> Any:
    # Older clients send `title` instead of `short_description`.
    if isinstance(data, dict) and not data.get("short_description") and isinstance(data.get("title"), str):
        data = {**data, "short_description": data["title"]}
    return data


class TicketCreate(BaseModel):
    short_description: str = Field(..., min_length=1, max_length=512)
    description: str | None = None
    status: TicketStatus = "open"
    priority: TicketPriority = "normal"
    account_id: int | None = None
    contact_id: int | None = None
    assignee: str | None = Field(default=None, max_length=320)
    sla_due_at: UtcDateTime | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_title(cls, data: Any) -> Any:
        return _legacy_title(data)

    @field_validator("short_description")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("short_description is required")
        return v

    @field_validator("description")
    @classmethod
    def _cap_description(cls, v: str | None) -> str | None:
        return v[:MAX_DESCRIPTION] if v else v


class TicketUpdate(BaseModel):
    short_description: str | None = Field(default=None, min_length=1, max_length=512)
    description: str | None = None
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    account_id: int | None = None
    contact_id: int | None = None
    assignee: str | None = Field(default=None, max_length=320)
    sla_due_at: UtcDateTime | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_title(cls, data: Any) -> Any:
        return _legacy_title(data)

    @field_validator("description")
    @classmethod
    def _cap_description(cls, v: str | None) -> str | None:
        return v[:MAX_DESCRIPTION] if v else v


class TicketCommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION)
    author: str | None = Field(default=None, max_length=320)


class KbArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: str = ""
    category: str | None = Field(default=None, max_length=128)
    tags: list[str] = Field(default_factory=list, max_length=50)


class KbArticleUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    body: str | None = None
    category: str | None = Field(default=None, max_length=128)
    tags: list[str] | None = Field(default=None, max_length=50)
