from typing import Literal

from pydantic import BaseModel, Field, field_validator

TaskType = Literal["call", "meeting", "todo", "email", "note"]
TaskStatus = Literal["open", "in_progress", "completed", "cancelled"]
TaskPriority = Literal["low", "normal", "high"]
RelatedType = Literal["contact", "account", "deal", "invoice", "quote", "project"]

RELATED_TYPES = ("contact", "account", "deal", "invoice", "quote", "project")


class TaskCreate(BaseModel):
    type: TaskType = "todo"
    subject: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus = "open"
    priority: TaskPriority = "normal"
    # Parsed by the service so a bad value maps to `invalid_due_at`.
    due_at: str | None = None
    owner_id: int | None = None
    related_type: RelatedType | None = None
    related_id: int | None = None

    @field_validator("subject")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("subject is required")
        return v


class TaskUpdate(BaseModel):
    type: TaskType | None = None
    subject: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_at: str | None = None
    owner_id: int | None = None
    related_type: RelatedType | None = None
    related_id: int | None = None
