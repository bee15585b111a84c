"""StratFlow API schemas."""

import datetime as dt
import re
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

ProjectType = Literal["SCRUM", "KANBAN", "TRADITIONAL", "HYBRID"]
ProjectStatus = Literal["Active", "On Hold", "Completed", "Archived"]
ProjectHealth = Literal["on_track", "at_risk", "off_track"]
SprintState = Literal["planned", "active", "closed"]

_KEY_RE = re.compile(r"[^A-Z0-9]+")


def keyify(value: str) -> str:
    return _KEY_RE.sub("-", value.upper().strip()).strip("-")[:12]


class ProjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=140)
    key: str = Field(..., min_length=2, max_length=12)
    description: str | None = Field(default=None, max_length=4000)
    type: ProjectType
    status: ProjectStatus = "Active"
    health: ProjectHealth | None = None
    team_ids: list[int] = Field(default_factory=list, max_length=50)
    account_id: int | None = None
    start_date: dt.date | None = None
    target_end_date: dt.date | None = None

    @field_validator("key")
    @classmethod
    def _key(cls, v: str) -> str:
        v = keyify(v)
        if len(v) < 2:
            raise ValueError("key must have at least 2 letters or digits")
        return v


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=140)
    description: str | None = Field(default=None, max_length=4000)
    status: ProjectStatus | None = None
    health: ProjectHealth | None = None
    team_ids: list[int] | None = Field(default=None, max_length=50)
    account_id: int | None = None
    start_date: dt.date | None = None
    target_end_date: dt.date | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if len(v) < 2:
            raise ValueError("name must have at least 2 characters")
        return v


def _normalize_type(v: Any) -> Any:
    if isinstance(v, str) and v.strip().lower() == "bug":
        return "Defect"
    return v


def _normalize_priority(v: Any) -> Any:
    if isinstance(v, str) and v.strip().lower() == "critical":
        return "Highest"
    return v


IssueType = Literal["Epic", "Story", "Task", "Defect", "Spike"]
IssuePriority = Literal["Highest", "High", "Medium", "Low"]


class IssueCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=280)
    column_id: int
    description: str | None = Field(default=None, max_length=20000)
    type: IssueType = "Task"
    priority: IssuePriority = "Medium"
    assignee_id: int | None = None
    sprint_id: int | None = None
    epic_id: int | None = None
    story_points: float | None = Field(default=None, ge=0, le=1000)
    labels: list[str] = Field(default_factory=list)
    component_ids: list[int] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> Any:
        return _normalize_type(v) or "Task"

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> Any:
        return _normalize_priority(v) or "Medium"

    @field_validator("title")
    @classmethod
    def _title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v


class IssueUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=280)
    description: str | None = Field(default=None, max_length=20000)
    type: IssueType | None = None
    priority: IssuePriority | None = None
    assignee_id: int | None = None
    sprint_id: int | None = None
    epic_id: int | None = None
    story_points: float | None = Field(default=None, ge=0, le=1000)
    labels: list[str] | None = None
    component_ids: list[int] | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> Any:
        return _normalize_type(v)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, v: Any) -> Any:
        return _normalize_priority(v)

    @field_validator("title")
    @classmethod
    def _title(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v


class IssueMove(BaseModel):
    to_column_id: int
    to_index: int = Field(..., ge=0, le=100000)


class SprintCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=140)
    goal: str | None = Field(default=None, max_length=4000)
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class SprintUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=140)
    goal: str | None = Field(default=None, max_length=4000)
    state: SprintState | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None


class CommentCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=8000)

    @field_validator("body")
    @classmethod
    def _body(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("body is required")
        return v


class MemberAdd(BaseModel):
    user_id: int


class ComponentCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=80)
