from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso


class SfProject(Base):
    __tablename__ = "sf_projects"
    __table_args__ = (
        UniqueConstraint("owner_user_id", "key", name="uq_sf_projects_owner_key"),
        Index("idx_sf_projects_account", "account_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(140), nullable=False)
    key: Mapped[str] = mapped_column(String(12), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # SCRUM|KANBAN|TRADITIONAL|HYBRID
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Active")
    health: Mapped[str | None] = mapped_column(String(16), nullable=True)  # on_track|at_risk|off_track
    owner_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_ids: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)  # member user ids
    account_id: Mapped[int | None] = mapped_column(ForeignKey("crm_accounts.id", ondelete="SET NULL"), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    target_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def member_ids(self) -> set[int]:
        return {self.owner_user_id, *(int(i) for i in (self.team_ids or []))}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "key": self.key,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "health": self.health,
            "owner_user_id": self.owner_user_id,
            "team_ids": list(self.team_ids or []),
            "account_id": self.account_id,
            "start_date": iso(self.start_date),
            "target_end_date": iso(self.target_end_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class SfBoard(Base):
    __tablename__ = "sf_boards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("sf_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(140), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # KANBAN|BACKLOG|MILESTONES
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "kind": self.kind,
            "created_at": iso(self.created_at),
        }


class SfColumn(Base):
    __tablename__ = "sf_columns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    board_id: Mapped[int] = mapped_column(ForeignKey("sf_boards.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    order: Mapped[float] = mapped_column(Float, nullable=False, default=1000)

    def to_dict(self) -> dict:
        return {"id": self.id, "board_id": self.board_id, "name": self.name, "order": self.order}


class SfSprint(Base):
    __tablename__ = "sf_sprints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("sf_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(140), nullable=False)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="planned")  # planned|active|closed
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "goal": self.goal,
            "state": self.state,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class SfComponent(Base):
    __tablename__ = "sf_components"
    __table_args__ = (UniqueConstraint("project_id", "name_lower", name="uq_sf_components_project_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("sf_projects.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    name_lower: Mapped[str] = mapped_column(String(80), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {"id": self.id, "project_id": self.project_id, "name": self.name, "created_at": iso(self.created_at)}


class SfIssue(Base):
    __tablename__ = "sf_issues"
    __table_args__ = (
        Index("idx_sf_issues_column_order", "column_id", "order"),
        Index("idx_sf_issues_project", "project_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("sf_projects.id", ondelete="CASCADE"), nullable=False)
    board_id: Mapped[int] = mapped_column(ForeignKey("sf_boards.id", ondelete="CASCADE"), nullable=False)
    column_id: Mapped[int] = mapped_column(ForeignKey("sf_columns.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(280), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="Task")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="Medium")
    status_key: Mapped[str] = mapped_column(String(64), nullable=False, default="todo")
    order: Mapped[float] = mapped_column(Float, nullable=False, default=1000)

    reporter_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assignee_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    sprint_id: Mapped[int | None] = mapped_column(ForeignKey("sf_sprints.id", ondelete="SET NULL"), nullable=True)
    epic_id: Mapped[int | None] = mapped_column(ForeignKey("sf_issues.id", ondelete="SET NULL"), nullable=True)
    story_points: Mapped[float | None] = mapped_column(Float, nullable=True)
    labels: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    component_ids: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "board_id": self.board_id,
            "column_id": self.column_id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "priority": self.priority,
            "status_key": self.status_key,
            "order": self.order,
            "reporter_id": self.reporter_id,
            "assignee_id": self.assignee_id,
            "sprint_id": self.sprint_id,
            "epic_id": self.epic_id,
            "story_points": self.story_points,
            "labels": list(self.labels or []),
            "component_ids": list(self.component_ids or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class SfComment(Base):
    __tablename__ = "sf_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("sf_issues.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "author_id": self.author_id,
            "body": self.body,
            "created_at": iso(self.created_at),
        }
