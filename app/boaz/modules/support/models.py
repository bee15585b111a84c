from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso


class SupportTicket(Base):
    __tablename__ = "support_tickets"
    __table_args__ = (
        Index("idx_support_tickets_status", "status"),
        Index("idx_support_tickets_account", "account_id"),
        Index("idx_support_tickets_sla_due", "sla_due_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    short_description: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    priority: Mapped[str] = mapped_column(String(32), nullable=False, default="normal")

    # Loose references (no FK): tickets outlive account cleanups.
    account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    contact_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assignee: Mapped[str | None] = mapped_column(String(320), nullable=True)

    sla_due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_sla_alert_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # [{"author": str, "body": str, "at": iso}]
    comments: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def is_breached(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return bool(self.sla_due_at and self.sla_due_at < now and self.status in ("open", "pending"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "short_description": self.short_description,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "account_id": self.account_id,
            "contact_id": self.contact_id,
            "assignee": self.assignee,
            "sla_due_at": iso(self.sla_due_at),
            "last_sla_alert_at": iso(self.last_sla_alert_at),
            "breached": self.is_breached(),
            "comments": list(self.comments or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class KbArticle(Base):
    __tablename__ = "kb_articles"
    __table_args__ = (Index("idx_kb_articles_title", "title"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tags: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    author_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "category": self.category,
            "tags": list(self.tags or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
