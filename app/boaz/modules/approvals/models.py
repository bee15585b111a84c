from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base
from app.boaz.utils import iso


class ApprovalRequest(Base):
    """A request for a manager to sign off on a quote, deal, expense or contract."""

    __tablename__ = "approval_requests"
    __table_args__ = (
        Index("idx_approval_requests_subject", "subject_type", "subject_id"),
        Index("idx_approval_requests_approver", "approver_email", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subject_type: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    amount: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)

    requester_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    requester_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    requester_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approver_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approver_email: Mapped[str] = mapped_column(String(320), nullable=False)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(320), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject_type": self.subject_type,
            "subject_id": self.subject_id,
            "title": self.title,
            "amount": self.amount,
            "requester_id": self.requester_id,
            "requester_email": self.requester_email,
            "requester_name": self.requester_name,
            "approver_id": self.approver_id,
            "approver_email": self.approver_email,
            "status": self.status,
            "requested_at": iso(self.requested_at),
            "reviewed_at": iso(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "review_notes": self.review_notes,
        }
