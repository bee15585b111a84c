from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso


class SocialAccount(Base):
    __tablename__ = "social_accounts"
    __table_args__ = (UniqueConstraint("platform", "account_id", name="uq_social_accounts_platform_account"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    platform: Mapped[str] = mapped_column(String(16), nullable=False)  # facebook|twitter|linkedin|instagram
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)  # id on the platform
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    connected_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        # access_token is never serialized.
        return {
            "id": self.id,
            "platform": self.platform,
            "account_name": self.account_name,
            "account_id": self.account_id,
            "username": self.username,
            "status": self.status,
            "has_token": bool(self.access_token),
            "connected_at": iso(self.connected_at),
            "last_used_at": iso(self.last_used_at),
        }


class SocialPost(Base):
    __tablename__ = "social_posts"
    __table_args__ = (Index("idx_social_posts_status", "status", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    platforms: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    account_ids: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)  # SocialAccount ids
    images: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    link: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    hashtags: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    metrics: Mapped[dict | None] = mapped_column(JSONType, nullable=True, default=dict)  # {platform: {likes, ...}}
    platform_post_ids: Mapped[dict | None] = mapped_column(JSONType, nullable=True, default=dict)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "platforms": list(self.platforms or []),
            "account_ids": list(self.account_ids or []),
            "images": list(self.images or []),
            "link": self.link,
            "hashtags": list(self.hashtags or []),
            "status": self.status,
            "scheduled_for": iso(self.scheduled_for),
            "published_at": iso(self.published_at),
            "metrics": dict(self.metrics or {}),
            "platform_post_ids": dict(self.platform_post_ids or {}),
            "error": self.error,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
