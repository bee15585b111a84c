from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso

MASKED_SECRET = "********"


class Webhook(Base):
    __tablename__ = "webhooks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    events: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=lambda: ["*"])
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    last_delivery_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_delivery_ok: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    last_delivery_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_delivery_error: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def subscribed_to(self, event_type: str) -> bool:
        allowed = self.events or ["*"]
        return "*" in allowed or event_type in allowed

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "secret": MASKED_SECRET if self.secret else None,
            "events": list(self.events or ["*"]),
            "is_active": self.is_active,
            "last_delivery_at": iso(self.last_delivery_at),
            "last_delivery_ok": self.last_delivery_ok,
            "last_delivery_status": self.last_delivery_status,
            "last_delivery_error": self.last_delivery_error,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class WebhookDelivery(Base):
    __tablename__ = "webhook_deliveries"
    __table_args__ = (Index("idx_webhook_deliveries_webhook", "webhook_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # delivery id sent in X-Boaz-Delivery
    webhook_id: Mapped[int | None] = mapped_column(ForeignKey("webhooks.id", ondelete="CASCADE"), nullable=True)
    webhook_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ok: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "webhook_id": self.webhook_id,
            "webhook_name": self.webhook_name,
            "url": self.url,
            "event_type": self.event_type,
            "source": self.source,
            "ok": self.ok,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "response_text": self.response_text,
            "error": self.error,
            "created_at": iso(self.created_at),
        }


class ApiKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # sha256 hex of the full key
    scopes: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=lambda: ["*"])

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "prefix": self.prefix,
            "scopes": list(self.scopes or []),
            "created_at": iso(self.created_at),
            "created_by_email": self.created_by_email,
            "last_used_at": iso(self.last_used_at),
            "revoked_at": iso(self.revoked_at),
        }
