from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso


class ContractTemplate(Base):
    __tablename__ = "contract_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    html_body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "html_body": self.html_body,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (Index("idx_contracts_account", "account_id", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    account_id: Mapped[int | None] = mapped_column(ForeignKey("crm_accounts.id", ondelete="SET NULL"), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="support")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")

    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    renewal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    auto_renew: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    response_target_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resolution_target_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    entitlements: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    billing_company_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    billing_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    billing_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    customer_signed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    provider_signed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    provider_signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    executed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    signature_audit: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)

    internal_owner_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("contract_templates.id", ondelete="SET NULL"), nullable=True)
    html_body: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self, *, public: bool = False) -> dict:
        data = {
            "id": self.id,
            "contract_number": self.contract_number,
            "account_id": self.account_id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "renewal_date": iso(self.renewal_date),
            "auto_renew": self.auto_renew,
            "response_target_minutes": self.response_target_minutes,
            "resolution_target_minutes": self.resolution_target_minutes,
            "entitlements": self.entitlements,
            "notes": self.notes,
            "billing_company_name": self.billing_company_name,
            "billing_address": self.billing_address,
            "billing_email": self.billing_email,
            "billing_phone": self.billing_phone,
            "customer_signed_by": self.customer_signed_by,
            "customer_signed_at": iso(self.customer_signed_at),
            "provider_signed_by": self.provider_signed_by,
            "provider_signed_at": iso(self.provider_signed_at),
            "executed_date": iso(self.executed_date),
            "template_id": self.template_id,
            "html_body": self.html_body,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if not public:
            data["signature_audit"] = list(self.signature_audit or [])
            data["internal_owner_user_id"] = self.internal_owner_user_id
        return data


class SignatureInvite(Base):
    __tablename__ = "contract_signature_invites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)  # customer_signer|provider_signer
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending|signed|cancelled
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_id": self.contract_id,
            "role": self.role,
            "email": self.email,
            "name": self.name,
            "title": self.title,
            "status": self.status,
            "expires_at": iso(self.expires_at),
            "signed_at": iso(self.signed_at),
            "created_at": iso(self.created_at),
        }
