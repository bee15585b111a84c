from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.boaz.models import Base, JSONType
from app.boaz.utils import iso


class Environment(Base):
    __tablename__ = "asset_environments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("crm_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    environment_type: Mapped[str] = mapped_column(String(32), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Active")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "name": self.name,
            "environment_type": self.environment_type,
            "location": self.location,
            "status": self.status,
            "notes": self.notes,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class InstalledProduct(Base):
    __tablename__ = "asset_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("crm_accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    environment_id: Mapped[int | None] = mapped_column(
        ForeignKey("asset_environments.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_type: Mapped[str] = mapped_column(String(32), nullable=False)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    configuration: Mapped[str | None] = mapped_column(Text, nullable=True)
    deployment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Active")
    support_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "environment_id": self.environment_id,
            "product_name": self.product_name,
            "product_type": self.product_type,
            "vendor": self.vendor,
            "version": self.version,
            "serial_number": self.serial_number,
            "configuration": self.configuration,
            "deployment_date": iso(self.deployment_date),
            "status": self.status,
            "support_level": self.support_level,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class License(Base):
    __tablename__ = "asset_licenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("asset_products.id", ondelete="CASCADE"), nullable=False, index=True)
    license_type: Mapped[str] = mapped_column(String(32), nullable=False)
    license_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    license_identifier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    license_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    seats_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    renewal_status: Mapped[str] = mapped_column(String(32), nullable=False, default="Active")
    cost: Mapped[float | None] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=True)
    assigned_users: Mapped[list | None] = mapped_column(JSONType, nullable=True, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "license_type": self.license_type,
            "license_key": self.license_key,
            "license_identifier": self.license_identifier,
            "license_count": self.license_count,
            "seats_assigned": self.seats_assigned,
            "expiration_date": iso(self.expiration_date),
            "renewal_status": self.renewal_status,
            "cost": self.cost,
            "assigned_users": list(self.assigned_users or []),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
