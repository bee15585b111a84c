"""Customer asset (environment / product / license) API schemas."""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field

EnvironmentType = Literal["Production", "UAT", "Dev", "Sandbox", "Retail Store", "Satellite Office", "Cloud Tenant"]
EnvironmentStatus = Literal["Active", "Inactive", "Planned", "Retired"]
ProductType = Literal["Software", "Hardware", "Cloud Service", "Integration", "Subscription"]
ProductStatus = Literal["Active", "Needs Upgrade", "Pending Renewal", "Retired"]
SupportLevel = Literal["Basic", "Standard", "Premium"]
LicenseType = Literal["Seat-based", "Device-based", "Perpetual", "Subscription"]
RenewalStatus = Literal["Active", "Expired", "Pending Renewal"]


class EnvironmentCreate(BaseModel):
    customer_id: int
    name: str = Field(..., min_length=1, max_length=255)
    environment_type: EnvironmentType
    location: str | None = Field(default=None, max_length=255)
    status: EnvironmentStatus = "Active"
    notes: str | None = None


class EnvironmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    environment_type: EnvironmentType | None = None
    location: str | None = Field(default=None, max_length=255)
    status: EnvironmentStatus | None = None
    notes: str | None = None


class ProductCreate(BaseModel):
    customer_id: int
    environment_id: int | None = None
    product_name: str = Field(..., min_length=1, max_length=255)
    product_type: ProductType
    vendor: str | None = Field(default=None, max_length=255)
    version: str | None = Field(default=None, max_length=64)
    serial_number: str | None = Field(default=None, max_length=128)
    configuration: str | None = None
    deployment_date: dt.date | None = None
    status: ProductStatus = "Active"
    support_level: SupportLevel | None = None


class ProductUpdate(BaseModel):
    environment_id: int | None = None
    product_name: str | None = Field(default=None, min_length=1, max_length=255)
    product_type: ProductType | None = None
    vendor: str | None = Field(default=None, max_length=255)
    version: str | None = Field(default=None, max_length=64)
    serial_number: str | None = Field(default=None, max_length=128)
    configuration: str | None = None
    deployment_date: dt.date | None = None
    status: ProductStatus | None = None
    support_level: SupportLevel | None = None


class LicenseCreate(BaseModel):
    product_id: int
    license_type: LicenseType
    license_key: str | None = Field(default=None, max_length=512)
    license_identifier: str | None = Field(default=None, max_length=255)
    license_count: int = Field(default=1, ge=1)
    seats_assigned: int = Field(default=0, ge=0)
    expiration_date: dt.date | None = None
    renewal_status: RenewalStatus = "Active"
    cost: float | None = Field(default=None, ge=0)
    assigned_users: list[str] = Field(default_factory=list)


class LicenseUpdate(BaseModel):
    license_type: LicenseType | None = None
    license_key: str | None = Field(default=None, max_length=512)
    license_identifier: str | None = Field(default=None, max_length=255)
    license_count: int | None = Field(default=None, ge=1)
    seats_assigned: int | None = Field(default=None, ge=0)
    expiration_date: dt.date | None = None
    renewal_status: RenewalStatus | None = None
    cost: float | None = Field(default=None, ge=0)
    assigned_users: list[str] | None = None
