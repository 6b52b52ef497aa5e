from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FreeLicenseRequest(BaseModel):
    organization_id: UUID
    car_limit: int | None = Field(default=None, ge=0)
    reason: str | None = Field(default=None, max_length=255)


class LicenseUpdateRequest(BaseModel):
    tier_name: str | None = Field(default=None, min_length=1, max_length=50)
    car_limit: int | None = Field(default=None, ge=0)
    is_active: bool | None = None
    free_reason: str | None = Field(default=None, max_length=255)


class OrganizationActiveRequest(BaseModel):
    active: bool


class AdminLicenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    organization_id: UUID
    tier_name: str | None
    car_limit: int | None
    has_custom_car_limit: bool
    is_active: bool
    is_free_account: bool
    free_reason: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    subscription_status: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    last_event_at: datetime | None = None


class TierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_name: str
    display_name: str
    car_limit: int | None
    monthly_price: Decimal
    stripe_price_id: str | None = None
    is_available_online: bool
    sort_order: int
    is_active: bool


class TierCreateRequest(BaseModel):
    tier_name: str = Field(min_length=1, max_length=50, pattern=r"^[a-z0-9_]+$")
    display_name: str = Field(min_length=1, max_length=100)
    car_limit: int | None = Field(default=None, ge=0)
    monthly_price: Decimal = Field(ge=0, max_digits=8, decimal_places=2)
    stripe_price_id: str | None = Field(default=None, max_length=255)
    is_available_online: bool = True
    sort_order: int | None = None


class TierUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, min_length=1, max_length=100)
    car_limit: int | None = Field(default=None, ge=0)
    monthly_price: Decimal | None = Field(default=None, ge=0, max_digits=8, decimal_places=2)
    stripe_price_id: str | None = Field(default=None, max_length=255)
    is_available_online: bool | None = None
    sort_order: int | None = None
    is_active: bool | None = None
