from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_name: str
    display_name: str
    car_limit: int | None
    monthly_price: Decimal
    stripe_price_id: str | None = None


class CheckoutRequest(BaseModel):
    tier_name: str = Field(min_length=1, max_length=50)
    organization_name: str = Field(min_length=1, max_length=100)
    owner_email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    success_url: str = Field(min_length=1, max_length=2048)
    cancel_url: str = Field(min_length=1, max_length=2048)


class CheckoutResponse(BaseModel):
    session_id: str
    url: str | None = None


class PortalRequest(BaseModel):
    return_url: str = Field(min_length=1, max_length=2048)


class PortalResponse(BaseModel):
    url: str


class SubscriptionStatusResponse(BaseModel):
    subscription_status: str | None = None
    tier_name: str | None
    car_limit: int | None
    is_free_account: bool
    current_period_end: datetime | None = None
    has_stripe_customer: bool
    has_stripe_subscription: bool
