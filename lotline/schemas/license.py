from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class LicenseInfoResponse(BaseModel):
    tier_name: str | None
    display_name: str | None
    car_limit: int | None
    monthly_price: Decimal | None
    current_car_count: int
    usage_percentage: float
    remaining: int
    allowed: bool
    is_active: bool
    is_free_account: bool
    subscription_status: str | None = None
    current_period_end: datetime | None = None
    free_reason: str | None = None


class CarGuardResponse(BaseModel):
    allowed: bool
    remaining: int
    usage_percentage: float


class CarStatusChangeRequest(BaseModel):
    status: str = Field(min_length=1, max_length=20)
