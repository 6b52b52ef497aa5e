from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lotline.models.base import TimestampedBase


class LicenseTier(TimestampedBase):
    __tablename__ = "license_tiers"

    tier_name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # NULL means the limit is supplied by whoever assigns the tier.
    car_limit: Mapped[int | None] = mapped_column(nullable=True)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    stripe_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    is_available_online: Mapped[bool] = mapped_column(nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
