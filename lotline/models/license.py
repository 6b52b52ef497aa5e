from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lotline.models.base import OrganizationScopedBase


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    TRIALING = "trialing"
    UNPAID = "unpaid"


class OrganizationLicense(OrganizationScopedBase):
    __tablename__ = "organization_licenses"
    __organization_ondelete__ = "CASCADE"
    __table_args__ = (
        UniqueConstraint("organization_id", name="uq_organization_licenses_organization"),
        CheckConstraint(
            "subscription_status IS NULL OR subscription_status IN "
            "('active', 'past_due', 'canceled', 'incomplete', 'trialing', 'unpaid')",
            name="ck_organization_licenses_subscription_status",
        ),
    )

    tier_name: Mapped[str | None] = mapped_column(
        String(50),
        ForeignKey("license_tiers.tier_name"),
        nullable=True,
    )
    car_limit: Mapped[int | None] = mapped_column(nullable=True)
    has_custom_car_limit: Mapped[bool] = mapped_column(nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    is_free_account: Mapped[bool] = mapped_column(nullable=False, default=False)
    free_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    # Billing ids detached when the license was made free; events for them still resolve here.
    released_stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    released_stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    subscription_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    current_period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
