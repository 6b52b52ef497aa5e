from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.errors import ConflictError, NotFoundError, ValidationError
from lotline.core.repositories.tiers import TierRepository
from lotline.models.tier import LicenseTier

logger = logging.getLogger(__name__)

DEFAULT_SORT_ORDER = 999

UPDATABLE_TIER_FIELDS = frozenset(
    {
        "display_name",
        "car_limit",
        "monthly_price",
        "stripe_price_id",
        "is_available_online",
        "sort_order",
        "is_active",
    }
)

REQUIRED_TIER_FIELDS = frozenset({"display_name", "monthly_price", "is_available_online", "sort_order", "is_active"})


class TierCatalog:
    """Administrator edits to the tier catalog.

    Existing licenses keep their stored car limit; a changed tier default
    reaches them through the next billing event or admin tier change.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.tiers = TierRepository(session)

    async def get_tier(self, tier_name: str) -> LicenseTier:
        tier = await self.tiers.find_by_name(tier_name)
        if tier is None:
            raise NotFoundError(f"Tier '{tier_name}' not found")
        return tier

    async def create_tier(
        self,
        *,
        tier_name: str,
        display_name: str,
        monthly_price: Decimal,
        car_limit: int | None = None,
        stripe_price_id: str | None = None,
        is_available_online: bool = True,
        sort_order: int | None = None,
    ) -> LicenseTier:
        if await self.tiers.find_by_name(tier_name) is not None:
            raise ConflictError(f"Tier '{tier_name}' already exists")
        await self._ensure_price_unclaimed(stripe_price_id, tier_name)
        self._validate(car_limit=car_limit, monthly_price=monthly_price)

        tier = await self.tiers.add(
            LicenseTier(
                tier_name=tier_name,
                display_name=display_name,
                car_limit=car_limit,
                monthly_price=monthly_price,
                stripe_price_id=stripe_price_id,
                is_available_online=is_available_online,
                sort_order=DEFAULT_SORT_ORDER if sort_order is None else sort_order,
                is_active=True,
            )
        )
        logger.info("Created tier %s with car_limit=%s", tier_name, car_limit)
        return tier

    async def update_tier(self, tier_name: str, changes: dict[str, Any]) -> LicenseTier:
        if not changes:
            raise ValidationError("No tier fields to update")
        unknown = set(changes) - UPDATABLE_TIER_FIELDS
        if unknown:
            raise ValidationError(f"Tier fields cannot be updated: {', '.join(sorted(unknown))}")
        cleared = sorted(name for name in REQUIRED_TIER_FIELDS if name in changes and changes[name] is None)
        if cleared:
            raise ValidationError(f"Tier fields cannot be cleared: {', '.join(cleared)}")

        tier = await self.tiers.find_by_name(tier_name, for_update=True)
        if tier is None:
            raise NotFoundError(f"Tier '{tier_name}' not found")
        if changes.get("stripe_price_id"):
            await self._ensure_price_unclaimed(changes["stripe_price_id"], tier_name)
        self._validate(
            car_limit=changes.get("car_limit", tier.car_limit),
            monthly_price=changes.get("monthly_price", tier.monthly_price),
        )

        for field_name, value in changes.items():
            setattr(tier, field_name, value)
        await self.session.flush()
        logger.info("Updated tier %s: %s", tier_name, ", ".join(sorted(changes)))
        return tier

    async def _ensure_price_unclaimed(self, price_id: str | None, tier_name: str) -> None:
        if not price_id:
            return
        owner = await self.tiers.find_by_price_id(price_id)
        if owner is not None and owner.tier_name != tier_name:
            raise ConflictError(f"Price {price_id} already belongs to tier '{owner.tier_name}'")

    @staticmethod
    def _validate(*, car_limit: int | None, monthly_price: Decimal | None) -> None:
        if car_limit is not None and car_limit < 0:
            raise ValidationError("Car limit cannot be negative")
        if monthly_price is None or monthly_price < 0:
            raise ValidationError("Monthly price must be zero or more")
