from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.models.tier import LicenseTier


class TierRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_name(self, tier_name: str) -> LicenseTier | None:
        return await self.session.scalar(
            select(LicenseTier).where(
                LicenseTier.tier_name == tier_name,
                LicenseTier.is_active.is_(True),
            )
        )

    async def get_by_price_id(self, price_id: str) -> LicenseTier | None:
        return await self.session.scalar(
            select(LicenseTier).where(
                LicenseTier.stripe_price_id == price_id,
                LicenseTier.is_active.is_(True),
            )
        )

    async def list_active(self, *, online_only: bool = False) -> list[LicenseTier]:
        stmt = select(LicenseTier).where(LicenseTier.is_active.is_(True))
        if online_only:
            stmt = stmt.where(LicenseTier.is_available_online.is_(True))
        result = await self.session.scalars(stmt.order_by(LicenseTier.sort_order))
        return list(result.all())

    async def find_by_name(self, tier_name: str, *, for_update: bool = False) -> LicenseTier | None:
        """Catalog lookup that also returns retired tiers."""
        stmt = select(LicenseTier).where(LicenseTier.tier_name == tier_name)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def find_by_price_id(self, price_id: str) -> LicenseTier | None:
        return await self.session.scalar(select(LicenseTier).where(LicenseTier.stripe_price_id == price_id))

    async def add(self, tier: LicenseTier) -> LicenseTier:
        self.session.add(tier)
        await self.session.flush()
        return tier
