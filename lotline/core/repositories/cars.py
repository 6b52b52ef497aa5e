from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.repositories.base import OrganizationRepositoryBase
from lotline.models.car import SOLD_STATUS, Car


class CarRepository(OrganizationRepositoryBase[Car]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Car)

    async def count_active(self) -> int:
        """Cars counted against the license: everything not yet sold."""
        return int(
            await self.session.scalar(
                select(func.count(Car.id)).where(
                    Car.organization_id == self.organization_id,
                    Car.status != SOLD_STATUS,
                )
            )
            or 0
        )
