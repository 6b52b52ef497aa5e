from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.models.billing_event import BillingEvent


class BillingEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_stripe_event_id(self, stripe_event_id: str) -> BillingEvent | None:
        return await self.session.scalar(
            select(BillingEvent).where(BillingEvent.stripe_event_id == stripe_event_id)
        )
