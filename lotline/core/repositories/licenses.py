from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from lotline.models.license import OrganizationLicense


class LicenseRepository:
    """License rows addressed by explicit organization or billing identifiers.

    Passing ``for_update=True`` takes a row lock for the rest of the
    transaction; webhook and admin writers both go through it.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _select(for_update: bool) -> Select[tuple[OrganizationLicense]]:
        stmt = select(OrganizationLicense)
        return stmt.with_for_update() if for_update else stmt

    async def get_by_organization(
        self, organization_id: UUID, *, for_update: bool = False
    ) -> OrganizationLicense | None:
        return await self.session.scalar(
            self._select(for_update).where(OrganizationLicense.organization_id == organization_id)
        )

    async def get_by_subscription_id(
        self, subscription_id: str, *, for_update: bool = False
    ) -> OrganizationLicense | None:
        return await self.session.scalar(
            self._select(for_update).where(OrganizationLicense.stripe_subscription_id == subscription_id)
        )

    async def get_by_customer_id(
        self, customer_id: str, *, for_update: bool = False
    ) -> OrganizationLicense | None:
        return await self.session.scalar(
            self._select(for_update).where(OrganizationLicense.stripe_customer_id == customer_id)
        )

    async def get_free_by_released_ids(
        self,
        *,
        subscription_id: str | None,
        customer_id: str | None,
        for_update: bool = False,
    ) -> OrganizationLicense | None:
        clauses = []
        if subscription_id:
            clauses.append(OrganizationLicense.released_stripe_subscription_id == subscription_id)
        if customer_id:
            clauses.append(OrganizationLicense.released_stripe_customer_id == customer_id)
        if not clauses:
            return None
        return await self.session.scalar(
            self._select(for_update)
            .where(OrganizationLicense.is_free_account.is_(True), or_(*clauses))
            .limit(1)
        )

    async def add(self, license: OrganizationLicense) -> OrganizationLicense:
        self.session.add(license)
        await self.session.flush()
        return license
