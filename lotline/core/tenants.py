from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.errors import NotFoundError
from lotline.core.repositories.organizations import OrganizationRepository
from lotline.models.billing_event import BillingEvent
from lotline.models.car import Car, MaintenanceRecord
from lotline.models.expense import Expense
from lotline.models.organization import Organization
from lotline.models.user import User

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DeletedCounts:
    users: int
    cars: int
    maintenance_records: int
    expenses: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class DestroyReport:
    organization_id: UUID
    organization_name: str
    deleted_counts: DeletedCounts

    def summary(self) -> str:
        counts = self.deleted_counts
        return (
            f'Organization "{self.organization_name}" deleted successfully. '
            f"Also deleted: {counts.users} user(s), {counts.cars} car(s), "
            f"{counts.maintenance_records} maintenance record(s), {counts.expenses} expense(s)."
        )


class TenantDestroyer:
    """Removes an organization and everything that belongs to it in one transaction.

    Counts are read first, then rows are deleted children-first: users, cars
    (maintenance records cascade from their car), billing ledger rows, and
    finally the organization, whose license and expense tables cascade.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def destroy(self, organization_id: UUID) -> DestroyReport:
        async with self.session.begin():
            organization = await OrganizationRepository(self.session).get(organization_id, for_update=True)
            if organization is None:
                raise NotFoundError(f"Organization {organization_id} not found")

            report = DestroyReport(
                organization_id=organization.id,
                organization_name=organization.name,
                deleted_counts=await self._count_dependents(organization_id),
            )

            await self._delete_users(organization_id)
            await self._delete_cars(organization_id)
            await self._delete_billing_events(organization_id)
            await self._delete_organization(organization_id)

        logger.info(
            "Destroyed organization %s: %s",
            organization_id,
            report.deleted_counts.as_dict(),
            extra={"organization_id": str(organization_id)},
        )
        return report

    async def _count(self, stmt) -> int:
        return int(await self.session.scalar(stmt) or 0)

    async def _count_dependents(self, organization_id: UUID) -> DeletedCounts:
        return DeletedCounts(
            users=await self._count(select(func.count(User.id)).where(User.organization_id == organization_id)),
            cars=await self._count(select(func.count(Car.id)).where(Car.organization_id == organization_id)),
            maintenance_records=await self._count(
                select(func.count(MaintenanceRecord.id))
                .join(Car, MaintenanceRecord.car_id == Car.id)
                .where(Car.organization_id == organization_id)
            ),
            expenses=await self._count(
                select(func.count(Expense.id)).where(Expense.organization_id == organization_id)
            ),
        )

    async def _delete_users(self, organization_id: UUID) -> None:
        await self.session.execute(delete(User).where(User.organization_id == organization_id))

    async def _delete_cars(self, organization_id: UUID) -> None:
        await self.session.execute(delete(Car).where(Car.organization_id == organization_id))

    async def _delete_billing_events(self, organization_id: UUID) -> None:
        await self.session.execute(delete(BillingEvent).where(BillingEvent.organization_id == organization_id))

    async def _delete_organization(self, organization_id: UUID) -> None:
        await self.session.execute(delete(Organization).where(Organization.id == organization_id))


async def destroy_organization(session: AsyncSession, organization_id: UUID) -> DestroyReport:
    return await TenantDestroyer(session).destroy(organization_id)
