from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.models.organization import Organization
from lotline.models.user import User


class OrganizationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, organization_id: UUID, *, for_update: bool = False) -> Organization | None:
        stmt = select(Organization).where(Organization.id == organization_id)
        if for_update:
            stmt = stmt.with_for_update()
        return await self.session.scalar(stmt)

    async def find_by_name_or_email(self, *, name: str | None, email: str | None) -> Organization | None:
        clauses = []
        if name:
            clauses.append(Organization.name == name)
        if email:
            clauses.append(Organization.email == email)
        if not clauses:
            return None
        result = await self.session.scalars(
            select(Organization).where(or_(*clauses)).order_by(Organization.created_at).limit(1)
        )
        return result.first()

    async def add(self, organization: Organization) -> Organization:
        self.session.add(organization)
        await self.session.flush()
        return organization

    async def get_user_by_email(self, email: str) -> User | None:
        return await self.session.scalar(select(User).where(User.email == email))

    async def add_user(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user
