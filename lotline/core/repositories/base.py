from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from lotline.core.context import get_current_organization_id
from lotline.models.base import OrganizationScopedBase

ModelT = TypeVar("ModelT", bound=OrganizationScopedBase)


class OrganizationContextMissingError(RuntimeError):
    pass


class OrganizationRepositoryBase(Generic[ModelT]):
    """Reads rows belonging to the organization bound to the current request."""

    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    @property
    def organization_id(self) -> UUID:
        organization_id = get_current_organization_id()
        if organization_id is None:
            raise OrganizationContextMissingError("Organization context is missing from the current request")
        return organization_id

    def _scoped_select(self) -> Select[tuple[ModelT]]:
        return select(self.model).where(self.model.organization_id == self.organization_id)

    async def get(self, entity_id: UUID) -> ModelT | None:
        result = await self.session.execute(
            self._scoped_select().where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def list(self, *, limit: int = 100, offset: int = 0) -> list[ModelT]:
        result = await self.session.execute(
            self._scoped_select().order_by(self.model.created_at).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def count(self) -> int:
        return int(
            await self.session.scalar(
                select(func.count(self.model.id)).where(self.model.organization_id == self.organization_id)
            )
            or 0
        )
