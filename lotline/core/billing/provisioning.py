from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.errors import NotFoundError
from lotline.core.repositories.organizations import OrganizationRepository
from lotline.models.organization import Organization
from lotline.models.user import User

logger = logging.getLogger(__name__)

OWNER_ROLE = "owner"


class OrganizationProvisioner:
    """Creates the organization and its first owner for a first-time purchase.

    The owner gets no password; they set one through the reset flow.
    """

    async def provision(
        self,
        session: AsyncSession,
        *,
        name: str | None,
        owner_email: str | None,
    ) -> Organization:
        if not name:
            raise NotFoundError("Cannot provision an organization without organization_name metadata")

        repository = OrganizationRepository(session)
        organization = await repository.add(Organization(name=name, email=owner_email))
        logger.info("Provisioned organization %s (%s)", organization.id, name)

        if not owner_email:
            return organization

        if await repository.get_user_by_email(owner_email) is not None:
            logger.warning("Owner email %s already belongs to a user; skipping owner creation", owner_email)
            return organization

        await repository.add_user(
            User(
                organization_id=organization.id,
                email=owner_email,
                password_hash=None,
                role=OWNER_ROLE,
            )
        )
        return organization
