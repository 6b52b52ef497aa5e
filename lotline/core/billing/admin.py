from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.billing.entitlements import resolve_car_limit
from lotline.core.config import Settings
from lotline.core.errors import NotFoundError, ValidationError
from lotline.core.repositories.licenses import LicenseRepository
from lotline.core.repositories.organizations import OrganizationRepository
from lotline.core.repositories.tiers import TierRepository
from lotline.models.base import utcnow
from lotline.models.license import OrganizationLicense
from lotline.models.tier import LicenseTier

logger = logging.getLogger(__name__)

DEFAULT_FREE_REASON = "admin_assigned"


class LicenseAdministrator:
    """Administrator writes to a license row.

    Each write locks the row and stamps ``last_event_at`` with the current
    time, so billing events created before the admin action are treated as
    superseded. Nothing here touches the billing event ledger. Callers own
    the transaction and commit it.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        free_tier_name: str = "champion",
        default_free_car_limit: int = 10000,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.free_tier_name = free_tier_name
        self.default_free_car_limit = default_free_car_limit
        self.clock = clock
        self.licenses = LicenseRepository(session)
        self.tiers = TierRepository(session)
        self.organizations = OrganizationRepository(session)

    @classmethod
    def from_settings(cls, session: AsyncSession, config: Settings) -> "LicenseAdministrator":
        return cls(
            session,
            free_tier_name=config.free_license_tier,
            default_free_car_limit=config.default_free_car_limit,
        )

    async def get_license(self, organization_id: UUID) -> OrganizationLicense:
        license = await self.licenses.get_by_organization(organization_id)
        if license is None:
            raise NotFoundError(f"Organization {organization_id} has no license")
        return license

    async def set_free_license(
        self,
        organization_id: UUID,
        car_limit: int | None = None,
        reason: str | None = None,
    ) -> OrganizationLicense:
        if await self.organizations.get(organization_id) is None:
            raise NotFoundError(f"Organization {organization_id} not found")
        tier = await self._require_tier(self.free_tier_name)
        limit = self._validated_limit(car_limit if car_limit is not None else self.default_free_car_limit)

        license = await self.licenses.get_by_organization(organization_id, for_update=True)
        if license is None:
            license = await self.licenses.add(OrganizationLicense(organization_id=organization_id, is_active=True))

        license.tier_name = tier.tier_name
        license.car_limit = limit
        license.has_custom_car_limit = True
        license.is_free_account = True
        license.free_reason = reason or DEFAULT_FREE_REASON
        if license.stripe_customer_id:
            license.released_stripe_customer_id = license.stripe_customer_id
        if license.stripe_subscription_id:
            license.released_stripe_subscription_id = license.stripe_subscription_id
        license.stripe_customer_id = None
        license.stripe_subscription_id = None
        license.subscription_status = None
        license.current_period_start = None
        license.current_period_end = None
        self._touch(license)
        logger.info(
            "Assigned free %s license with car_limit=%s",
            tier.tier_name,
            limit,
            extra={"organization_id": str(organization_id)},
        )
        return license

    async def toggle_active(self, organization_id: UUID, active: bool) -> OrganizationLicense:
        license = await self._locked_license(organization_id)
        license.is_active = active
        self._touch(license)
        logger.info("Set license active=%s", active, extra={"organization_id": str(organization_id)})
        return license

    async def change_tier(
        self,
        organization_id: UUID,
        tier_name: str,
        car_limit_override: int | None = None,
    ) -> OrganizationLicense:
        tier = await self._require_tier(tier_name)
        license = await self._locked_license(organization_id)
        self._assign_tier(license, tier, car_limit_override)
        self._touch(license)
        return license

    async def update_license(
        self,
        organization_id: UUID,
        *,
        tier_name: str | None = None,
        car_limit: int | None = None,
        is_active: bool | None = None,
        free_reason: str | None = None,
    ) -> OrganizationLicense:
        if tier_name is None and car_limit is None and is_active is None and free_reason is None:
            raise ValidationError("No license fields to update")

        tier = await self._require_tier(tier_name) if tier_name is not None else None
        license = await self._locked_license(organization_id)

        if tier is not None:
            self._assign_tier(license, tier, car_limit)
        elif car_limit is not None:
            license.car_limit = self._validated_limit(car_limit)
            license.has_custom_car_limit = True
        if is_active is not None:
            license.is_active = is_active
        if free_reason is not None:
            license.free_reason = free_reason
        self._touch(license)
        return license

    async def _locked_license(self, organization_id: UUID) -> OrganizationLicense:
        license = await self.licenses.get_by_organization(organization_id, for_update=True)
        if license is None:
            raise NotFoundError(f"Organization {organization_id} has no license")
        return license

    async def _require_tier(self, tier_name: str) -> LicenseTier:
        tier = await self.tiers.get_by_name(tier_name)
        if tier is None:
            raise NotFoundError(f"Tier '{tier_name}' not found")
        return tier

    def _assign_tier(self, license: OrganizationLicense, tier: LicenseTier, override: int | None) -> None:
        license.car_limit = resolve_car_limit(tier, override, license.car_limit)
        license.tier_name = tier.tier_name
        license.has_custom_car_limit = override is not None
        logger.info(
            "Changed tier to %s with car_limit=%s",
            tier.tier_name,
            license.car_limit,
            extra={"organization_id": str(license.organization_id)},
        )

    @staticmethod
    def _validated_limit(car_limit: int) -> int:
        if car_limit < 0:
            raise ValidationError("Car limit cannot be negative")
        return car_limit

    def _touch(self, license: OrganizationLicense) -> None:
        license.last_event_at = self.clock()
