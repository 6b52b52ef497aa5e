from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.core.auth import AuthContext, require_auth_context
from lotline.core.billing.entitlements import Entitlement, can_create_resource
from lotline.core.db import get_db_session
from lotline.core.repositories.cars import CarRepository
from lotline.core.repositories.licenses import LicenseRepository
from lotline.core.repositories.tiers import TierRepository
from lotline.models.car import SOLD_STATUS
from lotline.models.license import OrganizationLicense
from lotline.models.tier import LicenseTier
from lotline.schemas.license import CarStatusChangeRequest


@dataclass(slots=True)
class LicenseState:
    license: OrganizationLicense | None
    tier: LicenseTier | None
    current_car_count: int
    entitlement: Entitlement


async def get_license_state(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> LicenseState:
    license = await LicenseRepository(session).get_by_organization(context.organization_id)
    tier = None
    if license is not None and license.tier_name:
        tier = await TierRepository(session).get_by_name(license.tier_name)

    current_car_count = await CarRepository(session).count_active()
    return LicenseState(
        license=license,
        tier=tier,
        current_car_count=current_car_count,
        entitlement=can_create_resource(license, current_car_count),
    )


def _denial_detail(state: LicenseState) -> str:
    if state.license is None:
        return "Organization has no license"
    if not state.license.is_active:
        return "Organization license is inactive"
    return (
        f"Car limit reached ({state.current_car_count}/{state.license.car_limit}). "
        "Upgrade your plan to add more cars."
    )


async def enforce_car_limit(state: LicenseState = Depends(get_license_state)) -> LicenseState:
    if state.entitlement.allowed:
        return state
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=_denial_detail(state))


async def enforce_status_change(
    car_id: UUID,
    status_change: CarStatusChangeRequest,
    state: LicenseState = Depends(get_license_state),
    session: AsyncSession = Depends(get_db_session),
) -> LicenseState:
    """Moving a sold car back into the active lot counts against the car limit."""
    if status_change.status == SOLD_STATUS:
        return state

    car = await CarRepository(session).get(car_id)
    if car is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Car not found")

    if car.status == SOLD_STATUS and not state.entitlement.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Cannot change car status. {_denial_detail(state)}",
        )
    return state
