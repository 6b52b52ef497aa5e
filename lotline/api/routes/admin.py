from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.api.dependencies import get_license_publisher
from lotline.core.auth import AuthContext, require_super_admin
from lotline.core.billing.admin import LicenseAdministrator
from lotline.core.billing.catalog import TierCatalog
from lotline.core.config import settings
from lotline.core.db import get_db_session
from lotline.core.notifications import LicenseChange, LicenseChangePublisher
from lotline.core.repositories.tiers import TierRepository
from lotline.models.license import OrganizationLicense
from lotline.schemas.admin import (
    AdminLicenseResponse,
    FreeLicenseRequest,
    LicenseUpdateRequest,
    OrganizationActiveRequest,
    TierCreateRequest,
    TierResponse,
    TierUpdateRequest,
)

router = APIRouter(prefix="/admin", tags=["admin"])


def get_license_administrator(session: AsyncSession = Depends(get_db_session)) -> LicenseAdministrator:
    return LicenseAdministrator.from_settings(session, settings)


def get_tier_catalog(session: AsyncSession = Depends(get_db_session)) -> TierCatalog:
    return TierCatalog(session)


async def _commit_and_publish(
    session: AsyncSession,
    publisher: LicenseChangePublisher,
    license: OrganizationLicense,
) -> AdminLicenseResponse:
    await session.commit()
    await publisher.publish(LicenseChange.from_license(license))
    return AdminLicenseResponse.model_validate(license)


@router.post("/licenses/free", response_model=AdminLicenseResponse)
async def create_free_license(
    payload: FreeLicenseRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    administrator: LicenseAdministrator = Depends(get_license_administrator),
    publisher: LicenseChangePublisher = Depends(get_license_publisher),
) -> AdminLicenseResponse:
    license = await administrator.set_free_license(
        payload.organization_id,
        car_limit=payload.car_limit,
        reason=payload.reason,
    )
    return await _commit_and_publish(session, publisher, license)


@router.patch("/licenses/{organization_id}", response_model=AdminLicenseResponse)
async def update_license(
    organization_id: UUID,
    payload: LicenseUpdateRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    administrator: LicenseAdministrator = Depends(get_license_administrator),
    publisher: LicenseChangePublisher = Depends(get_license_publisher),
) -> AdminLicenseResponse:
    license = await administrator.update_license(
        organization_id,
        tier_name=payload.tier_name,
        car_limit=payload.car_limit,
        is_active=payload.is_active,
        free_reason=payload.free_reason,
    )
    return await _commit_and_publish(session, publisher, license)


@router.get("/licenses/{organization_id}", response_model=AdminLicenseResponse)
async def get_license(
    organization_id: UUID,
    _: AuthContext = Depends(require_super_admin),
    administrator: LicenseAdministrator = Depends(get_license_administrator),
) -> AdminLicenseResponse:
    license = await administrator.get_license(organization_id)
    return AdminLicenseResponse.model_validate(license)


@router.patch("/organizations/{organization_id}/active", response_model=AdminLicenseResponse)
async def set_organization_active(
    organization_id: UUID,
    payload: OrganizationActiveRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    administrator: LicenseAdministrator = Depends(get_license_administrator),
    publisher: LicenseChangePublisher = Depends(get_license_publisher),
) -> AdminLicenseResponse:
    license = await administrator.toggle_active(organization_id, payload.active)
    return await _commit_and_publish(session, publisher, license)


@router.get("/tiers", response_model=list[TierResponse])
async def list_tiers(
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[TierResponse]:
    tiers = await TierRepository(session).list_active()
    return [TierResponse.model_validate(tier) for tier in tiers]


@router.get("/tiers/{tier_name}", response_model=TierResponse)
async def get_tier(
    tier_name: str,
    _: AuthContext = Depends(require_super_admin),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> TierResponse:
    return TierResponse.model_validate(await catalog.get_tier(tier_name))


@router.post("/tiers", response_model=TierResponse, status_code=status.HTTP_201_CREATED)
async def create_tier(
    payload: TierCreateRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> TierResponse:
    tier = await catalog.create_tier(**payload.model_dump())
    await session.commit()
    return TierResponse.model_validate(tier)


@router.put("/tiers/{tier_name}", response_model=TierResponse)
async def update_tier(
    tier_name: str,
    payload: TierUpdateRequest,
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> TierResponse:
    tier = await catalog.update_tier(tier_name, payload.model_dump(exclude_unset=True))
    await session.commit()
    return TierResponse.model_validate(tier)
