from __future__ import annotations

from fastapi import APIRouter, Depends

from lotline.core.billing.guards import LicenseState, enforce_car_limit, enforce_status_change, get_license_state
from lotline.schemas.license import CarGuardResponse, LicenseInfoResponse

router = APIRouter(prefix="/license", tags=["license"])


@router.get("", response_model=LicenseInfoResponse)
async def get_license_info(state: LicenseState = Depends(get_license_state)) -> LicenseInfoResponse:
    license = state.license
    tier = state.tier
    return LicenseInfoResponse(
        tier_name=license.tier_name if license else None,
        display_name=tier.display_name if tier else None,
        car_limit=license.car_limit if license else None,
        monthly_price=tier.monthly_price if tier else None,
        current_car_count=state.current_car_count,
        usage_percentage=state.entitlement.usage_percent,
        remaining=state.entitlement.remaining,
        allowed=state.entitlement.allowed,
        is_active=bool(license and license.is_active),
        is_free_account=bool(license and license.is_free_account),
        subscription_status=license.subscription_status if license else None,
        current_period_end=license.current_period_end if license else None,
        free_reason=license.free_reason if license else None,
    )


@router.post("/guards/car", response_model=CarGuardResponse)
async def car_guard(state: LicenseState = Depends(enforce_car_limit)) -> CarGuardResponse:
    return CarGuardResponse(
        allowed=True,
        remaining=state.entitlement.remaining,
        usage_percentage=state.entitlement.usage_percent,
    )


@router.post("/guards/cars/{car_id}/status", response_model=CarGuardResponse)
async def car_status_guard(state: LicenseState = Depends(enforce_status_change)) -> CarGuardResponse:
    return CarGuardResponse(
        allowed=True,
        remaining=state.entitlement.remaining,
        usage_percentage=state.entitlement.usage_percent,
    )
