from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lotline.api.dependencies import get_billing_client
from lotline.core.auth import AuthContext, require_auth_context
from lotline.core.billing.provider import StripeBillingClient
from lotline.core.db import get_db_session
from lotline.core.errors import NotFoundError
from lotline.core.repositories.licenses import LicenseRepository
from lotline.core.repositories.tiers import TierRepository
from lotline.schemas.subscription import (
    CheckoutRequest,
    CheckoutResponse,
    PlanResponse,
    PortalRequest,
    PortalResponse,
    SubscriptionStatusResponse,
)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("/plans", response_model=list[PlanResponse])
async def list_plans(session: AsyncSession = Depends(get_db_session)) -> list[PlanResponse]:
    tiers = await TierRepository(session).list_active(online_only=True)
    return [PlanResponse.model_validate(tier) for tier in tiers]


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    payload: CheckoutRequest,
    session: AsyncSession = Depends(get_db_session),
    client: StripeBillingClient = Depends(get_billing_client),
) -> CheckoutResponse:
    tier = await TierRepository(session).get_by_name(payload.tier_name)
    if tier is None:
        raise NotFoundError(f"Tier '{payload.tier_name}' not found")

    checkout = await client.create_checkout_session(
        tier=tier,
        organization_name=payload.organization_name,
        owner_email=payload.owner_email,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )
    return CheckoutResponse(session_id=checkout.id, url=checkout.url)


@router.post("/portal", response_model=PortalResponse)
async def create_portal(
    payload: PortalRequest,
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
    client: StripeBillingClient = Depends(get_billing_client),
) -> PortalResponse:
    license = await LicenseRepository(session).get_by_organization(context.organization_id)
    if license is None or not license.stripe_customer_id:
        raise NotFoundError("No Stripe customer found for this organization")

    portal = await client.create_portal_session(
        customer_id=license.stripe_customer_id,
        return_url=payload.return_url,
    )
    return PortalResponse(url=portal.url)


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> SubscriptionStatusResponse:
    license = await LicenseRepository(session).get_by_organization(context.organization_id)
    if license is None:
        raise NotFoundError("License not found for this organization")

    return SubscriptionStatusResponse(
        subscription_status=license.subscription_status,
        tier_name=license.tier_name,
        car_limit=license.car_limit,
        is_free_account=license.is_free_account,
        current_period_end=license.current_period_end,
        has_stripe_customer=bool(license.stripe_customer_id),
        has_stripe_subscription=bool(license.stripe_subscription_id),
    )
