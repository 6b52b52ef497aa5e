from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import stripe

from lotline.core.config import Settings
from lotline.core.errors import TransientError, ValidationError
from lotline.models.tier import LicenseTier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckoutSession:
    id: str
    url: str | None


@dataclass(slots=True)
class PortalSession:
    id: str
    url: str


class StripeBillingClient:
    """Hosted Stripe pages: checkout for tiers sold online and the customer billing portal."""

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    @classmethod
    def from_settings(cls, config: Settings) -> "StripeBillingClient":
        return cls(config.stripe_secret_key)

    async def create_checkout_session(
        self,
        *,
        tier: LicenseTier,
        organization_name: str,
        owner_email: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        if not self.api_key:
            raise TransientError("STRIPE_SECRET_KEY is not configured")
        if not tier.is_available_online or not tier.stripe_price_id:
            raise ValidationError(f"Tier '{tier.tier_name}' cannot be purchased online")

        metadata = {
            "organization_name": organization_name,
            "owner_email": owner_email,
            "price_id": tier.stripe_price_id,
            "tier_name": tier.tier_name,
        }

        def _create() -> stripe.checkout.Session:
            return stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="subscription",
                line_items=[{"price": tier.stripe_price_id, "quantity": 1}],
                customer_email=owner_email,
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data={"metadata": metadata},
            )

        try:
            session = await asyncio.to_thread(_create)
        except stripe.StripeError as exc:
            raise TransientError(f"Stripe checkout failed: {exc.user_message or exc}") from exc
        return CheckoutSession(id=session.id, url=session.url)

    async def create_portal_session(self, *, customer_id: str, return_url: str) -> PortalSession:
        if not self.api_key:
            raise TransientError("STRIPE_SECRET_KEY is not configured")

        def _create() -> stripe.billing_portal.Session:
            return stripe.billing_portal.Session.create(
                api_key=self.api_key,
                customer=customer_id,
                return_url=return_url,
            )

        try:
            session = await asyncio.to_thread(_create)
        except stripe.StripeError as exc:
            raise TransientError(f"Stripe portal session failed: {exc.user_message or exc}") from exc
        logger.info("Created billing portal session for customer %s", customer_id)
        return PortalSession(id=session.id, url=session.url)
